"""
Loggers construction options.

Every option is validated by pydantic when a ``Loggers`` instance is created;
unknown keys and unknown level names are rejected.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from polylog.levels import DEFAULT, LEVELS, OFF, ON

SINK_NAMES: tuple[str, ...] = ("file", "error_file", "remote", "console")

DEFAULT_META_KEYS = [
    "transaction_id",
    "correlation_id",
    "operation_id",
    "request_id",
    "tenant_id",
    "status_code",
    "code",
    "commit_sha",
]

DEFAULT_ERROR_KEYS = ["error", "original_error", "cause"]

REMOTE_ERROR_CATEGORY = "@log/remote-error"


# =============================================================================
# Level Types
# =============================================================================


def _level_validator(*synthetic: str) -> AfterValidator:
    allowed = frozenset(LEVELS) | frozenset(synthetic)

    def check(value: str) -> str:
        if value not in allowed:
            raise ValueError(f"'{value}' is not one of {', '.join(sorted(allowed))}")
        return value

    return AfterValidator(check)


LevelName = Annotated[str, _level_validator()]
DefaultLevelName = Annotated[str, _level_validator(DEFAULT)]
OffDefaultLevelName = Annotated[str, _level_validator(DEFAULT, OFF)]
SinkLevelName = Annotated[str, _level_validator(DEFAULT, OFF, ON)]


# =============================================================================
# Size / Age Parsing
# =============================================================================

_SIZE_UNITS = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3}
_AGE_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 7 * 86400}
_QUANTITY = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]?)\s*$")


def _parse_quantity(value: Any, units: dict[str, int], what: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _QUANTITY.match(str(value))
    if not match or match.group(2).lower() not in units:
        raise ValueError(f"Invalid {what}: {value!r}")
    return float(match.group(1)) * units[match.group(2).lower()]


def parse_size(value: Any) -> int:
    """'20m' -> bytes."""
    return int(_parse_quantity(value, _SIZE_UNITS, "size"))


def parse_age(value: Any) -> float:
    """'14d' -> seconds."""
    return _parse_quantity(value, _AGE_UNITS, "age")


# =============================================================================
# Option Models
# =============================================================================


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class TagRule(_Options):
    """Per-category switches for one tag."""

    allow_level: Optional[OffDefaultLevelName] = Field(
        default=None,
        description="Entries at least this severe bypass the tag's other switches",
    )
    level: Optional[DefaultLevelName] = Field(default=None, description="Raise the entry's level to this value")
    on: Optional[SinkLevelName] = Field(default=None, description="Entries less severe than this are suppressed")
    other: Optional[SinkLevelName] = Field(default=None, description="Value to use for sinks not listed")
    file: Optional[SinkLevelName] = None
    error_file: Optional[SinkLevelName] = None
    remote: Optional[SinkLevelName] = None
    console: Optional[SinkLevelName] = None

    def sink_threshold(self, sink: str) -> str | None:
        return getattr(self, sink) or self.other


class RemoteCategoryOptions(_Options):
    level: Optional[SinkLevelName] = None
    project: Optional[str] = None
    log_name: Optional[str] = None
    upload_rate: Optional[float] = Field(default=None, gt=0)


class CategoryOptions(_Options):
    tags: dict[str, Union[SinkLevelName, TagRule]] = Field(default_factory=dict)
    default_level: Optional[LevelName] = Field(
        default=None,
        description="Level to use when a call's tags name no level",
    )
    file: Optional[SinkLevelName] = None
    error_file: Optional[SinkLevelName] = None
    console: Optional[SinkLevelName] = None
    remote: Optional[Union[SinkLevelName, RemoteCategoryOptions]] = None


class RedactRule(_Options):
    allow_level: Optional[OffDefaultLevelName] = None
    tags: list[str] = Field(default_factory=list)


class FileOptions(_Options):
    directories: list[str] = Field(
        default_factory=lambda: ["logs", "/tmp/logs"],
        description="Candidate log directories, first usable wins. Use [] for read-only filesystems",
    )
    max_size: int = Field(default=20 * 1024**2, description="Rotate a file after this many bytes ('20m')")
    max_age: float = Field(default=14 * 86400.0, description="Delete rotated files older than this ('14d')")

    @field_validator("max_size", mode="before")
    @classmethod
    def _parse_size(cls, value: Any) -> int:
        return parse_size(value)

    @field_validator("max_age", mode="before")
    @classmethod
    def _parse_age(cls, value: Any) -> float:
        return parse_age(value)


class RemoteOptions(_Options):
    project: Optional[str] = Field(default=None, description="Google Cloud project receiving the log stream")
    log_name: Optional[str] = Field(default=None, description="Log name (the aggregation group)")
    upload_rate: float = Field(default=2.0, gt=0, description="Seconds between uploads")
    flush_timeout: float = Field(default=90.0, gt=0, description="Maximum seconds to wait for a flush")
    error_category: str = Field(default=REMOTE_ERROR_CATEGORY)


class ConsoleOptions(_Options):
    colors: bool = Field(default=True, description="Output ANSI colors")
    data: bool = Field(default=False, description="Output data, stacks and secondary entries")


class SayOptions(_Options):
    banner: bool = True
    flushing: bool = True
    flushed: bool = True
    stopping: bool = True
    stopped: bool = True
    open_remote: bool = True


class LoggersOptions(_Options):
    """Options accepted by ``Loggers``."""

    # Process-related meta
    stage: Optional[str] = None
    service: Optional[str] = None
    version: Optional[str] = None

    # Defaults
    default_category: str = "general"
    default_level: LevelName = Field(default="debug", description="Level to use when a level is not found in tags")
    default_tag_allow_level: OffDefaultLevelName = "warn"
    uncaught_category: str = "uncaught"

    # Records
    meta_keys: list[str] = Field(
        default_factory=lambda: list(DEFAULT_META_KEYS),
        description="Keys promoted from data to the record. Values must be scalars.",
    )
    redact: dict[str, RedactRule] = Field(default_factory=dict)
    error_keys: list[str] = Field(default_factory=lambda: list(DEFAULT_ERROR_KEYS))
    max_errors: int = Field(default=25, ge=1, description="Maximum number of errors logged per call")
    max_array_length: int = Field(default=10, ge=1)
    max_depth: int = Field(default=10, ge=1, description="Maximum depth when converting objects to JSON")
    max_error_depth: int = Field(default=5, ge=1, description="Maximum error graph depth to traverse")

    # Sinks
    categories: dict[str, CategoryOptions] = Field(default_factory=dict)
    file: FileOptions = Field(default_factory=FileOptions)
    remote: RemoteOptions = Field(default_factory=RemoteOptions)
    console: ConsoleOptions = Field(default_factory=ConsoleOptions)
    say: SayOptions = Field(default_factory=SayOptions)

    # Standard library logging
    intercept_stdlib: bool = Field(default=False, description="Route the root stdlib logger through Loggers while running")
    stdlib_category: Optional[str] = Field(default=None, description="Category of intercepted stdlib records")

    # Testing
    unit_test: bool = False

    @field_validator("redact", mode="before")
    @classmethod
    def _redact_defaults(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: {} if rule is None else rule for key, rule in value.items()}
        return value

    @field_validator("categories", mode="after")
    @classmethod
    def _ensure_default_category(cls, value: dict[str, CategoryOptions]) -> dict[str, CategoryOptions]:
        if DEFAULT not in value:
            value = {DEFAULT: CategoryOptions(), **value}
        return value

    @field_validator("meta_keys", mode="after")
    @classmethod
    def _dedup_meta_keys(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(key for key in value if key))
