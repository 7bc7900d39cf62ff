"""
Record builder: merges a message and a context value into one flat ``LogRecord``.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from polylog.config.options import LoggersOptions, RedactRule
from polylog.levels import LOG_STACK_TAG, NO_LOG_STACK_TAG, LevelTable
from polylog.policy import Decision

SCALARS = (str, int, float, bool)

CIRCULAR = "-circular-"
PRUNED = "-pruned-"

_PACKAGE_DIR = str(Path(__file__).resolve().parent)


def now() -> str:
    """Local time in ISO 8601 with the timezone offset and milliseconds."""
    return datetime.now().astimezone().isoformat(timespec="milliseconds")


# =============================================================================
# Log Record
# =============================================================================


@dataclass
class LogRecord:
    """The flat structure handed to sinks."""

    timestamp: str
    category: str
    level: str
    tags: list[str]
    message: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    group_id: Optional[str] = None
    depth: int = 0
    stage: Optional[str] = None
    service: Optional[str] = None
    version: Optional[str] = None
    host_id: Optional[str] = None
    stack: Optional[str] = None
    log_stack: Optional[str] = None
    data: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        """Event dict for sinks. ``None`` values and a zero depth are omitted."""
        event: dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level,
            "category": self.category,
            "message": self.message if self.message is not None else "",
            "tags": list(self.tags),
        }
        event.update(self.meta)
        optional = (
            ("error", self.error),
            ("group_id", self.group_id),
            ("depth", self.depth or None),
            ("stage", self.stage),
            ("service", self.service),
            ("version", self.version),
            ("host_id", self.host_id),
            ("stack", self.stack),
            ("log_stack", self.log_stack),
            ("data", self.data),
        )
        for key, value in optional:
            if value is not None:
                event[key] = value
        return event


# =============================================================================
# Value Helpers
# =============================================================================


def _same(a: Any, b: Any) -> bool:
    if a is b:
        return True
    try:
        return bool(a == b)
    except Exception:
        return False


def exception_stack(error: BaseException) -> str | None:
    """The formatted traceback of a raised exception, else ``None``."""
    if error.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()


def exception_fields(error: BaseException) -> Iterator[tuple[str, Any]]:
    """Public attributes of an exception, plus ``__cause__`` as ``cause``."""
    attributes = getattr(error, "__dict__", {})
    for key, value in attributes.items():
        if key.startswith("_") or callable(value):
            continue
        yield key, value
    if error.__cause__ is not None and "cause" not in attributes:
        yield "cause", error.__cause__


def call_site_stack(message: str | None = None) -> str:
    """A stack trace of the current call site with polylog's own frames removed."""
    frames = [frame for frame in traceback.extract_stack() if not frame.filename.startswith(_PACKAGE_DIR)]
    lines = "".join(traceback.format_list(frames)).rstrip()
    if message:
        return f"{message}\n{lines}"
    return lines


def prune(
    value: Any,
    max_depth: int = 10,
    max_array_length: int = 10,
    drop_key: Callable[[str], bool] | None = None,
) -> Any:
    """Returns a JSON-safe copy of ``value``.

    Circular references become ``-circular-``, containers nested deeper than
    ``max_depth`` become ``-pruned-``, sequences are truncated to
    ``max_array_length`` items, and exceptions and unknown objects are
    converted to strings. Mapping keys for which ``drop_key`` returns true are
    removed at every depth.
    """
    ancestors: set[int] = set()

    def walk(item: Any, depth: int) -> Any:
        if item is None or isinstance(item, SCALARS):
            return item
        if isinstance(item, BaseException):
            return object_to_string(item, max_depth, max_array_length)
        if isinstance(item, (datetime, date)):
            return item.isoformat()
        if isinstance(item, bytes):
            return item.decode("utf-8", errors="replace")

        if isinstance(item, Mapping):
            children: Any = item
        elif isinstance(item, (list, tuple, set, frozenset)):
            children = item
        elif hasattr(item, "__dict__") and type(item).__str__ is object.__str__:
            children = {key: val for key, val in vars(item).items() if not key.startswith("_")}
        else:
            return str(item)

        if depth >= max_depth:
            return PRUNED
        if id(item) in ancestors:
            return CIRCULAR

        ancestors.add(id(item))
        try:
            if isinstance(children, Mapping):
                result: Any = {}
                for key, val in children.items():
                    key = str(key)
                    if callable(val) or (drop_key is not None and drop_key(key)):
                        continue
                    result[key] = walk(val, depth + 1)
            else:
                result = [walk(val, depth + 1) for index, val in enumerate(children) if index < max_array_length]
        finally:
            ancestors.discard(id(item))
        return result

    return walk(value, 0)


def stringify(value: Any, max_depth: int = 10, max_array_length: int = 10) -> str:
    """Bounded string form of a list or other container."""
    return repr(prune(value, max_depth, max_array_length))


def object_to_string(value: Any, max_depth: int = 10, max_array_length: int = 10) -> str | None:
    """Converts a value to a message string, or ``None`` if it has no sensible one."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return stringify(value, max_depth, max_array_length)
    if isinstance(value, BaseException):
        return str(value) or type(value).__name__
    if isinstance(value, SCALARS):
        return str(value)
    if isinstance(value, Mapping):
        message = value.get("message")
        if message is None or isinstance(message, Mapping):
            return None
        return object_to_string(message, max_depth, max_array_length)
    # Allow the object to speak for itself
    if type(value).__str__ is not object.__str__:
        return str(value)
    message = getattr(value, "message", None)
    if isinstance(message, SCALARS):
        return str(message)
    return None


# =============================================================================
# Record Builder
# =============================================================================


class _MergeState:
    """Collects data keys, diverting colliding context values into ``context_data``."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.context_data: dict[str, Any] = {}

    def put(self, key: str, value: Any) -> None:
        if key in self.data and not _same(self.data[key], value):
            # message and context overlap
            if value is None or (isinstance(value, SCALARS) and not value):
                return
            self.context_data[key] = value
            return
        self.data[key] = value


class RecordBuilder:
    """Builds ``LogRecord`` objects for decisions made by the policy engine."""

    def __init__(
        self,
        options: LoggersOptions,
        levels: LevelTable,
        *,
        host_id: str | None = None,
        clock: Callable[[], str] = now,
    ):
        self.levels = levels
        self.redact: dict[str, RedactRule] = dict(options.redact)
        self.meta_keys = [key for key in options.meta_keys if key not in ("message", "stack")]
        self.max_depth = options.max_depth
        self.max_array_length = options.max_array_length
        self.stage = options.stage
        self.service = options.service
        self.version = options.version
        self.host_id = host_id
        self.clock = clock

    # -------------------------------------------------------------------------
    # Redaction
    # -------------------------------------------------------------------------

    def is_redacted(self, key: str, severity: str, tags: Mapping[str, Any]) -> bool:
        rule = self.redact.get(key)
        if rule is None:
            return False
        if rule.tags and not any(tags.get(tag) for tag in rule.tags):
            return False
        if rule.allow_level and self.levels.admits(rule.allow_level, severity):
            return False
        return True

    def redactor(self, decision: Decision) -> Callable[[str], bool] | None:
        if not self.redact:
            return None
        return lambda key: self.is_redacted(key, decision.severity, decision.tags)

    # -------------------------------------------------------------------------
    # Merging
    # -------------------------------------------------------------------------

    def to_string(self, value: Any) -> str | None:
        return object_to_string(value, self.max_depth, self.max_array_length)

    def _copy_item(self, state: _MergeState, item: Any, redacted: Callable[[str], bool]) -> None:
        def put(key: str, value: Any) -> None:
            if not redacted(key):
                state.put(key, value)

        if isinstance(item, BaseException):
            for key, value in exception_fields(item):
                if key not in ("message", "stack"):
                    put(key, value)
            stack = exception_stack(item)
            if stack:
                put("stack", stack)
            put("message", self.to_string(item))
            return

        if isinstance(item, (list, tuple)):
            put("message", self.to_string(item))
            return

        if isinstance(item, SCALARS):
            put("message", str(item))
            return

        if isinstance(item, Mapping):
            fields: Mapping[str, Any] = item
        elif hasattr(item, "__dict__"):
            fields = {key: value for key, value in vars(item).items() if not key.startswith("_")}
        else:
            fields = {}

        for key, value in fields.items():
            if callable(value) or key in ("message", "stack"):
                continue
            put(str(key), value)

        stack = fields.get("stack")
        if isinstance(stack, str) and stack:
            put("stack", stack)

        message = self.to_string(item)
        if message:
            put("message", message)

    def _normalize(self, message: Any, context: Any) -> tuple[Any, Any]:
        # { "message": "Foo", "a": 5 } as the message: the other keys join the context
        if isinstance(message, Mapping) and message.get("message"):
            rest = {key: value for key, value in message.items() if key != "message"}
            if rest:
                if isinstance(context, Mapping):
                    context = {**context, **rest}
                elif context is None:
                    context = rest
                else:
                    context = {**self._context_to_dict(context), **rest}
            message = message["message"]
        return message, self._context_to_dict(context)

    def _context_to_dict(self, context: Any) -> Any:
        if context is None or isinstance(context, Mapping):
            return context
        if isinstance(context, BaseException):
            return {"error": context}
        if isinstance(context, (list, tuple)):
            return {"message": self.to_string(context)}
        if callable(context):
            return None
        if isinstance(context, SCALARS):
            return {"message": str(context)}
        return context

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def build(
        self,
        decision: Decision,
        message: Any = None,
        context: Any = None,
        depth: int = 0,
    ) -> tuple[LogRecord, dict[str, Any] | None]:
        """Create one record.

        Returns:
            The record and the context values that collided with message
            values (``None`` when nothing collided)
        """
        severity = decision.severity
        tags = decision.tags
        redacted = self.redactor(decision) or (lambda key: False)

        message, context = self._normalize(message, context)

        state = _MergeState()
        for item in (message, context):
            if item is None or (callable(item) and not isinstance(item, BaseException)):
                continue
            self._copy_item(state, item, redacted)

        data = state.data
        meta: dict[str, Any] = {}
        for key in self.meta_keys:
            value = data.get(key)
            if isinstance(value, SCALARS) and value != "":
                meta[key] = data.pop(key)

        text = data.pop("message", None)
        stack = data.pop("stack", None)
        if stack is not None and not isinstance(stack, str):
            data["stack"] = stack
            stack = None

        record = LogRecord(
            timestamp=self.clock(),
            category=decision.category,
            level=severity,
            tags=self._tag_list(severity, tags),
            message=text if text is None else str(text),
            meta=meta,
            stage=self.stage,
            service=self.service,
            version=self.version,
            host_id=self.host_id,
            stack=stack,
            data=data or None,
            depth=depth,
        )

        if depth == 0 and self._wants_stack(severity, tags):
            synthetic = call_site_stack(record.message)
            if record.stack:
                record.log_stack = synthetic
            else:
                record.stack = synthetic

        return record, state.context_data or None

    def _wants_stack(self, severity: str, tags: Mapping[str, Any]) -> bool:
        add_stack = severity == "error"
        if tags.get(NO_LOG_STACK_TAG) is not None:
            add_stack = not tags[NO_LOG_STACK_TAG]
        if tags.get(LOG_STACK_TAG) is not None:
            add_stack = bool(tags[LOG_STACK_TAG])
        return add_stack

    @staticmethod
    def _tag_list(severity: str, tags: Mapping[str, Any]) -> list[str]:
        names = [severity]
        for tag, value in tags.items():
            if value and tag != severity and tag not in (LOG_STACK_TAG, NO_LOG_STACK_TAG) and tag not in names:
                names.append(tag)
        return names
