"""
polylog configuration.

Construction options are pydantic models (``LoggersOptions``); environment
overrides are pydantic-settings classes, each with its own prefix:

    CONSOLE_COLORS / CONSOLE_DATA   console switches
    GOOGLE_CLOUD_PROJECT            fallback remote project
    POLYLOG_*                       ``Loggers.from_settings()``
"""

from .environment import ConsoleSettings, GCloudSettings, PolylogSettings
from .options import (
    DEFAULT_ERROR_KEYS,
    DEFAULT_META_KEYS,
    REMOTE_ERROR_CATEGORY,
    SINK_NAMES,
    CategoryOptions,
    ConsoleOptions,
    FileOptions,
    LoggersOptions,
    RedactRule,
    RemoteCategoryOptions,
    RemoteOptions,
    SayOptions,
    TagRule,
    parse_age,
    parse_size,
)

__all__ = [
    "CategoryOptions",
    "ConsoleOptions",
    "ConsoleSettings",
    "DEFAULT_ERROR_KEYS",
    "DEFAULT_META_KEYS",
    "FileOptions",
    "GCloudSettings",
    "LoggersOptions",
    "PolylogSettings",
    "REMOTE_ERROR_CATEGORY",
    "RedactRule",
    "RemoteCategoryOptions",
    "RemoteOptions",
    "SINK_NAMES",
    "SayOptions",
    "TagRule",
    "parse_age",
    "parse_size",
]
