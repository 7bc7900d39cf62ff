"""
polylog: structured logging routed to console, file, error file and remote
sinks by severity and tags.
"""

from polylog.config import LoggersOptions, PolylogSettings
from polylog.exceptions import CategoryError, ConfigurationError, LifecycleError, PolylogError
from polylog.interceptors import RedirectStdLibHandler, intercept_stdlib_logging
from polylog.levels import LEVELS, combine_tags, merge_context
from polylog.logger import ScopedLogger
from polylog.loggers import Loggers
from polylog.records import LogRecord

__all__ = [
    "CategoryError",
    "ConfigurationError",
    "LEVELS",
    "LifecycleError",
    "LogRecord",
    "Loggers",
    "LoggersOptions",
    "PolylogError",
    "PolylogSettings",
    "RedirectStdLibHandler",
    "ScopedLogger",
    "combine_tags",
    "intercept_stdlib_logging",
    "merge_context",
]
