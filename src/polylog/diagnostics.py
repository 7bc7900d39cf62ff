"""
Side channel for polylog's own notices (banner, flush/stop notices, dropped
records, sink failures).

Notices are rendered by structlog to stderr with a private processor chain;
the host application's structlog configuration is never touched.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from polylog.formatters import ConsoleFormatter

# structlog method name -> polylog level
_LEVEL_NAMES = {
    "critical": "fail",
    "exception": "error",
    "error": "error",
    "warning": "warn",
    "info": "info",
    "debug": "debug",
}


class _StderrProxy:
    """Resolves ``sys.stderr`` on every write so redirected streams are honored."""

    def write(self, text: str) -> None:
        sys.stderr.write(text)

    def flush(self) -> None:
        sys.stderr.flush()


# =============================================================================
# Structlog Processors
# =============================================================================


def add_level(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["level"] = _LEVEL_NAMES.get(method_name, method_name)
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO 8601 timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_logger_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Use the logger name as the console category column."""
    event_dict["category"] = event_dict.pop("_name", "polylog")
    return event_dict


def rename_event_key(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename 'event' to 'message'."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


class ConsoleRenderer:
    """Final processor: aligned console line, data inline."""

    def __init__(self, use_color: bool = False):
        self.use_color = use_color

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
        return ConsoleFormatter.format(event_dict, use_color=self.use_color, show_data=True)


# =============================================================================
# Loggers
# =============================================================================


def get_logger(name: str = "polylog", *, use_color: bool = False, file: Any = None) -> Any:
    """A structlog logger writing polylog's own notices to stderr.

    Args:
        name: Shown in the category column
        use_color: Output ANSI colors
        file: Output stream (default: the current ``sys.stderr``)
    """
    return structlog.wrap_logger(
        structlog.PrintLogger(file=file or _StderrProxy()),
        processors=[
            structlog.processors.format_exc_info,
            add_level,
            add_timestamp,
            add_logger_name,
            rename_event_key,
            ConsoleRenderer(use_color),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        cache_logger_on_first_use=False,
        _name=name,
    )
