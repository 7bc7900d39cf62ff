"""
Interceptors for routing standard library logging through ``Loggers``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from polylog.loggers import Loggers

# Stdlib level -> polylog level (the first threshold the record reaches)
STDLIB_LEVELS = (
    (logging.CRITICAL, "fail"),
    (logging.ERROR, "error"),
    (logging.WARNING, "warn"),
    (logging.INFO, "info"),
    (logging.DEBUG, "debug"),
)


def stdlib_level(levelno: int) -> str:
    for threshold, name in STDLIB_LEVELS:
        if levelno >= threshold:
            return name
    return "silly"


class RedirectStdLibHandler(logging.Handler):
    """
    Redirect standard library logging records to ``Loggers``.
    Third-party libraries then reach the same sinks as application logs.
    """

    def __init__(self, loggers: "Loggers", category: Optional[str] = None, level: int = logging.NOTSET):
        super().__init__(level)
        self.loggers = loggers
        self.category = category

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Skip structlog's own records to avoid loops
            if "structlog" in record.name:
                return

            context = {"logger": self._simplify_logger_name(record.name)}
            if record.exc_info and record.exc_info[1] is not None:
                context["error"] = record.exc_info[1]  # type: ignore[assignment]

            self.loggers.log(stdlib_level(record.levelno), record.getMessage(), context, self.category)
        except Exception:
            self.handleError(record)

    @staticmethod
    def _simplify_logger_name(name: str) -> str:
        """
        Simplify a logger name for display.

        Rules:
        - "" -> "stdlib"
        - "uvicorn.access" -> "uvicorn.access"
        - Other -> keep last 2 parts
        """
        if not name:
            return "stdlib"
        parts = name.split(".")
        if len(parts) <= 2:
            return name
        return ".".join(parts[-2:])


def intercept_stdlib_logging(
    loggers: "Loggers",
    *,
    level: int = logging.INFO,
    names: Iterable[str] = (),
    category: Optional[str] = None,
) -> RedirectStdLibHandler:
    """Route the root logger, and the named loggers, through ``loggers``.

    Existing handlers of those loggers are removed; named loggers stop
    propagating so records are not logged twice.
    """
    handler = RedirectStdLibHandler(loggers, category)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    for name in names:
        logger = logging.getLogger(name)
        logger.handlers = [handler]
        logger.propagate = False

    return handler


def release_stdlib_logging(handler: RedirectStdLibHandler, *, names: Iterable[str] = ()) -> None:
    """Detach ``handler`` from the root logger and the named loggers."""
    logging.getLogger().removeHandler(handler)
    for name in names:
        logger = logging.getLogger(name)
        if handler in logger.handlers:
            logger.removeHandler(handler)
            logger.propagate = True
