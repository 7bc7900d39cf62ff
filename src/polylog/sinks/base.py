"""
Log sink abstraction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from polylog.records import LogRecord


def orjson_dumps(v: Any, *, default: Any = None) -> str:
    """Fast JSON serialization using orjson."""
    return orjson.dumps(v, default=default or str, option=orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC).decode()


# =============================================================================
# Sink Abstraction (Strategy Pattern)
# =============================================================================


class BaseSink(ABC):
    """Abstract base class for log sinks.

    Args:
        name: One of ``file``, ``error_file``, ``remote``, ``console``
        level: Least severe level the sink accepts
    """

    def __init__(self, name: str, level: str):
        self.name = name
        self.level = level

    @abstractmethod
    def emit(self, record: "LogRecord") -> None:
        """Emit a log record to the sink."""
        ...

    async def close(self) -> None:
        """Close the sink and release resources."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, level={self.level!r})"
