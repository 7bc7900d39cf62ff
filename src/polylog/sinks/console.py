"""
Console sink.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

from polylog.formatters import ConsoleFormatter

from .base import BaseSink

if TYPE_CHECKING:
    from polylog.records import LogRecord


class ConsoleSink(BaseSink):
    """Standard I/O sink.

    Args:
        level: Least severe level to output
        colors: Output ANSI colors
        data: Output data, stacks and the secondary records of a group
        stream: Output stream (default: stdout)
    """

    def __init__(self, level: str, *, colors: bool = True, data: bool = False, stream: Any = None):
        super().__init__("console", level)
        self._colors = colors
        self._data = data
        self._stream = stream

    @property
    def stream(self) -> Any:
        # Resolved late so redirected/captured stdout is honored
        return self._stream or sys.stdout

    def emit(self, record: "LogRecord") -> None:
        # Plain consoles show only the root record of a group
        if record.depth and not self._data:
            return
        output = ConsoleFormatter.format(record.to_dict(), use_color=self._colors, show_data=self._data)
        stream = self.stream
        stream.write(output + "\n")
        stream.flush()
