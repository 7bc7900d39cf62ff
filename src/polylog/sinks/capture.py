"""
Test capture: records every dispatched record instead of performing I/O.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from polylog.config.options import SINK_NAMES

from .base import BaseSink

if TYPE_CHECKING:
    from polylog.records import LogRecord


class Capture:
    """Every record dispatched while ``unit_test`` is enabled."""

    def __init__(self) -> None:
        self.entries: list[LogRecord] = []
        self.group_ids: set[str] = set()
        self.data_count = 0
        self.sinks: dict[str, list[LogRecord]] = {name: [] for name in SINK_NAMES}

    def record(self, record: "LogRecord") -> None:
        self.entries.append(record)
        if record.group_id:
            self.group_ids.add(record.group_id)
        if record.data:
            self.data_count += 1

    def by_category(self, category: str) -> list["LogRecord"]:
        return [entry for entry in self.entries if entry.category == category]

    def clear(self) -> None:
        self.entries.clear()
        self.group_ids.clear()
        self.data_count = 0
        for entries in self.sinks.values():
            entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


class CaptureSink(BaseSink):
    """Stands in for a real sink in test-capture mode."""

    def __init__(self, name: str, level: str, capture: Capture):
        super().__init__(name, level)
        self._capture = capture

    def emit(self, record: "LogRecord") -> None:
        self._capture.sinks[self.name].append(record)
