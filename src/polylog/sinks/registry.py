"""
Per-category sink sets.

A ``SinkSet`` holds the live sinks of one category. Sets are created lazily
by ``SinkRegistry.get``; a set is registered before its sinks are created so
that a lookup made while they are being created (a sink reporting its own
construction failure, for example) gets the same, partially filled set.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

from .base import BaseSink
from .remote import RemoteSink

if TYPE_CHECKING:
    from polylog.levels import LevelTable
    from polylog.policy import Decision
    from polylog.records import LogRecord

SinkFactory = Callable[["SinkSet"], None]


class SinkSet:
    """Live sinks of one category."""

    def __init__(self, category: str):
        self.category = category
        self.sinks: list[BaseSink] = []
        self.ready = False

    def add(self, sink: BaseSink) -> None:
        self.sinks.append(sink)

    def get(self, name: str) -> BaseSink | None:
        for sink in self.sinks:
            if sink.name == name:
                return sink
        return None

    def __iter__(self) -> Iterator[BaseSink]:
        return iter(self.sinks)

    def __len__(self) -> int:
        return len(self.sinks)

    def emit(self, decision: "Decision", record: "LogRecord", levels: "LevelTable") -> list[tuple[BaseSink, Exception]]:
        """Hand ``record`` to every enabled sink whose level admits it.

        Returns:
            ``(sink, error)`` for every sink that raised
        """
        failures: list[tuple[BaseSink, Exception]] = []
        for sink in self.sinks:
            if not decision.sink_enabled(sink.name) or not levels.admits(sink.level, record.level):
                continue
            try:
                sink.emit(record)
            except Exception as error:
                failures.append((sink, error))
        return failures

    async def close(self) -> list[tuple[BaseSink, BaseException]]:
        """Close every sink concurrently; one failure does not stop the others."""
        results = await asyncio.gather(*(sink.close() for sink in self.sinks), return_exceptions=True)
        return [
            (sink, result)
            for sink, result in zip(self.sinks, results)
            if isinstance(result, BaseException)
        ]

    def __repr__(self) -> str:
        return f"SinkSet({self.category!r}, {self.sinks!r})"


class SinkRegistry:
    """Category -> ``SinkSet``, created on first use."""

    def __init__(self, factory: SinkFactory):
        self._factory = factory
        self._sets: dict[str, SinkSet] = {}

    def get(self, category: str) -> SinkSet:
        sink_set = self._sets.get(category)
        if sink_set is not None:
            return sink_set

        sink_set = self._sets[category] = SinkSet(category)
        try:
            self._factory(sink_set)
        finally:
            sink_set.ready = True
        return sink_set

    def __contains__(self, category: object) -> bool:
        return category in self._sets

    def items(self) -> list[tuple[str, SinkSet]]:
        return list(self._sets.items())

    def pop(self, category: str) -> SinkSet | None:
        return self._sets.pop(category, None)

    def clear(self) -> None:
        self._sets.clear()

    def remote_sinks(self) -> list[RemoteSink]:
        return [sink for sink_set in self._sets.values() for sink in sink_set if isinstance(sink, RemoteSink)]
