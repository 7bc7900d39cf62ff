"""
Rotating file sink (JSON lines).

Files are named ``{prefix}-YYYY-MM-DD-HH.log``. A new file starts every hour
and whenever the current file exceeds ``max_bytes`` (``.1``, ``.2``... are
appended before the extension). Files older than ``max_age`` seconds are
deleted when a new file is opened.
"""

from __future__ import annotations

import glob
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import IO, TYPE_CHECKING, Optional

from .base import BaseSink, orjson_dumps

if TYPE_CHECKING:
    from polylog.records import LogRecord

PERIOD_FORMAT = "%Y-%m-%d-%H"

_UNSAFE = re.compile(r"[^\w.-]+")


def safe_prefix(category: str) -> str:
    """Category name usable as a file name prefix ('@log/remote-error' -> 'log_remote-error')."""
    return _UNSAFE.sub("_", category).strip("_") or "log"


class RotatingFileSink(BaseSink):
    """Local file sink with size and age rotation."""

    def __init__(
        self,
        name: str,
        level: str,
        directory: str | Path,
        prefix: str,
        *,
        max_bytes: int = 20 * 1024 * 1024,
        max_age: float = 14 * 86400.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(name, level)
        self._directory = Path(directory)
        self._prefix = prefix
        self._max_bytes = max_bytes
        self._max_age = max_age
        self._clock = clock
        self._file: Optional[IO[str]] = None
        self._period: Optional[str] = None
        self._index = 0

    @property
    def path(self) -> Optional[Path]:
        if self._period is None:
            return None
        return self._path_for(self._period, self._index)

    def _path_for(self, period: str, index: int) -> Path:
        suffix = f".{index}" if index else ""
        return self._directory / f"{self._prefix}-{period}{suffix}.log"

    def _ensure_open(self) -> IO[str]:
        period = time.strftime(PERIOD_FORMAT, time.localtime(self._clock()))
        if self._file is not None and period == self._period:
            return self._file

        self._close_file()
        self._period = period
        self._index = 0
        self._purge()

        # Continue the newest file of this period that still has room
        while True:
            path = self._path_for(period, self._index)
            if not path.exists() or path.stat().st_size < self._max_bytes:
                break
            self._index += 1

        self._file = open(path, "a", encoding="utf-8")
        return self._file

    def _maybe_rotate(self) -> None:
        if self._file is None or self._period is None:
            return
        if self._file.tell() >= self._max_bytes:
            self._close_file()
            self._index += 1
            self._file = open(self._path_for(self._period, self._index), "a", encoding="utf-8")

    def _purge(self) -> None:
        cutoff = self._clock() - self._max_age
        pattern = str(self._directory / f"{glob.escape(self._prefix)}-*.log")
        for name in glob.glob(pattern):
            path = Path(name)
            if path.stat().st_mtime < cutoff:
                path.unlink(missing_ok=True)

    def _close_file(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def emit(self, record: "LogRecord") -> None:
        file = self._ensure_open()
        file.write(orjson_dumps(record.to_dict()) + "\n")
        file.flush()
        self._maybe_rotate()

    async def close(self) -> None:
        self._close_file()
