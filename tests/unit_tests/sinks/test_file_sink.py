"""
滚动文件 sink 单元测试

测试 JSON 行输出、按大小滚动、过期文件清理与文件名前缀。
"""

from __future__ import annotations

import os
import time

import orjson
import pytest

from polylog.records import LogRecord
from polylog.sinks import RotatingFileSink, safe_prefix


def _record(message: str = "hello") -> LogRecord:
    return LogRecord(
        timestamp="2024-01-02T03:04:05.000+00:00",
        category="general",
        level="info",
        tags=["info"],
        message=message,
        data={"a": 1},
    )


class TestRotatingFileSink:
    """RotatingFileSink 测试"""

    @pytest.mark.asyncio
    async def test_writes_json_lines(self, tmp_path) -> None:
        """每条记录写成一行 JSON"""
        sink = RotatingFileSink("file", "info", tmp_path, "general")
        sink.emit(_record("one"))
        sink.emit(_record("two"))
        await sink.close()

        path = sink.path
        assert path.parent == tmp_path
        assert path.name.startswith("general-")
        lines = path.read_text(encoding="utf-8").splitlines()
        assert [orjson.loads(line)["message"] for line in lines] == ["one", "two"]
        assert orjson.loads(lines[0])["data"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_rotates_by_size(self, tmp_path) -> None:
        """超过 max_bytes 后写入带序号的新文件"""
        sink = RotatingFileSink("file", "info", tmp_path, "general", max_bytes=10, clock=lambda: 1704164400.0)
        sink.emit(_record("one"))
        sink.emit(_record("two"))
        await sink.close()

        paths = list(tmp_path.glob("general-*.log"))
        first = next(path for path in paths if path.name.count(".") == 1)
        second = next(path for path in paths if path.name.endswith(".1.log"))
        assert orjson.loads(first.read_text(encoding="utf-8"))["message"] == "one"
        assert orjson.loads(second.read_text(encoding="utf-8"))["message"] == "two"

    @pytest.mark.asyncio
    async def test_purges_old_files(self, tmp_path) -> None:
        """打开新文件时删除过期文件，其他前缀不受影响"""
        old = tmp_path / "general-2000-01-01-00.log"
        other = tmp_path / "other-2000-01-01-00.log"
        for path in (old, other):
            path.write_text("{}\n", encoding="utf-8")
            stale = time.time() - 3600
            os.utime(path, (stale, stale))

        sink = RotatingFileSink("file", "info", tmp_path, "general", max_age=60)
        sink.emit(_record())
        await sink.close()

        assert not old.exists()
        assert other.exists()

    @pytest.mark.asyncio
    async def test_new_file_every_hour(self, tmp_path) -> None:
        """整点切换到新的文件"""
        now = [time.mktime((2024, 1, 2, 3, 30, 0, 0, 0, -1))]
        sink = RotatingFileSink("file", "info", tmp_path, "general", clock=lambda: now[0])
        sink.emit(_record())
        assert sink.path.name == "general-2024-01-02-03.log"

        now[0] += 3600
        sink.emit(_record())
        await sink.close()
        assert sink.path.name == "general-2024-01-02-04.log"

    def test_safe_prefix(self) -> None:
        """类别名转换为安全的文件名前缀"""
        assert safe_prefix("@log/remote-error") == "log_remote-error"
        assert safe_prefix("general") == "general"
        assert safe_prefix("///") == "log"
