"""
远程 sink 单元测试

使用伪造的 Google Cloud Logging 客户端，测试批量上传、级别映射、
stream 标签、定时上传、错误回调与可忽略错误。
"""

from __future__ import annotations

import asyncio
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from polylog.sinks import SEVERITY_MAP, RemoteSink, is_ignorable_error


def _entry(level: str = "info", message: str = "m") -> SimpleNamespace:
    return SimpleNamespace(to_dict=lambda: {"level": level, "message": message})


@pytest.fixture
def client():
    return MagicMock()


def _sink(client, **kwargs) -> RemoteSink:
    kwargs.setdefault("upload_rate", 60)
    return RemoteSink(
        "info",
        log_name="app",
        stream_name="2024-01-02 030405 host",
        project="proj",
        client_factory=lambda project: client(project),
        **kwargs,
    )


class TestUpload:
    """上传测试"""

    @pytest.mark.asyncio
    async def test_flush_uploads_batch(self, client) -> None:
        """flush 将排队记录作为一个批次上传"""
        sink = _sink(client)
        sink.emit(_entry("warn", "a"))
        sink.emit(_entry("silly", "b"))
        assert sink.pending == 2

        assert await sink.flush(5)
        assert sink.pending == 0

        client.assert_called_once_with("proj")
        client.return_value.logger.assert_called_once_with("app")
        batch = client.return_value.logger.return_value.batch.return_value
        calls = batch.log_struct.call_args_list
        assert [call.args[0]["message"] for call in calls] == ["a", "b"]
        assert [call.kwargs["severity"] for call in calls] == ["WARNING", "DEBUG"]
        assert calls[0].kwargs["labels"] == {"stream": "2024-01-02 030405 host"}
        batch.commit.assert_called_once()
        await sink.close()
        client.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_timer_uploads(self, client) -> None:
        """运行中的事件循环按 upload_rate 定时上传"""
        sink = _sink(client, upload_rate=0.01)
        sink.emit(_entry())
        for _ in range(100):
            await asyncio.sleep(0.01)
            if sink.pending == 0 and not sink.uploading:
                break
        batch = client.return_value.logger.return_value.batch.return_value
        batch.commit.assert_called_once()
        await sink.close()

    def test_emit_without_loop_waits_for_flush(self, client) -> None:
        """没有事件循环时记录保留到 flush"""
        sink = _sink(client)
        sink.emit(_entry())
        assert sink.pending == 1
        assert not sink.uploading
        client.assert_not_called()

    def test_full_batch_uploads_without_loop(self, client) -> None:
        """没有事件循环时，队列达到 max_batch 即同步上传"""
        sink = _sink(client, max_batch=2)
        sink.emit(_entry(message="a"))
        assert sink.pending == 1
        sink.emit(_entry(message="b"))

        assert sink.pending == 0
        batch = client.return_value.logger.return_value.batch.return_value
        assert [call.args[0]["message"] for call in batch.log_struct.call_args_list] == ["a", "b"]
        batch.commit.assert_called_once()

    def test_interval_uploads_without_loop(self, client) -> None:
        """没有事件循环时，超过 upload_rate 即同步上传，错误交给 on_error"""
        errors = []
        batch = client.return_value.logger.return_value.batch.return_value
        batch.commit.side_effect = RuntimeError("denied")
        sink = _sink(client, upload_rate=0.001, on_error=errors.append)
        time.sleep(0.01)
        sink.emit(_entry())

        assert sink.pending == 0
        assert [str(error) for error in errors] == ["denied"]

    @pytest.mark.asyncio
    async def test_flush_with_nothing_queued(self, client) -> None:
        """没有排队记录时 flush 立即返回 True"""
        assert await _sink(client).flush(0.1)
        client.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_error_goes_to_on_error(self, client) -> None:
        """上传异常交给 on_error，不会抛出"""
        errors = []
        batch = client.return_value.logger.return_value.batch.return_value
        batch.commit.side_effect = RuntimeError("denied")
        sink = _sink(client, on_error=errors.append)
        sink.emit(_entry())

        assert await sink.flush(5)
        assert [str(error) for error in errors] == ["denied"]

    def test_severity_map_covers_every_level(self) -> None:
        """每个级别都映射到 Cloud Logging 严重级别"""
        assert SEVERITY_MAP["fail"] == "CRITICAL"
        assert SEVERITY_MAP["error"] == "ERROR"
        assert set(SEVERITY_MAP) == {"fail", "error", "warn", "info", "more", "verbose", "http", "debug", "silly"}


class TestIgnorableErrors:
    """可忽略错误测试"""

    def test_throttling_and_duplicates(self) -> None:
        """限流与重复提交错误可忽略"""
        assert is_ignorable_error(google_exceptions.TooManyRequests("slow"))
        assert is_ignorable_error(google_exceptions.ResourceExhausted("quota"))
        assert is_ignorable_error(google_exceptions.AlreadyExists("dup"))

    def test_error_codes(self) -> None:
        """按 code 属性识别"""
        error = RuntimeError("throttled")
        error.code = "ThrottlingException"
        assert is_ignorable_error(error)

    def test_other_errors(self) -> None:
        """其他错误不可忽略"""
        assert not is_ignorable_error(RuntimeError("boom"))
        assert not is_ignorable_error(google_exceptions.PermissionDenied("no"))
