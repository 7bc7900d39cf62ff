"""
Remote sink: batches records to Google Cloud Logging.

Records are queued by ``emit`` and uploaded in batches every
``upload_rate`` seconds while an event loop is running, and by ``flush``.
Uploads run in a worker thread; a flush timeout never cancels an upload
that is already in flight. Without a running loop, ``emit`` uploads inline
once ``max_batch`` records are queued or ``upload_rate`` seconds have passed.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional

from google.api_core import exceptions as google_exceptions

from .base import BaseSink

if TYPE_CHECKING:
    from google.cloud.logging import Client as GCloudLoggingClient

    from polylog.records import LogRecord

SEVERITY_MAP = {
    "fail": "CRITICAL",
    "error": "ERROR",
    "warn": "WARNING",
    "info": "INFO",
    "more": "DEBUG",
    "verbose": "DEBUG",
    "http": "DEBUG",
    "debug": "DEBUG",
    "silly": "DEBUG",
}

# Throttling and already-accepted batches are not failures
_IGNORED_ERRORS = (
    google_exceptions.TooManyRequests,
    google_exceptions.ResourceExhausted,
    google_exceptions.AlreadyExists,
    google_exceptions.Conflict,
)
_IGNORED_CODES = {"ThrottlingException", "DataAlreadyAcceptedException", "InvalidParameterException"}


def is_ignorable_error(error: BaseException) -> bool:
    """Whether an upload error from the remote service is non-fatal."""
    if isinstance(error, _IGNORED_ERRORS):
        return True
    return getattr(error, "code", None) in _IGNORED_CODES


def _default_client_factory(project: Optional[str]) -> "GCloudLoggingClient":
    from google.cloud import logging as gcloud_logging

    return gcloud_logging.Client(project=project)


class RemoteSink(BaseSink):
    """Google Cloud Logging sink.

    Args:
        level: Least severe level to upload
        log_name: Log name (the aggregation group)
        stream_name: Value of the ``stream`` label attached to every entry
        project: Google Cloud project
        upload_rate: Seconds between uploads
        max_batch: Queued records that force an inline upload when no loop is running
        on_error: Called with upload exceptions; never raised
        client_factory: Creates the logging client (tests)
    """

    def __init__(
        self,
        level: str,
        *,
        log_name: str,
        stream_name: str,
        project: Optional[str] = None,
        upload_rate: float = 2.0,
        max_batch: int = 500,
        on_error: Optional[Callable[[BaseException], None]] = None,
        client_factory: Callable[[Optional[str]], Any] = _default_client_factory,
    ):
        super().__init__("remote", level)
        self.log_name = log_name
        self.stream_name = stream_name
        self.project = project
        self.upload_rate = upload_rate
        self.max_batch = max_batch
        self._on_error = on_error
        self._client_factory = client_factory
        self._client: Any = None
        self._logger: Any = None
        self._pending: list[dict[str, Any]] = []
        self._inflight: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._timer_loop: Optional[asyncio.AbstractEventLoop] = None
        self._last_upload = time.monotonic()

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def uploading(self) -> bool:
        inflight = self._inflight
        # A task left on a closed loop never completes
        return inflight is not None and not inflight.done() and not inflight.get_loop().is_closed()

    def emit(self, record: "LogRecord") -> None:
        self._pending.append(record.to_dict())
        self._schedule()

    # -------------------------------------------------------------------------
    # Uploads
    # -------------------------------------------------------------------------

    def _schedule(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._upload_without_loop()
            return
        if self._timer is not None and self._timer_loop is loop:
            return
        self._timer_loop = loop
        self._timer = loop.call_later(self.upload_rate, self._on_timer)

    def _upload_without_loop(self) -> None:
        if self.uploading or not self._pending:
            return
        if len(self._pending) < self.max_batch and time.monotonic() - self._last_upload < self.upload_rate:
            return
        batch, self._pending = self._pending, []
        self._last_upload = time.monotonic()
        try:
            self._write_batch(batch)
        except Exception as error:
            self._report(error)

    def _on_timer(self) -> None:
        self._timer = None
        if self.uploading:
            self._schedule()
            return
        self._start_upload()

    def _start_upload(self) -> Optional[asyncio.Future]:
        if not self._pending:
            return None
        batch, self._pending = self._pending, []
        self._last_upload = time.monotonic()
        self._inflight = asyncio.ensure_future(self._upload(batch))
        return self._inflight

    async def _upload(self, batch: list[dict[str, Any]]) -> None:
        try:
            await asyncio.to_thread(self._write_batch, batch)
        except Exception as error:
            self._report(error)

    def _write_batch(self, batch: list[dict[str, Any]]) -> None:
        if self._logger is None:
            self._client = self._client_factory(self.project)
            self._logger = self._client.logger(self.log_name)
        writer = self._logger.batch()
        labels = {"stream": self.stream_name}
        for entry in batch:
            severity = SEVERITY_MAP.get(str(entry.get("level")), "DEFAULT")
            writer.log_struct(entry, severity=severity, labels=labels)
        writer.commit()

    def _report(self, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(error)

    async def flush(self, timeout: float) -> bool:
        """Upload everything queued so far.

        Returns:
            ``False`` if ``timeout`` seconds passed first; the upload keeps running
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if self.uploading:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return False
                done, _ = await asyncio.wait({self._inflight}, timeout=remaining)
                if not done:
                    return False
            if not self._pending:
                return True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._start_upload()

    async def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._client is not None:
            close = getattr(self._client, "close", None)
            self._client = None
            self._logger = None
            if close is not None:
                close()
