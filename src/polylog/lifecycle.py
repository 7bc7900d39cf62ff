"""
Lifecycle coordinator.

    STOPPED --start()--> STARTING --> READY --stop()--> STOPPING --> STOPPED

``stop()`` runs at most one close sequence at a time; callers arriving while
it runs wait on a FIFO queue and resume when it completes.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from collections import deque
from collections.abc import Callable
from enum import Enum
from typing import Any, Optional

from polylog.exceptions import LifecycleError
from polylog.sinks.registry import SinkRegistry
from polylog.sinks.remote import is_ignorable_error

FLUSH_NOTICE_DELAY = 2.5


class LifecycleState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"


# =============================================================================
# Uncaught Exception Hooks
# =============================================================================


class UncaughtHooks:
    """Routes unhandled exceptions to ``handler``.

    Covers ``sys.excepthook``, ``threading.excepthook`` and the exception
    handler of the running event loop. A loop started after ``install`` (by
    ``asyncio.run``, for example) is covered from the first
    ``attach_running_loop`` call made inside it. The previous hooks still
    run after ``handler``.
    """

    def __init__(self, handler: Callable[[BaseException, str], None]):
        self._handler = handler
        self._installed = False
        self._previous_excepthook: Any = None
        self._previous_threading_hook: Any = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_loop_handler: Any = None

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if self._installed:
            return
        self._installed = True

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

        self._previous_threading_hook = threading.excepthook
        threading.excepthook = self._threading_hook

        self.attach_running_loop()

    def attach_running_loop(self) -> None:
        """Take over the exception handler of the running loop, once per loop."""
        if not self._installed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if loop is self._loop:
            return
        self._detach_loop()
        self._loop = loop
        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._loop_handler)

    def _detach_loop(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            if self._loop.get_exception_handler() == self._loop_handler:
                self._loop.set_exception_handler(self._previous_loop_handler)
        self._loop = None
        self._previous_loop_handler = None

    def remove(self) -> None:
        if not self._installed:
            return
        self._installed = False

        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook
        if threading.excepthook == self._threading_hook:
            threading.excepthook = self._previous_threading_hook
        self._detach_loop()

    def _report(self, error: Optional[BaseException], message: str) -> None:
        if error is None:
            return
        try:
            self._handler(error, message)
        except Exception:
            pass  # The previous hook still reports it

    def _excepthook(self, exc_type: Any, exc_value: BaseException, exc_tb: Any) -> None:
        self._report(exc_value, "Uncaught exception")
        self._previous_excepthook(exc_type, exc_value, exc_tb)

    def _threading_hook(self, args: threading.ExceptHookArgs) -> None:
        thread = args.thread.name if args.thread is not None else "thread"
        self._report(args.exc_value, f"Uncaught exception in {thread}")
        self._previous_threading_hook(args)

    def _loop_handler(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        self._report(context.get("exception"), context.get("message") or "Unhandled exception in event loop")
        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)


# =============================================================================
# Coordinator
# =============================================================================


class LifecycleCoordinator:
    """Owns the lifecycle state, the uncaught hooks and the stop sequence.

    Args:
        sinks: Live sink sets; emptied by ``stop``
        error_category: Category whose sinks close last
        flush_timeout: Seconds ``flush`` waits for remote sinks
        on_uncaught: Logs an unhandled exception
        report: Logs a sink failure under the failure-reporting category
        notice: Writes a side-channel notice
        say_flushing: Emit a notice when a flush takes longer than 2.5s
    """

    def __init__(
        self,
        sinks: SinkRegistry,
        *,
        error_category: str,
        flush_timeout: float,
        on_uncaught: Callable[[BaseException, str], None],
        report: Callable[[str, BaseException], None],
        notice: Callable[[str], None],
        say_flushing: bool = True,
        say_flushed: bool = True,
    ):
        self.state = LifecycleState.STOPPED
        self._sinks = sinks
        self._error_category = error_category
        self._flush_timeout = flush_timeout
        self._report = report
        self._notice = notice
        self._say_flushing = say_flushing
        self._say_flushed = say_flushed
        self._hooks = UncaughtHooks(on_uncaught)
        self._waiters: deque[asyncio.Future] = deque()
        self.close_count = 0

    @property
    def hooks(self) -> UncaughtHooks:
        return self._hooks

    def is_ready(self) -> bool:
        return self.state is LifecycleState.READY

    @property
    def stopping(self) -> bool:
        return self.state is LifecycleState.STOPPING

    @property
    def stopped(self) -> bool:
        return self.state is LifecycleState.STOPPED

    def start(self, on_starting: Optional[Callable[[], None]] = None) -> None:
        """Install the uncaught hooks and become ready.

        Raises:
            LifecycleError: Not currently stopped
        """
        if self.state is not LifecycleState.STOPPED:
            raise LifecycleError(f"Unable to start while {self.state.value}", state=self.state.value)
        self.state = LifecycleState.STARTING
        try:
            if on_starting is not None:
                on_starting()
            self._hooks.install()
        except BaseException:
            self.state = LifecycleState.STOPPED
            raise
        self.state = LifecycleState.READY

    async def stop(
        self,
        on_stopping: Optional[Callable[[], None]] = None,
        on_stopped: Optional[Callable[[], None]] = None,
    ) -> None:
        """Run the close sequence, or wait for the one in flight."""
        if self.state is LifecycleState.STOPPED:
            return

        if self.state is LifecycleState.STOPPING:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            await waiter
            return

        if on_stopping is not None:
            on_stopping()
        self.state = LifecycleState.STOPPING
        try:
            await self._close()
        finally:
            self._hooks.remove()
            self.state = LifecycleState.STOPPED
            if on_stopped is not None:
                on_stopped()
            while self._waiters:
                waiter = self._waiters.popleft()
                if not waiter.done():
                    waiter.set_result(None)

    async def _close(self) -> None:
        self.close_count += 1
        await self.flush()

        sink_sets = [(category, sink_set) for category, sink_set in self._sinks.items() if category != self._error_category]
        results = await asyncio.gather(*(sink_set.close() for _, sink_set in sink_sets))
        for (category, _), failures in zip(sink_sets, results):
            for sink, error in failures:
                self._report(f"Closing the {sink.name} sink of {category} failed", error)
            self._sinks.pop(category)

        # Closing can enqueue more failure records
        await self.flush()

        error_set = self._sinks.pop(self._error_category)
        if error_set is not None:
            for sink, error in await error_set.close():
                self._notice(f"Closing the {sink.name} sink of {self._error_category} failed: {error!r}")
        self._sinks.clear()

    async def flush(self) -> None:
        """Flush every remote sink, waiting up to ``flush_timeout`` seconds."""
        self._hooks.attach_running_loop()
        remote_sinks = [sink for sink in self._sinks.remote_sinks() if sink.pending or sink.uploading]
        if not remote_sinks:
            return

        noticed = False

        def notice() -> None:
            nonlocal noticed
            noticed = True
            self._notice(f"Waiting up to {self._flush_timeout:g}s to flush remote logs")

        handle = None
        if self._say_flushing:
            handle = asyncio.get_running_loop().call_later(FLUSH_NOTICE_DELAY, notice)
        try:
            results = await asyncio.gather(
                *(sink.flush(self._flush_timeout) for sink in remote_sinks),
                return_exceptions=True,
            )
        finally:
            if handle is not None:
                handle.cancel()

        for sink, result in zip(remote_sinks, results):
            if isinstance(result, BaseException):
                if not is_ignorable_error(result):
                    self._report("Flushing remote logs failed", result)
            elif result is False:
                self._notice(f"Timed out after {self._flush_timeout:g}s flushing remote logs ({sink.pending} pending)")

        if noticed and self._say_flushed:
            self._notice("Flushed remote logs")
