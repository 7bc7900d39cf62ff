"""
``Loggers``: the shared registry behind every scoped logger.

One instance owns the validated options, the category registry, the policy
engine, the record builder, the error-graph flattener, the live sink sets and
the lifecycle coordinator. A log call flows through them in that order.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from polylog.args import LogArgs, check_category, normalize_args
from polylog.categories import CategoryRegistry
from polylog.config.environment import ConsoleSettings, GCloudSettings, PolylogSettings
from polylog.config.options import CategoryOptions, LoggersOptions
from polylog.diagnostics import get_logger
from polylog.exceptions import ConfigurationError
from polylog.flatten import ErrorGraphFlattener
from polylog.interceptors import RedirectStdLibHandler, intercept_stdlib_logging, release_stdlib_logging
from polylog.levels import DEFAULT, LevelTable
from polylog.lifecycle import LifecycleCoordinator, LifecycleState
from polylog.logger import LevelMethods, ScopedLogger
from polylog.policy import Decision, PolicyEngine
from polylog.records import LogRecord, RecordBuilder, now
from polylog.sinks import (
    Capture,
    CaptureSink,
    ConsoleSink,
    RemoteSink,
    RotatingFileSink,
    SinkRegistry,
    SinkSet,
    is_ignorable_error,
    safe_prefix,
)
from polylog.sinks.base import BaseSink


def host_identifier() -> str:
    """A stable identifier of this machine."""
    return f"{uuid.getnode():012x}"


def stream_name(created: str, host_id: str) -> str:
    """Remote stream name: start time and host id, colons removed."""
    return f"{created.replace('T', ' ')} {host_id}".replace(":", "")


def _validate_options(options: Any, overrides: Mapping[str, Any]) -> LoggersOptions:
    if isinstance(options, LoggersOptions):
        data: dict[str, Any] = options.model_dump()
    else:
        data = dict(options or {})
    data.update(overrides)

    # Environment overrides, read once
    console = data.get("console") or {}
    if isinstance(console, BaseModel):
        console = console.model_dump()
    data["console"] = {**console, **ConsoleSettings().overrides()}

    remote = data.get("remote") or {}
    if isinstance(remote, BaseModel):
        remote = remote.model_dump()
    if isinstance(remote, Mapping) and not remote.get("project"):
        project = GCloudSettings().google_cloud_project
        if project:
            remote = {**remote, "project": project}
    data["remote"] = remote

    try:
        return LoggersOptions.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError.from_validation(e) from e


class Loggers(LevelMethods):
    """Routes log calls to console, file, error file and remote sinks.

    Args:
        options: ``LoggersOptions`` or a mapping of its fields
        **overrides: Individual options; win over ``options``

    Raises:
        ConfigurationError: The options are invalid

    Instances start immediately. Call ``await stop()`` before exiting to
    flush remote logs and close files.

    Example:
        loggers = Loggers(categories={"dog": {"console": "warn"}})
        logger = loggers.logger("dog")
        logger.warn("Barking", {"volume": 11})
        await loggers.stop()
    """

    def __init__(self, options: LoggersOptions | Mapping[str, Any] | None = None, **overrides: Any):
        self.options = _validate_options(options, overrides)
        options = self.options

        self.created = now()
        self.host_id = host_identifier()
        self.stream_name = stream_name(self.created, self.host_id)

        self._diagnostics = get_logger("polylog", use_color=options.console.colors)
        self._capture: Optional[Capture] = Capture() if options.unit_test else None
        self._loggers: dict[str, ScopedLogger] = {}
        self._logs_directory: Optional[Path] = None
        self._logs_directory_checked = False
        self._stdlib_handler: Optional[RedirectStdLibHandler] = None

        self.levels = LevelTable(options.default_level)
        self.categories = CategoryRegistry(options, self.levels)
        self.policy = PolicyEngine(self.categories, self.levels, default_tag_allow_level=options.default_tag_allow_level)
        self.builder = RecordBuilder(options, self.levels, host_id=self.host_id)
        self.flattener = ErrorGraphFlattener(options, self.builder, self._dispatch)
        self.sinks = SinkRegistry(self._create_sinks)
        self.lifecycle = LifecycleCoordinator(
            self.sinks,
            error_category=options.remote.error_category,
            flush_timeout=options.remote.flush_timeout,
            on_uncaught=self._uncaught,
            report=self._report_failure,
            notice=self._notice,
            say_flushing=options.say.flushing,
            say_flushed=options.say.flushed,
        )

        self.start()

    @classmethod
    def from_settings(cls, settings: Optional[PolylogSettings] = None, **overrides: Any) -> "Loggers":
        """Create an instance from ``POLYLOG_*`` environment variables."""
        settings = settings or PolylogSettings()
        return cls(settings.to_options(), **overrides)

    # -------------------------------------------------------------------------
    # Side Channel
    # -------------------------------------------------------------------------

    def _notice(self, message: str) -> None:
        self._diagnostics.info(message)

    def _warn(self, message: str, **kwargs: Any) -> None:
        self._diagnostics.warning(message, **kwargs)

    @property
    def capture(self) -> Optional[Capture]:
        """Records dispatched in ``unit_test`` mode, else ``None``."""
        return self._capture

    # -------------------------------------------------------------------------
    # Arguments
    # -------------------------------------------------------------------------

    def check_category(self, category: Any, default_category: Optional[str] = None) -> str:
        return check_category(
            category,
            default_category or self.options.default_category,
            strict=self.options.unit_test,
            warn=self._warn,
        )

    def normalize(
        self,
        tags: Any = None,
        message: Any = None,
        context: Any = None,
        category: Any = None,
        *,
        default_category: Optional[str] = None,
        auto_error: bool = True,
    ) -> LogArgs:
        return normalize_args(
            tags,
            message,
            context,
            category,
            default_category=default_category or self.options.default_category,
            strict=self.options.unit_test,
            warn=self._warn,
            auto_error=auto_error,
        )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    def log(self, tags: Any = None, message: Any = None, context: Any = None, category: Optional[str] = None) -> "Loggers":
        """Send a log entry.

        Args:
            tags: Tag name, list of names, ``name -> value`` mapping, or an
                exception to log (the ``error`` tag is added)
            message: Text, mapping, exception or any object
            context: Extra data; an exception becomes ``{"error": exc}``
            category: Category name (default: ``default_category``)
        """
        args = self.normalize(tags, message, context, category)
        self.send(args.tags, args.message, args.context, args.category)
        return self

    def send(self, tags: Any, message: Any, context: Any, category: str) -> list[LogRecord]:
        """Evaluate and emit normalized arguments. Never raises."""
        if self.lifecycle.stopped:
            self._warn("Stopped. Unable to log", record_category=category, record_message=str(message))
            return []
        self.lifecycle.hooks.attach_running_loop()
        try:
            decision = self.policy.evaluate(tags, category)
            if not decision:
                return []
            return self.flattener.emit(decision, message, context)
        except Exception:
            self._diagnostics.exception("Logging failed", record_category=category)
            return []

    def is_level_enabled(self, tags: Any = None, category: Optional[str] = None) -> Decision | bool:
        """The policy decision for ``tags`` and ``category``, or ``False`` when nothing would be logged."""
        category = self.check_category(category)
        if self.lifecycle.stopped:
            self._warn("Stopped", record_category=category)
            return False
        return self.policy.evaluate(tags, category)

    def child(self, tags: Any = None, context: Any = None, category: Optional[str] = None) -> ScopedLogger:
        """A scoped logger bound to ``tags``, ``context`` and ``category``. Not cached."""
        args = self.normalize(tags, None, context, category, auto_error=False)
        return ScopedLogger(self, args.tags, args.context, args.category)

    def logger(self, category: Optional[str] = None) -> ScopedLogger:
        """The cached scoped logger of ``category``."""
        category = self.check_category(category)
        logger = self._loggers.get(category)
        if logger is None:
            logger = self._loggers[category] = ScopedLogger(self, None, None, category)
        return logger

    def category_options(self, category: Optional[str] = None) -> CategoryOptions:
        """Configured options of ``category``, else those of ``default``."""
        category = self.check_category(category)
        settings = self.categories.options(category)
        if settings is None:
            settings = self.categories.options(DEFAULT)
        return settings

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _dispatch(self, decision: Decision, record: LogRecord) -> bool:
        category = decision.category
        state = self.lifecycle.state
        if state is LifecycleState.STOPPED or (
            state is LifecycleState.STOPPING and category != self.options.remote.error_category
        ):
            self._warn(
                f"{state.value.capitalize()}. Unable to log",
                record_category=category,
                record_level=record.level,
                record_message=record.message,
            )
            return False

        if self._capture is not None:
            self._capture.record(record)

        sink_set = self.sinks.get(category)
        for sink, error in sink_set.emit(decision, record, self.levels):
            self._report_failure(f"The {sink.name} sink of {category} failed", error, category)
        return True

    def _report_failure(self, message: str, error: BaseException, category: Optional[str] = None) -> None:
        """Log a sink failure under the failure-reporting category."""
        error_category = self.options.remote.error_category
        if category == error_category or self.lifecycle.stopped:
            self._diagnostics.error(message, error=repr(error))
            return
        self.send({"error": True}, message, {"error": error}, error_category)

    def remote_error(self, error: BaseException) -> None:
        """Upload failure handler of remote sinks."""
        if is_ignorable_error(error):
            return
        self._report_failure("Uploading remote logs failed", error)

    def _uncaught(self, error: BaseException, message: str) -> None:
        self.send({"error": True}, message, {"error": error}, self.options.uncaught_category)

    # -------------------------------------------------------------------------
    # Sinks
    # -------------------------------------------------------------------------

    def _logs_dir(self) -> Optional[Path]:
        """First usable directory from ``file.directories``; created if needed."""
        if self._logs_directory_checked:
            return self._logs_directory
        self._logs_directory_checked = True

        directories = self.options.file.directories
        for directory in directories:
            path = Path(directory)
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError:
                continue
            self._logs_directory = path
            return path

        if directories:
            self._warn("Creating logs directory failed", directories=directories)
        return None

    def _create_sinks(self, sink_set: SinkSet) -> None:
        category = sink_set.category
        levels = self.categories.sink_levels(category)

        if self._capture is not None:
            for name, level in levels.items():
                sink_set.add(CaptureSink(name, level, self._capture))
            return

        for name, level in levels.items():
            sink = self._create_sink(category, name, level)
            if sink is not None:
                sink_set.add(sink)

    def _create_sink(self, category: str, name: str, level: str) -> Optional[BaseSink]:
        options = self.options
        if name == "console":
            return ConsoleSink(level, colors=options.console.colors, data=options.console.data)

        if name in ("file", "error_file"):
            directory = self._logs_dir()
            if directory is None:
                return None
            prefix = safe_prefix(category)
            if name == "error_file":
                prefix = f"{prefix}-error"
            return RotatingFileSink(
                name,
                level,
                directory,
                prefix,
                max_bytes=options.file.max_size,
                max_age=options.file.max_age,
            )

        # remote
        settings = self.categories.remote_settings(category)
        if not settings.log_name:
            self._warn("Log name was not specified for remote logs", record_category=category)
            return None
        if options.say.open_remote:
            self._notice(
                f"Opening remote log stream {settings.project or '(default project)'}:"
                f"{settings.log_name}:{self.stream_name} at level '{level}' for category '{category}'"
            )
        return RemoteSink(
            level,
            log_name=settings.log_name,
            stream_name=self.stream_name,
            project=settings.project,
            upload_rate=settings.upload_rate or options.remote.upload_rate,
            on_error=self.remote_error,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _describe(self) -> str:
        options = self.options
        return " ".join(str(value) for value in (options.service, options.version and f"v{options.version}", options.stage) if value)

    def start(self) -> None:
        """Start after construction or ``stop()``.

        Raises:
            LifecycleError: Not currently stopped
        """
        self.lifecycle.start()
        if self.options.intercept_stdlib and self._stdlib_handler is None:
            self._stdlib_handler = intercept_stdlib_logging(self, category=self.options.stdlib_category)
        if self.options.unit_test:
            self._notice("Unit test mode enabled")
        if self.options.say.banner:
            self._notice(f"Ready: {self._describe()}".rstrip())

    async def stop(self) -> None:
        """Flush and close every sink. Concurrent calls wait for the same stop."""

        def stopping() -> None:
            if self.options.say.stopping:
                self._notice(f"Stopping: {self._describe()}".rstrip())

        def stopped() -> None:
            self._loggers.clear()
            if self._stdlib_handler is not None:
                release_stdlib_logging(self._stdlib_handler)
                self._stdlib_handler = None
            if self.options.say.stopped:
                self._notice(f"Stopped: {self._describe()}".rstrip())

        await self.lifecycle.stop(on_stopping=stopping, on_stopped=stopped)

    def is_ready(self) -> bool:
        return self.lifecycle.is_ready()

    async def flush(self) -> None:
        """Flush remote sinks."""
        await self.lifecycle.flush()

    def __repr__(self) -> str:
        return f"Loggers(state={self.lifecycle.state.value!r}, default_category={self.options.default_category!r})"
