"""
Scoped loggers.

A ``ScopedLogger`` is an immutable ``(tags, context, category)`` binding over
a shared ``Loggers`` instance. Children combine tags with their parent's and
shallow-merge context (the child wins on key collisions). Scoped loggers own
no sinks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from polylog.levels import combine_tags, merge_context

if TYPE_CHECKING:
    from polylog.loggers import Loggers
    from polylog.policy import Decision


class LevelMethods:
    """One method per severity, plus ``default``.

    Each method adds its severity as a tag; the most severe tag of the call
    (bound tags included) decides the record's level. A mapping message may
    carry ``tags``, ``context`` and ``category`` keys.
    """

    def log(self, tags: Any = None, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        raise NotImplementedError

    def fail(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("fail", message, context, category)

    def error(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("error", message, context, category)

    def warn(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("warn", message, context, category)

    def info(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("info", message, context, category)

    def more(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("more", message, context, category)

    def verbose(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("verbose", message, context, category)

    def http(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("http", message, context, category)

    def debug(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("debug", message, context, category)

    def silly(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("silly", message, context, category)

    def default(self, message: Any = None, context: Any = None, category: Optional[str] = None) -> Any:
        return self.log("default", message, context, category)


class ScopedLogger(LevelMethods):
    """Immutable binding of tags, context and category."""

    def __init__(
        self,
        loggers: "Loggers",
        tags: Any = None,
        context: Any = None,
        category: Optional[str] = None,
        parent: Optional["ScopedLogger"] = None,
    ):
        self._loggers = loggers
        self._tags = dict(combine_tags(tags))
        self._context = merge_context(context)
        self._category = category or loggers.options.default_category
        self._parent = parent

    @property
    def loggers(self) -> "Loggers":
        return self._loggers

    @property
    def parent(self) -> Optional["ScopedLogger"]:
        return self._parent

    @property
    def tags(self) -> dict[str, Any]:
        return dict(self._tags)

    @property
    def context(self) -> Optional[dict[str, Any]]:
        return None if self._context is None else dict(self._context)

    @property
    def category(self) -> str:
        return self._category

    def log(self, tags: Any = None, message: Any = None, context: Any = None, category: Optional[str] = None) -> "ScopedLogger":
        args = self._loggers.normalize(tags, message, context, category, default_category=self._category)
        self._loggers.send(
            combine_tags(self._tags, args.tags),
            args.message,
            merge_context(self._context, args.context),
            args.category,
        )
        return self

    def child(self, tags: Any = None, context: Any = None, category: Optional[str] = None) -> "ScopedLogger":
        args = self._loggers.normalize(
            tags, None, context, category, default_category=self._category, auto_error=False
        )
        return ScopedLogger(
            self._loggers,
            combine_tags(self._tags, args.tags),
            merge_context(self._context, args.context),
            args.category,
            parent=self,
        )

    def logger(self, category: Optional[str] = None) -> "ScopedLogger":
        """This binding under another category."""
        return self.child(None, None, category)

    def is_level_enabled(self, tags: Any = None, category: Optional[str] = None) -> "Decision | bool":
        category = self._loggers.check_category(category, self._category)
        return self._loggers.is_level_enabled(combine_tags(self._tags, tags), category)

    def __repr__(self) -> str:
        return f"ScopedLogger(category={self._category!r}, tags={self._tags!r})"
