"""
Log call arguments.

Every public entry point (``log``, the severity methods, ``child`` and
``is_level_enabled``) accepts loosely shaped arguments. ``normalize_args``
turns them into one ``LogArgs`` value before any decision is made.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from polylog.exceptions import CategoryError
from polylog.levels import DEFAULT, LEVELS, LOG_LEVEL_TAG, combine_tags, merge_context

_CALL_KEYS = ("tags", "message", "context", "category")


def _names_level(tags: Mapping[str, Any]) -> bool:
    if tags.get(LOG_LEVEL_TAG):
        return True
    return any(value and (tag in LEVELS or tag == DEFAULT) for tag, value in tags.items())


@dataclass(frozen=True)
class LogArgs:
    """Normalized arguments of one log call."""

    tags: dict[str, Any] = field(default_factory=dict)
    message: Any = None
    context: Any = None
    category: Optional[str] = None


def _is_call_mapping(value: Any) -> bool:
    return isinstance(value, Mapping) and (
        any(value.get(key) for key in _CALL_KEYS) or isinstance(value.get("error"), BaseException)
    )


def _split_call_mapping(value: Mapping[str, Any]) -> tuple[Any, dict[str, Any], Any, Any]:
    """``{tags, context, category, ...rest}`` -> (tags, rest, context, category)."""
    rest = {key: val for key, val in value.items() if key not in ("tags", "context", "category")}
    category = value.get("category")
    return value.get("tags"), rest, value.get("context"), category if isinstance(category, str) else None


def _embeds_error(value: Any) -> bool:
    if isinstance(value, BaseException):
        return True
    if not isinstance(value, Mapping):
        return False
    if isinstance(value.get("error"), BaseException):
        return True
    inner = value.get("message")
    if isinstance(inner, BaseException):
        return True
    return isinstance(inner, Mapping) and isinstance(inner.get("error"), BaseException)


def check_category(
    category: Any,
    default_category: str,
    *,
    strict: bool = False,
    warn: Callable[[str], None] | None = None,
) -> str:
    """Returns ``category`` when it is a non-empty string, else ``default_category``.

    Raises:
        CategoryError: ``category`` is truthy but not a string and ``strict`` is set
    """
    if not category:
        return default_category
    if isinstance(category, str):
        return category
    error = CategoryError(category)
    if strict:
        raise error
    if warn is not None:
        warn(str(error))
    return default_category


def normalize_args(
    tags: Any = None,
    message: Any = None,
    context: Any = None,
    category: Any = None,
    *,
    default_category: str,
    strict: bool = False,
    warn: Callable[[str], None] | None = None,
    auto_error: bool = True,
) -> LogArgs:
    """Resolve the shape of a log call.

    - ``log(exc)`` logs the exception as the message; ``log(exc, "text")``
      merges it into the context.
    - ``log({"tags": ..., "message": ..., "context": ..., "category": ...})``
      unpacks a single mapping argument.
    - ``info({"message": ..., "tags": ...})`` merges the mapping's tags with
      the call's tags.
    - ``info(exc, "text")`` is the same as ``info("text", exc)``.
    - The ``error`` tag is added when the message or context is, or embeds,
      an exception and the tags name no severity. ``auto_error=False`` skips
      this for bindings (``child``) so it is decided per call.
    """
    if isinstance(tags, LogArgs):
        return tags

    if isinstance(tags, BaseException):
        if not message:
            message = tags
        else:
            context = merge_context(context, tags)
        tags = None
    elif not message and not context and not category and _is_call_mapping(tags):
        tags, message, context, category = _split_call_mapping(tags)
    elif not context and not category and _is_call_mapping(message) and not isinstance(message, BaseException):
        more_tags, message, context, category = _split_call_mapping(message)
        tags = combine_tags(tags, more_tags)

    if isinstance(context, str) and isinstance(message, BaseException):
        message, context = context, message

    category = check_category(category, default_category, strict=strict, warn=warn)
    tags = dict(combine_tags(tags))

    # An explicit severity (info(exc), for example) is kept
    if auto_error and not _names_level(tags) and (_embeds_error(message) or _embeds_error(context)):
        tags["error"] = True

    return LogArgs(tags=tags, message=message, context=context, category=category)
