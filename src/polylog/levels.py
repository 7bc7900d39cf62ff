"""
Severity levels and tag/context combination helpers.

Levels follow npm's ordering with two additions: ``fail`` (more severe than
``error``) and ``more`` (between ``info`` and ``verbose``). Lower rank means
more severe.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

# =============================================================================
# Level Constants
# =============================================================================

LEVELS: dict[str, int] = {
    "fail": 10,
    "error": 20,
    "warn": 30,
    "info": 40,
    "more": 50,
    "verbose": 60,
    "http": 70,
    "debug": 80,
    "silly": 90,
}

OFF = "off"
ON = "on"
DEFAULT = "default"

OFF_RANK = -1
ON_RANK = 100000

SYNTHETIC_LEVELS = (OFF, ON, DEFAULT)

# Meta tags that never reach a record's tag list
LOG_LEVEL_TAG = "logLevel"
LOG_STACK_TAG = "logStack"
NO_LOG_STACK_TAG = "noLogStack"


class LevelTable:
    """Ranks for the fixed level list plus the synthetic ``off``/``on``/``default``."""

    def __init__(self, default_level: str = "debug", levels: Mapping[str, int] = LEVELS):
        if default_level not in levels:
            raise ValueError(f"Unknown default level: {default_level}")
        self.names: tuple[str, ...] = tuple(sorted(levels, key=levels.__getitem__))
        self.default_level = default_level
        self._ranks = dict(levels)
        self._ranks.update({OFF: OFF_RANK, ON: ON_RANK, DEFAULT: levels[default_level]})

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._ranks

    def is_level(self, name: object) -> bool:
        """True for real level names and ``default`` (names usable as severities)."""
        return isinstance(name, str) and (name in self.names or name == DEFAULT)

    def rank(self, name: str) -> int:
        return self._ranks[name]

    def resolve(self, name: str) -> str:
        return self.default_level if name == DEFAULT else name

    def admits(self, threshold: str | None, severity: str) -> bool:
        """Whether a sink or rule set at ``threshold`` accepts ``severity``."""
        if threshold is None:
            return True
        return self._ranks[severity] <= self._ranks[threshold]

    def more_severe(self, a: str, b: str) -> bool:
        return self._ranks[a] < self._ranks[b]

    def most_severe(self, names: Iterable[str]) -> str | None:
        best: str | None = None
        for name in names:
            if not self.is_level(name):
                continue
            name = self.resolve(name)
            if best is None or self._ranks[name] < self._ranks[best]:
                best = name
        return best


# =============================================================================
# Tags
# =============================================================================


def _tags_to_dict(tags: Any) -> dict[str, Any] | None:
    if tags is None or tags == "":
        return None
    if isinstance(tags, Mapping):
        return tags  # type: ignore[return-value]
    if isinstance(tags, (list, tuple, set, frozenset)):
        return {tag: True for tag in tags if tag}
    return {str(tags): True}


def combine_tags(tags: Any = None, more_tags: Any = None) -> dict[str, Any]:
    """Combine two tag specs into one mapping; ``more_tags`` wins on collision.

    Each argument may be ``None``, a tag name, a sequence of names, or a
    ``name -> value`` mapping. Inputs are never mutated. When one side is
    empty the other side's mapping is returned as-is.
    """
    first = _tags_to_dict(tags)
    second = _tags_to_dict(more_tags)
    if not second:
        return first if first is not None else {}
    if not first:
        return second
    combined = dict(first)
    combined.update(second)
    return combined


# =============================================================================
# Context
# =============================================================================


def context_to_dict(context: Any) -> dict[str, Any] | None:
    """Converts a context value to a mapping.

    Exceptions become ``{"error": exc}``, lists and scalars ``{"message": value}``.
    """
    if context is None:
        return None
    if isinstance(context, BaseException):
        return {"error": context}
    if isinstance(context, Mapping):
        return context  # type: ignore[return-value]
    return {"message": context}


def merge_context(context: Any = None, more: Any = None) -> dict[str, Any] | None:
    """Shallow-merge two context values; keys in ``more`` win."""
    first = context_to_dict(context)
    second = context_to_dict(more)
    if not second:
        return first
    if not first:
        return second
    merged = dict(first)
    merged.update(second)
    return merged
