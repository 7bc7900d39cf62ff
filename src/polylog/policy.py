"""
Policy engine: decides the severity of one log call and which sinks receive it.

``PolicyEngine.evaluate`` never suspends and never mutates its inputs. It
returns ``False`` when the call is suppressed, otherwise an immutable
``Decision``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal, Optional

from polylog.categories import CategoryRegistry
from polylog.config.options import SINK_NAMES, TagRule
from polylog.levels import LOG_LEVEL_TAG, LevelTable, combine_tags


@dataclass(frozen=True)
class Decision:
    """Output of policy evaluation for one log call."""

    category: str
    severity: str
    enabled_sinks: Optional[frozenset[str]]
    tags: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.tags, MappingProxyType):
            object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def sink_enabled(self, sink: str) -> bool:
        return self.enabled_sinks is None or sink in self.enabled_sinks


class PolicyEngine:
    """Evaluates tag specs against the category registry."""

    def __init__(self, registry: CategoryRegistry, levels: LevelTable, *, default_tag_allow_level: str = "warn"):
        self.registry = registry
        self.levels = levels
        self.default_tag_allow_level = default_tag_allow_level

    def _select_severity(self, tags: dict[str, Any], category: str) -> str:
        severity = self.levels.most_severe(tag for tag, value in tags.items() if value)
        if severity is None:
            severity = self.registry.default_level(category)
        return severity or self.levels.default_level

    def _allow_level(self, category_rule: TagRule | None, default_rule: TagRule | None) -> str:
        if category_rule is not None and category_rule.allow_level:
            return category_rule.allow_level
        if default_rule is not None and default_rule.allow_level:
            return default_rule.allow_level
        return self.default_tag_allow_level

    def _sink_threshold(self, sink: str, category_rule: TagRule | None, default_rule: TagRule | None) -> str | None:
        if category_rule is not None:
            threshold = category_rule.sink_threshold(sink)
            if threshold:
                return threshold
        if default_rule is not None:
            return default_rule.sink_threshold(sink)
        return None

    def evaluate(self, tags: Any, category: str) -> Decision | Literal[False]:
        """Resolve the effective severity and enabled sinks for one call.

        Args:
            tags: A tag name, a list of names, or a name -> value mapping
            category: The caller's category (already validated as a string)

        Returns:
            ``False`` when the call is suppressed for every sink, else a ``Decision``
        """
        levels = self.levels
        tags = dict(combine_tags(tags))

        # logLevel meta tag forces the severity
        severity: str | None = None
        forced = tags.pop(LOG_LEVEL_TAG, None)
        if isinstance(forced, str) and levels.is_level(forced):
            severity = levels.resolve(forced)
            tags[severity] = True

        if severity is None:
            severity = self._select_severity(tags, category)

        category_rules = self.registry.tag_rules(category)
        default_rules = self.registry.default_tag_rules()

        escalated = severity
        enabled: set[str] | None = None

        for tag, value in tags.items():
            if not value or tag in levels:
                continue

            category_rule = category_rules.get(tag)
            default_rule = default_rules.get(tag)

            if levels.admits(self._allow_level(category_rule, default_rule), severity):
                continue

            rule = category_rule or default_rule
            if rule is None:
                continue

            if rule.on and not levels.admits(rule.on, severity):
                return False

            for sink in SINK_NAMES:
                if enabled is not None and sink not in enabled:
                    continue
                threshold = self._sink_threshold(sink, category_rule, default_rule)
                if threshold and not levels.admits(threshold, severity):
                    if enabled is None:
                        enabled = set(SINK_NAMES)
                    enabled.discard(sink)

            if enabled is not None and not enabled:
                return False

            if rule.level:
                level = levels.resolve(rule.level)
                if levels.more_severe(level, escalated):
                    escalated = level

        enabled_sinks = frozenset(enabled) if enabled is not None else None
        if not self.registry.accepts(category, escalated, enabled_sinks):
            return False

        return Decision(category=category, severity=escalated, enabled_sinks=enabled_sinks, tags=tags)
