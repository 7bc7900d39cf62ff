"""
Category registry: per-category tag rules and sink levels.

Unknown or unconfigured categories fall back to ``default``, which always exists.
"""

from __future__ import annotations

from polylog.config.options import (
    SINK_NAMES,
    CategoryOptions,
    LoggersOptions,
    RemoteCategoryOptions,
    TagRule,
)
from polylog.levels import DEFAULT, OFF, ON, LevelTable

# Level used by a sink when its category sets it to 'on'
_ON_LEVELS = {
    "file": "info",
    "error_file": "error",
    "remote": "warn",
    "console": "info",
}

# Level used by a sink when neither its category nor 'default' sets it
_UNSET_LEVELS = {
    "file": OFF,
    "error_file": OFF,
    "remote": OFF,
    "console": "info",
}


class CategoryRegistry:
    """Resolves category settings from ``LoggersOptions``."""

    def __init__(self, options: LoggersOptions, levels: LevelTable):
        self._options = options
        self._levels = levels
        self._tag_rules: dict[str, dict[str, TagRule]] = {}
        self._sink_levels: dict[str, dict[str, str]] = {}
        # Parsed eagerly; every lookup falls back to it
        self._tag_rules[DEFAULT] = self._parse_tag_rules(DEFAULT)

    @property
    def names(self) -> list[str]:
        return list(self._options.categories)

    def resolve(self, category: str) -> str:
        """Returns ``category`` if it is configured, else ``default``."""
        return category if category in self._options.categories else DEFAULT

    def options(self, category: str) -> CategoryOptions | None:
        return self._options.categories.get(category)

    def default_level(self, category: str) -> str | None:
        settings = self._options.categories.get(category)
        if settings is not None and settings.default_level:
            return settings.default_level
        return None

    # -------------------------------------------------------------------------
    # Tag Rules
    # -------------------------------------------------------------------------

    def _parse_tag_rules(self, category: str) -> dict[str, TagRule]:
        settings = self._options.categories.get(category)
        if settings is None:
            return {}
        rules: dict[str, TagRule] = {}
        for tag, rule in settings.tags.items():
            rules[tag] = TagRule(on=rule) if isinstance(rule, str) else rule
        return rules

    def tag_rules(self, category: str) -> dict[str, TagRule]:
        """Tag rules for ``category``; an empty mapping means "defer to default"."""
        rules = self._tag_rules.get(category)
        if rules is None:
            rules = self._tag_rules[category] = self._parse_tag_rules(category)
        return rules

    def default_tag_rules(self) -> dict[str, TagRule]:
        return self._tag_rules[DEFAULT]

    # -------------------------------------------------------------------------
    # Sink Levels
    # -------------------------------------------------------------------------

    def remote_settings(self, category: str) -> RemoteCategoryOptions:
        """Remote sink settings for ``category`` merged over the registry-wide ones."""
        merged = {
            "project": self._options.remote.project,
            "log_name": self._options.remote.log_name,
            "upload_rate": self._options.remote.upload_rate,
        }
        value = self._merged_value(category, "remote")
        if isinstance(value, RemoteCategoryOptions):
            merged.update(value.model_dump(exclude_none=True))
        else:
            merged["level"] = value
        return RemoteCategoryOptions(**merged)

    def _merged_value(self, category: str, sink: str):
        categories = self._options.categories
        settings = categories.get(category)
        value = getattr(settings, sink) if settings is not None else None
        if value is None:
            value = getattr(categories[DEFAULT], sink)
        return value

    def _level_for(self, category: str, sink: str) -> str:
        value = self._merged_value(category, sink)
        if isinstance(value, RemoteCategoryOptions):
            value = value.level
        if value is None:
            value = _UNSET_LEVELS[sink]
        if value == DEFAULT:
            return self._levels.default_level
        if value == ON:
            return _ON_LEVELS[sink]
        return value

    def sink_levels(self, category: str) -> dict[str, str]:
        """Sink name -> level for ``category``; sinks that are off are omitted."""
        levels = self._sink_levels.get(category)
        if levels is not None:
            return levels

        if category == self._options.remote.error_category:
            levels = {"console": "error", "error_file": "error"}
        else:
            levels = {sink: self._level_for(category, sink) for sink in SINK_NAMES}
            if all(levels[sink] == OFF for sink in ("file", "remote", "console")):
                # The error file doesn't count; the console is the last resort
                levels["console"] = "error"
            levels = {sink: level for sink, level in levels.items() if level != OFF}

        self._sink_levels[category] = levels
        return levels

    def accepts(self, category: str, severity: str, enabled_sinks: frozenset[str] | None = None) -> bool:
        """Whether at least one enabled sink of ``category`` admits ``severity``."""
        for sink, level in self.sink_levels(category).items():
            if enabled_sinks is not None and sink not in enabled_sinks:
                continue
            if self._levels.admits(level, severity):
                return True
        return False
