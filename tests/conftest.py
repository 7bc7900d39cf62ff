import asyncio
import typing as t

import pytest

from polylog import Loggers
from polylog.categories import CategoryRegistry
from polylog.config import LoggersOptions
from polylog.levels import LevelTable
from polylog.policy import Decision, PolicyEngine

QUIET_SAY = {
    "banner": False,
    "flushing": False,
    "flushed": False,
    "stopping": False,
    "stopped": False,
    "open_remote": False,
}

CATEGORIES = {
    "default": {"console": "info", "file": "silly", "error_file": "on"},
    "dog": {"file": "warn", "console": "warn"},
}


def make_options(**overrides: t.Any) -> dict[str, t.Any]:
    options: dict[str, t.Any] = {
        "unit_test": True,
        "say": dict(QUIET_SAY),
        "console": {"colors": False},
        "file": {"directories": []},
        "categories": CATEGORIES,
    }
    options.update(overrides)
    return options


def make_decision(severity: str = "info", tags: t.Any = None, category: str = "general") -> Decision:
    return Decision(category=category, severity=severity, enabled_sinks=None, tags=tags or {severity: True})


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """环境变量不影响测试"""
    for name in ("CONSOLE_COLORS", "CONSOLE_DATA", "GOOGLE_CLOUD_PROJECT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="function")
def loggers():
    """
    Function-scoped Loggers in unit test mode.
    Every sink is replaced by a capture sink; stopped after the test.
    """
    instance = Loggers(make_options())
    yield instance
    if not instance.lifecycle.stopped:
        asyncio.run(instance.stop())


@pytest.fixture
def policy_factory():
    """Builds a PolicyEngine from option overrides."""

    def build(**overrides: t.Any) -> PolicyEngine:
        options = LoggersOptions(**{"categories": CATEGORIES, **overrides})
        levels = LevelTable(options.default_level)
        registry = CategoryRegistry(options, levels)
        return PolicyEngine(registry, levels, default_tag_allow_level=options.default_tag_allow_level)

    return build
