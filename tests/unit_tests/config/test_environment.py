"""
环境变量覆盖单元测试
"""

from __future__ import annotations

import asyncio

from conftest import QUIET_SAY, make_options

from polylog import Loggers, PolylogSettings
from polylog.config import ConsoleSettings


class TestConsoleSettings:
    """CONSOLE_* 测试"""

    def test_no_overrides_by_default(self) -> None:
        """未设置时没有覆盖"""
        assert ConsoleSettings().overrides() == {}

    def test_overrides_reach_loggers(self, monkeypatch) -> None:
        """CONSOLE_DATA / CONSOLE_COLORS 覆盖构造选项"""
        monkeypatch.setenv("CONSOLE_DATA", "true")
        monkeypatch.setenv("CONSOLE_COLORS", "false")
        loggers = Loggers(make_options(console={"colors": True, "data": False}))
        try:
            assert loggers.options.console.data is True
            assert loggers.options.console.colors is False
        finally:
            asyncio.run(loggers.stop())


class TestGCloudSettings:
    """GOOGLE_CLOUD_PROJECT 测试"""

    def test_project_fallback(self, monkeypatch) -> None:
        """未配置 project 时使用 GOOGLE_CLOUD_PROJECT"""
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "env-project")
        loggers = Loggers(make_options(remote={"log_name": "app"}))
        try:
            assert loggers.options.remote.project == "env-project"
        finally:
            asyncio.run(loggers.stop())

    def test_explicit_project_wins(self, monkeypatch) -> None:
        """显式配置的 project 优先"""
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "env-project")
        loggers = Loggers(make_options(remote={"project": "mine"}))
        try:
            assert loggers.options.remote.project == "mine"
        finally:
            asyncio.run(loggers.stop())


class TestPolylogSettings:
    """POLYLOG_* 测试"""

    def test_to_options(self, monkeypatch) -> None:
        """环境变量转换为构造选项"""
        monkeypatch.setenv("POLYLOG_SERVICE", "api")
        monkeypatch.setenv("POLYLOG_CONSOLE_LEVEL", "warn")
        monkeypatch.setenv("POLYLOG_LOG_DIRECTORY", "/var/log/api")
        options = PolylogSettings().to_options()

        assert options["service"] == "api"
        assert options["categories"]["default"]["console"] == "warn"
        assert options["categories"]["default"]["file"] == "off"
        assert options["file"] == {"directories": ["/var/log/api"]}

    def test_from_settings(self, monkeypatch) -> None:
        """Loggers.from_settings 使用环境变量，关键字参数优先"""
        monkeypatch.setenv("POLYLOG_SERVICE", "api")
        monkeypatch.setenv("POLYLOG_DEFAULT_CATEGORY", "app")
        loggers = Loggers.from_settings(unit_test=True, say=QUIET_SAY)
        try:
            assert loggers.options.service == "api"
            loggers.info("m")
            assert loggers.capture.entries[0].category == "app"
            assert loggers.capture.entries[0].service == "api"
        finally:
            asyncio.run(loggers.stop())
