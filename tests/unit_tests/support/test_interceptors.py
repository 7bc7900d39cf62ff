"""
标准库日志拦截单元测试
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from conftest import make_options

import polylog
from polylog import Loggers
from polylog.interceptors import RedirectStdLibHandler, intercept_stdlib_logging, stdlib_level


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestStdlibLevel:
    """级别映射测试"""

    @pytest.mark.parametrize(
        "levelno,expected",
        [
            (logging.CRITICAL, "fail"),
            (logging.ERROR, "error"),
            (logging.WARNING, "warn"),
            (logging.INFO, "info"),
            (logging.DEBUG, "debug"),
            (5, "silly"),
        ],
    )
    def test_levels(self, levelno, expected) -> None:
        assert stdlib_level(levelno) == expected


class TestRedirectStdLibHandler:
    """RedirectStdLibHandler 测试"""

    def test_record_is_routed(self, loggers) -> None:
        """标准库记录转发到 Loggers"""
        logger = logging.getLogger("x.y.z")
        handler = RedirectStdLibHandler(loggers)
        logger.addHandler(handler)
        try:
            logger.warning("disk %s", "low")
        finally:
            logger.removeHandler(handler)

        entry = loggers.capture.entries[0]
        assert entry.level == "warn"
        assert entry.message == "disk low"
        assert entry.data == {"logger": "y.z"}

    def test_exception_info(self, loggers) -> None:
        """exc_info 作为 error 上下文"""
        logger = logging.getLogger("app")
        handler = RedirectStdLibHandler(loggers, category="dog")
        logger.addHandler(handler)
        try:
            try:
                raise KeyError("k")
            except KeyError:
                logger.exception("lookup failed")
        finally:
            logger.removeHandler(handler)

        entry = loggers.capture.entries[0]
        assert entry.category == "dog"
        assert entry.level == "error"
        assert entry.message == "lookup failed"

    def test_intercept_root_logger(self, loggers, restore_root_logger) -> None:
        """intercept_stdlib_logging 接管根 logger 与指定 logger"""
        handler = intercept_stdlib_logging(loggers, level=logging.INFO, names=["uvicorn"])
        assert logging.getLogger().handlers == [handler]
        uvicorn = logging.getLogger("uvicorn")
        assert uvicorn.handlers == [handler]
        assert uvicorn.propagate is False
        uvicorn.handlers = []
        uvicorn.propagate = True

        logging.getLogger("service").info("started")
        assert loggers.capture.entries[-1].message == "started"


class TestLoggersOption:
    """intercept_stdlib 选项测试"""

    def test_installed_while_running(self, restore_root_logger) -> None:
        """运行期间接管根 logger，stop 后移除"""
        loggers = Loggers(make_options(intercept_stdlib=True, stdlib_category="stdlib"))
        try:
            handlers = logging.getLogger().handlers
            assert len(handlers) == 1
            assert isinstance(handlers[0], RedirectStdLibHandler)

            logging.getLogger("lib.client").warning("retrying")
            entry = loggers.capture.entries[-1]
            assert entry.category == "stdlib"
            assert entry.message == "retrying"
        finally:
            asyncio.run(loggers.stop())
        assert logging.getLogger().handlers == []

    def test_package_exports(self) -> None:
        """包顶层导出拦截接口"""
        assert polylog.intercept_stdlib_logging is intercept_stdlib_logging
        assert polylog.RedirectStdLibHandler is RedirectStdLibHandler
