"""
错误图展开单元测试

测试循环引用终止、max_errors / max_error_depth 上限、groupId 规则与输出顺序。
"""

from __future__ import annotations

from conftest import make_decision

from polylog.config import LoggersOptions
from polylog.flatten import ErrorGraphFlattener, ErrorSet
from polylog.levels import LevelTable
from polylog.records import RecordBuilder


def _flattener(accept: bool = True, **options):
    loggers_options = LoggersOptions(**options)
    builder = RecordBuilder(loggers_options, LevelTable(loggers_options.default_level))
    dispatched = []

    def dispatch(decision, record):
        dispatched.append(record)
        return accept

    return ErrorGraphFlattener(loggers_options, builder, dispatch), dispatched


def _chain(length: int) -> list[Exception]:
    errors = [RuntimeError(f"e{index}") for index in range(length)]
    for current, following in zip(errors, errors[1:]):
        current.error = following
    return errors


class TestErrorSet:
    """ErrorSet 测试"""

    def test_identity_membership(self) -> None:
        """按对象身份判断成员"""
        seen = ErrorSet()
        first = ValueError("same")
        seen.add(first)
        seen.add(first)
        assert first in seen
        assert ValueError("same") not in seen
        assert len(seen) == 1


class TestFlatten:
    """展开测试"""

    def test_lone_record_has_no_group_id(self) -> None:
        """不需展开时只有一条记录且无 groupId"""
        flattener, dispatched = _flattener()
        records = flattener.emit(make_decision(), "plain", {"a": 1})
        assert len(records) == 1
        assert records[0].group_id is None
        assert dispatched == records

    def test_cycle_terminates(self) -> None:
        """errA.error = errB, errB.cause = errA 能终止且每个异常只记录一次"""
        error_a = ValueError("a")
        error_b = RuntimeError("b")
        error_a.error = error_b
        error_b.cause = error_a

        flattener, _ = _flattener()
        records = flattener.emit(make_decision("error"), error_a)

        assert [record.message for record in records] == ["a", "b"]
        assert len({record.group_id for record in records}) == 1
        assert records[0].group_id is not None
        assert [record.depth for record in records] == [0, 1]
        assert records[0].error == "b"
        assert records[1].data == {"cause": "a"}

    def test_max_errors(self) -> None:
        """发出的异常数不超过 max_errors"""
        flattener, _ = _flattener(max_errors=3)
        records = flattener.emit(make_decision("error"), _chain(10)[0])
        assert len(records) == 3
        assert records[-1].data == {"error": "e3"}

    def test_max_error_depth(self) -> None:
        """超过 max_error_depth 后不再产生新记录"""
        flattener, _ = _flattener(max_error_depth=3)
        records = flattener.emit(make_decision("error"), _chain(50)[0])
        assert [record.depth for record in records] == [0, 1, 2, 3]
        assert records[-1].data == {"error": "e4"}

    def test_context_data_then_child_errors(self) -> None:
        """顺序：当前记录、冲突的上下文、子异常"""
        error = KeyError("k")
        flattener, _ = _flattener()
        records = flattener.emit(make_decision("warn"), {"a": 1}, {"a": 2, "error": error})

        assert [record.depth for record in records] == [0, 1, 1]
        assert records[0].data == {"a": 1, "error": "'k'"}
        assert records[1].data == {"a": 2}
        assert records[1].message is None
        assert records[2].message == "'k'"
        assert len({record.group_id for record in records}) == 1

    def test_child_context_drops_consumed_key(self) -> None:
        """子记录的上下文去掉已消费的异常键"""
        error = KeyError("k")
        flattener, _ = _flattener()
        records = flattener.emit(make_decision("warn"), "text", {"error": error, "request": "r"})
        assert records[1].data == {"request": "r"}

    def test_dispatch_refusal_stops_recursion(self) -> None:
        """dispatch 拒绝时停止递归"""
        flattener, dispatched = _flattener(accept=False)
        records = flattener.emit(make_decision("error"), _chain(3)[0])
        assert records == []
        assert len(dispatched) == 1

    def test_empty_message_uses_error(self) -> None:
        """无消息时使用 error 作为消息"""
        flattener, _ = _flattener()
        records = flattener.emit(make_decision("error"), {"error": "failed"})
        assert records[0].message == "failed"
