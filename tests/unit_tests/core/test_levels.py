"""
级别与标签模型单元测试

测试 LevelTable 的排序/合成级别，以及 combine_tags / merge_context 的合并语义。
"""

from __future__ import annotations

import pytest

from polylog.levels import LEVELS, LevelTable, combine_tags, merge_context


class TestLevelTable:
    """LevelTable 测试"""

    def test_fail_is_more_severe_than_error(self) -> None:
        """fail 比 error 更严重"""
        table = LevelTable()
        assert table.more_severe("fail", "error")
        assert table.names[0] == "fail"
        assert table.names[-1] == "silly"

    def test_default_resolves_to_configured_level(self) -> None:
        """default 解析为配置的默认级别"""
        table = LevelTable("info")
        assert table.resolve("default") == "info"
        assert table.rank("default") == LEVELS["info"]

    def test_off_never_admits_and_on_always_admits(self) -> None:
        """off 从不放行，on 总是放行"""
        table = LevelTable()
        for name in LEVELS:
            assert not table.admits("off", name)
            assert table.admits("on", name)

    def test_admits_more_severe_levels(self) -> None:
        """阈值放行同级及更严重的级别"""
        table = LevelTable()
        assert table.admits("warn", "error")
        assert table.admits("warn", "warn")
        assert not table.admits("warn", "info")
        assert table.admits(None, "silly")

    def test_most_severe_wins(self) -> None:
        """多个级别名时取最严重者"""
        table = LevelTable()
        assert table.most_severe(["debug", "error", "goofy"]) == "error"
        assert table.most_severe(["goofy"]) is None

    def test_synthetic_names_are_contained_but_not_levels(self) -> None:
        """合成级别可识别，但 on/off 不能作为记录级别"""
        table = LevelTable()
        assert "off" in table
        assert not table.is_level("off")
        assert table.is_level("default")

    def test_unknown_default_level_raises(self) -> None:
        """未知的默认级别应抛出异常"""
        with pytest.raises(ValueError):
            LevelTable("loud")


class TestCombineTags:
    """combine_tags 测试"""

    def test_name_and_list_are_normalized(self) -> None:
        """单个名称与名称列表被规范化为映射"""
        assert combine_tags("a", ["b", "c"]) == {"a": True, "b": True, "c": True}

    def test_second_side_wins(self) -> None:
        """冲突时第二个参数优先"""
        assert combine_tags({"a": True}, {"a": False}) == {"a": False}

    def test_empty_side_returns_other_unchanged(self) -> None:
        """一侧为空时原样返回另一侧"""
        tags = {"a": True}
        assert combine_tags(tags, None) is tags
        assert combine_tags(None, tags) is tags
        assert combine_tags(None, None) == {}

    def test_inputs_are_not_mutated(self) -> None:
        """输入不被修改"""
        first = {"a": True}
        second = {"b": True}
        combined = combine_tags(first, second)
        assert combined == {"a": True, "b": True}
        assert first == {"a": True}
        assert second == {"b": True}


class TestMergeContext:
    """merge_context 测试"""

    def test_exception_becomes_error_key(self) -> None:
        """异常被规范化为 {'error': e}"""
        error = ValueError("boom")
        assert merge_context(None, error) == {"error": error}

    def test_scalar_becomes_message(self) -> None:
        """标量被规范化为 {'message': value}"""
        assert merge_context({"a": 1}, "text") == {"a": 1, "message": "text"}

    def test_shallow_merge_second_wins(self) -> None:
        """浅合并，第二个参数优先"""
        first = {"a": 1, "b": 1}
        assert merge_context(first, {"b": 2}) == {"a": 1, "b": 2}
        assert first == {"a": 1, "b": 1}
