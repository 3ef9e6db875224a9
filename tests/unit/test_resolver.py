"""
字段解析器单元测试

每个模块完成后必须运行：pytest tests/unit/test_resolver.py -v
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from docmerge.config import LocaleConfig
from docmerge.doc_gen import FieldResolver
from docmerge.doc_gen.resolver import FIELD_DATA, FIELD_SYSTEM, FIELD_UNRESOLVED

NBSP = "\u00a0"


class TestDataFields:
    """数据列解析"""

    def test_resolve_data_field(self, resolver: FieldResolver):
        """测试文本列原样输出"""
        assert resolver.resolve("Имя", {"Имя": "Иван"}, ["Имя"]) == "Иван"

    def test_ivan_scenario(self, resolver: FieldResolver):
        """测试 ["Ivan", 日期] 场景"""
        headers = ["Name", "Date"]
        row = {"Name": "Ivan", "Date": date(2024, 1, 15)}
        assert resolver.resolve("Name", row, headers) == "Ivan"
        assert resolver.resolve("Date", row, headers) == "15.01.2024"

    def test_resolve_null_cell(self, resolver: FieldResolver):
        """测试空值返回空值标记"""
        assert resolver.resolve("Город", {"Город": None}, ["Город"]) == "[пусто]"

    def test_resolve_missing_cell(self, resolver: FieldResolver):
        """测试行内缺省的表头视为空单元格"""
        assert resolver.resolve("Город", {}, ["Город"]) == "[пусто]"

    def test_resolve_datetime_uses_date_format(self, resolver: FieldResolver):
        """测试日期时间单元格按日期格式输出"""
        assert resolver.resolve("D", {"D": datetime(2023, 12, 31, 23, 59)}, ["D"]) == "31.12.2023"

    def test_resolve_bool(self, resolver: FieldResolver):
        """测试布尔值"""
        assert resolver.resolve("B", {"B": True}, ["B"]) == "true"
        assert resolver.resolve("B", {"B": False}, ["B"]) == "false"

    def test_custom_empty_marker(self, fixed_clock):
        """测试空值标记可配置"""
        custom = FieldResolver(LocaleConfig(empty_marker="—"), clock=fixed_clock)
        assert custom.resolve("X", {"X": None}, ["X"]) == "—"


class TestNumberFormatting:
    """数字格式化（ru-RU）"""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1234567, f"1{NBSP}234{NBSP}567"),
            (0, "0"),
            (-1500, f"-1{NBSP}500"),
            (12.5, "12,5"),
            (1234.5678, f"1{NBSP}234,568"),
            (2.0, "2"),
            (Decimal("1000.10"), f"1{NBSP}000,1"),
        ],
    )
    def test_format_number(self, resolver: FieldResolver, value, expected):
        """测试千分位与小数位"""
        assert resolver.resolve("N", {"N": value}, ["N"]) == expected

    def test_nan_and_inf(self, resolver: FieldResolver):
        """测试非数字与无穷"""
        assert resolver.format_value(float("nan")) == "не число"
        assert resolver.format_value(float("inf")) == "∞"
        assert resolver.format_value(float("-inf")) == "-∞"


class TestSystemTokens:
    """系统字段"""

    def test_current_date(self, resolver: FieldResolver):
        """测试当前日期读取注入时钟"""
        assert resolver.resolve("{{currentDate}}", {}, []) == "05.03.2024"

    def test_current_time_and_datetime(self, resolver: FieldResolver):
        """测试当前时间/日期时间"""
        assert resolver.resolve("{{currentTime}}", {}, []) == "14:07:09"
        assert resolver.resolve("{{currentDateTime}}", {}, []) == "05.03.2024, 14:07:09"

    def test_static_tokens(self, resolver: FieldResolver):
        """测试固定值系统字段"""
        assert resolver.resolve("{{pageNumber}}", {}, []) == "1"
        assert resolver.resolve("{{totalPages}}", {}, []) == "1"
        assert resolver.resolve("{{documentTitle}}", {}, []) == "Документ"
        assert resolver.resolve("{{author}}", {}, []) == "Пользователь"

    def test_resolve_unknown_system_token(self, resolver: FieldResolver):
        """测试未知系统字段软失败"""
        assert resolver.resolve("{{foo}}", {}, []) == "[foo]"

    def test_system_token_wins_over_header(self, resolver: FieldResolver):
        """测试与表头同名时系统字段优先"""
        assert resolver.resolve("{{author}}", {"{{author}}": "X"}, ["{{author}}"]) == "Пользователь"

    def test_system_tokens_listing(self, resolver: FieldResolver):
        """测试已知系统字段列表"""
        assert "{{currentDate}}" in resolver.system_tokens
        assert len(resolver.system_tokens) == 7


class TestSoftFailure:
    """软失败不变式"""

    @pytest.mark.parametrize("name", ["Missing", "{{}}", "{{x", "x}}", " ", "[пусто]"])
    def test_resolve_unresolved_field(self, resolver: FieldResolver, name: str):
        """测试未知字段返回方括号原名，不抛异常"""
        assert resolver.resolve(name, {"A": 1}, ["A"]) == f"[{name}]"

    def test_none_row(self, resolver: FieldResolver):
        """测试行为 None 时按空单元格处理"""
        assert resolver.resolve("A", None, ["A"]) == "[пусто]"


class TestPurity:
    """纯函数性"""

    def test_same_inputs_same_output(self, resolver: FieldResolver):
        """测试相同输入结果一致"""
        row = {"A": 1234.5, "B": None, "C": date(2020, 2, 29)}
        headers = ["A", "B", "C"]
        first = [resolver.resolve(h, row, headers) for h in headers + ["{{currentDate}}", "Z"]]
        second = [resolver.resolve(h, row, headers) for h in headers + ["{{currentDate}}", "Z"]]
        assert first == second

    def test_does_not_mutate_row(self, resolver: FieldResolver):
        """测试不修改输入行"""
        row = {"A": None}
        resolver.resolve("A", row, ["A"])
        resolver.resolve("B", row, ["A"])
        assert row == {"A": None}


class TestClassify:
    """字段分类"""

    def test_classify(self, resolver: FieldResolver):
        """测试三类字段"""
        headers = ["A"]
        assert resolver.classify("{{author}}", headers) == FIELD_SYSTEM
        assert resolver.classify("A", headers) == FIELD_DATA
        assert resolver.classify("B", headers) == FIELD_UNRESOLVED
        assert resolver.classify("{{unknown}}", headers) == FIELD_UNRESOLVED
