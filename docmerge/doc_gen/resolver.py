"""
字段解析器 - 占位字段名 + 数据行 + 表头 → 字符串值

职责：
1. 系统字段（{{currentDate}} 等）调用对应的无参提供函数
2. 数据列字段按类型格式化（空值/数字/日期/其他）
3. 无法解析的字段软失败：返回带方括号的原字段名，绝不抛异常

纯函数约束：
- 除 currentDate/currentTime/currentDateTime 外，结果只取决于 (field_name, row, headers)
- 日期时间类系统字段读取注入的时钟（默认 datetime.now），测试时注入固定时钟

测试要点：
- test_resolve_data_field: 数据列解析
- test_resolve_null_cell: 空值返回空值标记而不是"None"
- test_resolve_number_grouping: 数字千分位
- test_resolve_unknown_system_token: 未知系统字段软失败
- test_resolve_unresolved_field: 未知字段软失败
"""

from __future__ import annotations

import math
from collections.abc import Callable, Collection, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ..config import LocaleConfig, get_config
from ..models.template import is_system_token, system_token_name

Clock = Callable[[], datetime]

FIELD_SYSTEM = "system"
FIELD_DATA = "data"
FIELD_UNRESOLVED = "unresolved"


class FieldResolver:
    """字段解析器"""

    # 需要读取时钟的系统字段（非纯）
    CLOCK_TOKENS = frozenset({"currentDate", "currentTime", "currentDateTime"})

    def __init__(self, locale: LocaleConfig | None = None, clock: Clock | None = None):
        self.locale = locale or get_config().locale
        self.clock: Clock = clock or datetime.now
        self._providers: dict[str, Callable[[], str]] = {
            "currentDate": lambda: self.clock().strftime(self.locale.date_format),
            "currentTime": lambda: self.clock().strftime(self.locale.time_format),
            "currentDateTime": lambda: self.clock().strftime(self.locale.datetime_format),
            "pageNumber": lambda: "1",
            "totalPages": lambda: "1",
            "documentTitle": lambda: self.locale.document_title,
            "author": lambda: self.locale.author,
        }

    @property
    def system_tokens(self) -> list[str]:
        """已知系统字段（带定界符）"""
        return [f"{{{{{name}}}}}" for name in self._providers]

    def resolve(
        self,
        field_name: str,
        row: Mapping[str, Any] | None,
        headers: Collection[str],
    ) -> str:
        """解析单个字段"""
        if is_system_token(field_name):
            name = system_token_name(field_name)
            provider = self._providers.get(name)
            return provider() if provider else unresolved_marker(name)

        if field_name in headers:
            value = (row or {}).get(field_name)
            return self.format_value(value)

        return unresolved_marker(field_name)

    def classify(self, field_name: str, headers: Collection[str]) -> str:
        """判断字段类别：system / data / unresolved"""
        if is_system_token(field_name):
            if system_token_name(field_name) in self._providers:
                return FIELD_SYSTEM
            return FIELD_UNRESOLVED
        if field_name in headers:
            return FIELD_DATA
        return FIELD_UNRESOLVED

    def format_value(self, value: Any) -> str:
        """单元格值格式化"""
        if value is None:
            return self.locale.empty_marker
        # bool 是 int 的子类，必须先判断
        if isinstance(value, bool):
            return self.locale.true_text if value else self.locale.false_text
        if isinstance(value, (int, float, Decimal)):
            return self.format_number(value)
        if isinstance(value, (date, datetime)):
            return value.strftime(self.locale.date_format)
        return str(value)

    def format_number(self, value: int | float | Decimal) -> str:
        """按本地化规则格式化数字（千分位+小数位截断）"""
        if isinstance(value, float):
            if math.isnan(value):
                return self.locale.nan_text
            if math.isinf(value):
                return "-∞" if value < 0 else "∞"

        if isinstance(value, int):
            text = f"{value:,}"
        else:
            digits = max(self.locale.max_fraction_digits, 0)
            text = f"{value:,.{digits}f}"
            if "." in text:
                text = text.rstrip("0").rstrip(".")
            if text in ("-0", ""):
                text = "0"

        # 先占位再替换，避免分隔符互相覆盖
        return (
            text.replace(",", "\x00")
            .replace(".", self.locale.decimal_separator)
            .replace("\x00", self.locale.group_separator)
        )


def unresolved_marker(name: str) -> str:
    """未解析字段标记（在输出中可见）"""
    return f"[{name}]"
