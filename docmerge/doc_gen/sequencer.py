"""
版面排序器 - 确定占位元素的阅读顺序（自上而下、自左而右）

规则：
1. 按纵坐标排序
2. 相邻元素纵坐标差不超过容差（默认10）视为同一行（链式归行）
3. 行内按横坐标升序
4. 坐标完全相同时按元素ID排序，结果与输入顺序无关

容差来自 RuntimeConfig.layout.line_tolerance，可按实例覆盖；
排序只产生新列表，不修改模板
"""

from __future__ import annotations

from collections.abc import Iterable

from ..config import get_config
from ..models import PlaceholderElement


class LayoutSequencer:
    """版面排序器"""

    def __init__(self, line_tolerance: float | None = None):
        if line_tolerance is None:
            line_tolerance = get_config().layout.line_tolerance
        if line_tolerance < 0:
            raise ValueError("line_tolerance 不能为负数")
        self.line_tolerance = line_tolerance

    def lines(self, elements: Iterable[PlaceholderElement]) -> list[list[PlaceholderElement]]:
        """按行分组，行内已按横坐标排序"""
        ordered = sorted(elements, key=lambda e: (e.y, e.x, e.id))

        groups: list[list[PlaceholderElement]] = []
        current: list[PlaceholderElement] = []
        last_y: float | None = None
        for element in ordered:
            if last_y is None or abs(element.y - last_y) <= self.line_tolerance:
                current.append(element)
            else:
                groups.append(current)
                current = [element]
            last_y = element.y
        if current:
            groups.append(current)

        return [sorted(group, key=lambda e: (e.x, e.y, e.id)) for group in groups]

    def sequence(self, elements: Iterable[PlaceholderElement]) -> list[PlaceholderElement]:
        """展平后的阅读顺序"""
        return [element for line in self.lines(elements) for element in line]
