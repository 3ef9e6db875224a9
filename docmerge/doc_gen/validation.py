"""
模板校验 - 判断模板能否用于生成

检查项：
- 至少包含一个元素
- 页面几何合法（页边距不超过页面）
- 元素坐标非负、尺寸为正
- 元素数量不超过上限
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..config import get_config
from ..interfaces import TemplateInvalid
from ..models import Template


class ValidationReport(BaseModel):
    """校验结果"""
    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)

    @property
    def error(self) -> str | None:
        return "; ".join(self.errors) if self.errors else None


def validate_template(template: Template, max_elements: int | None = None) -> ValidationReport:
    """校验模板是否可用于生成"""
    if max_elements is None:
        max_elements = get_config().limits.max_elements

    errors: list[str] = []

    if not template.elements:
        errors.append("模板不包含任何元素")
    elif len(template.elements) > max_elements:
        errors.append(f"模板元素过多: {len(template.elements)} > {max_elements}")

    errors.extend(template.page_geometry.geometry_errors())

    for element in template.elements:
        if element.x < 0 or element.y < 0:
            errors.append(f'元素 "{element.field_name}" 位置无效')

    return ValidationReport(is_valid=not errors, errors=errors)


def ensure_valid(template: Template, max_elements: int | None = None) -> None:
    """校验失败时抛出 TemplateInvalid"""
    report = validate_template(template, max_elements)
    if not report.is_valid:
        raise TemplateInvalid(f"模板无效: {report.error}")
