"""
模板模型 - 页面几何与定位占位元素

模板只描述"哪个字段放在哪里"，不关心数据来源；
所有模型冻结（frozen），生成过程中不会被修改
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

SYSTEM_TOKEN_OPEN = "{{"
SYSTEM_TOKEN_CLOSE = "}}"


class _FrozenModel(BaseModel):
    """冻结模型基类（兼容前端驼峰字段名）"""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class PageGeometry(_FrozenModel):
    """页面几何（版面单位：96 DPI 像素）"""
    width: float = Field(794.0, gt=0, description="默认A4宽")
    height: float = Field(1123.0, gt=0, description="默认A4高")
    margin_top: float = Field(96.0, ge=0)
    margin_right: float = Field(96.0, ge=0)
    margin_bottom: float = Field(96.0, ge=0)
    margin_left: float = Field(96.0, ge=0)

    @property
    def orientation(self) -> str:
        return "landscape" if self.width > self.height else "portrait"

    def geometry_errors(self) -> list[str]:
        """页边距与页面尺寸的一致性检查"""
        errors = []
        if self.margin_left + self.margin_right >= self.width:
            errors.append("左右页边距之和不小于页面宽度")
        if self.margin_top + self.margin_bottom >= self.height:
            errors.append("上下页边距之和不小于页面高度")
        return errors


class ElementStyle(_FrozenModel):
    """元素样式"""
    font_size: float = Field(12.0, gt=0)
    font_weight: Literal["normal", "bold"] = "normal"
    text_align: Literal["left", "center", "right"] = "left"
    font_family: str = "Arial"
    color: str = "#000000"


class PlaceholderElement(_FrozenModel):
    """定位占位元素"""
    id: str = Field(..., min_length=1)
    field_name: str = Field(..., min_length=1, description="系统字段({{name}})或数据列名")
    x: float
    y: float
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    style: ElementStyle = Field(default_factory=ElementStyle, alias="styles")

    @property
    def is_system_token(self) -> bool:
        return is_system_token(self.field_name)


class Template(_FrozenModel):
    """文档模板"""
    id: str = Field(..., min_length=1)
    name: str = ""
    page_geometry: PageGeometry = Field(default_factory=PageGeometry)
    elements: list[PlaceholderElement] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_ids(self) -> Template:
        seen: set[str] = set()
        for element in self.elements:
            if element.id in seen:
                raise ValueError(f"元素ID重复: {element.id}")
            seen.add(element.id)
        return self

    def get_element(self, element_id: str) -> PlaceholderElement | None:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None


def is_system_token(field_name: str) -> bool:
    """是否为 {{name}} 形式的系统字段"""
    return (
        len(field_name) > len(SYSTEM_TOKEN_OPEN) + len(SYSTEM_TOKEN_CLOSE)
        and field_name.startswith(SYSTEM_TOKEN_OPEN)
        and field_name.endswith(SYSTEM_TOKEN_CLOSE)
    )


def system_token_name(field_name: str) -> str:
    """{{name}} → name"""
    return field_name[len(SYSTEM_TOKEN_OPEN):-len(SYSTEM_TOKEN_CLOSE)]
