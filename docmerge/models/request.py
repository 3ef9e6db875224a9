"""
生成请求与结果模型

请求创建后不可变，由协调器一次性消费；
结果交付后归调用方所有，引擎不保留引用
"""

from __future__ import annotations

import base64
import re
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .dataset import Dataset
from .template import PlaceholderElement, Template

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

RowSelection = Union[int, Literal["all"], list[int]]

_UNSAFE_NAME_CHARS = re.compile(r"[^\w\s-]", flags=re.UNICODE)


class _RequestModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class OutputNaming(_RequestModel):
    """输出文件命名规则

    pattern 可用占位符：{template} 模板名、{row} 行号(从1起)、{index} 行下标(从0起)
    """
    pattern: str = "{template}_{row}"
    extension: str = ".docx"

    def file_name(self, template_name: str, row_index: int) -> str:
        base = sanitize_name(template_name) or "document"
        name = self.pattern.format(template=base, row=row_index + 1, index=row_index)
        ext = self.extension if self.extension.startswith(".") or not self.extension else f".{self.extension}"
        return f"{name}{ext}"


class GenerationRequest(_RequestModel):
    """生成请求"""
    template: Template
    dataset: Dataset
    field_mapping: dict[str, str] = Field(default_factory=dict, description="元素ID→列名/系统字段")
    row_selection: RowSelection = 0
    output_naming: OutputNaming = Field(default_factory=OutputNaming)
    include_headers: bool = Field(False, description="文档开头列出数据集表头")

    @field_validator("row_selection")
    @classmethod
    def _normalize_selection(cls, v: RowSelection) -> RowSelection:
        if isinstance(v, list):
            return sorted(set(v))
        return v

    def effective_field_name(self, element: PlaceholderElement) -> str:
        """映射表优先，未映射时使用元素自身的 field_name"""
        return self.field_mapping.get(element.id) or element.field_name

    def selected_indices(self) -> list[int]:
        """按升序返回选中的行下标"""
        if self.row_selection == "all":
            return list(range(self.dataset.row_count))
        if isinstance(self.row_selection, int):
            return [self.row_selection]
        return list(self.row_selection)

    @property
    def single_index(self) -> int:
        """单文档生成使用的行下标"""
        if isinstance(self.row_selection, int):
            return self.row_selection
        indices = self.selected_indices()
        return indices[0] if indices else 0


class ResolvedElement(BaseModel):
    """已解析元素（渲染器输入）"""

    model_config = ConfigDict(frozen=True)

    element: PlaceholderElement
    value: str
    line: int = 0


class Artifact(BaseModel):
    """单行生成的文档产物"""

    model_config = ConfigDict(frozen=True)

    row_index: int
    file_name: str
    content: bytes
    media_type: str = DOCX_MEDIA_TYPE

    @property
    def size(self) -> int:
        return len(self.content)

    def to_wire(self) -> dict:
        """跨边界传输格式（内容base64）"""
        return {
            "row_index": self.row_index,
            "file_name": self.file_name,
            "buffer": base64.b64encode(self.content).decode("ascii"),
            "media_type": self.media_type,
        }

    @classmethod
    def from_wire(cls, data: dict) -> Artifact:
        return cls(
            row_index=data["row_index"],
            file_name=data["file_name"],
            content=base64.b64decode(data["buffer"]),
            media_type=data.get("media_type", DOCX_MEDIA_TYPE),
        )


class GenerationResult(BaseModel):
    """生成结果：单文档 artifact 或批量 artifacts（按行号升序）"""

    artifact: Artifact | None = None
    artifacts: list[Artifact] | None = None

    @property
    def is_batch(self) -> bool:
        return self.artifacts is not None

    def all_artifacts(self) -> list[Artifact]:
        if self.artifacts is not None:
            return list(self.artifacts)
        return [self.artifact] if self.artifact else []


class ProgressEvent(BaseModel):
    """进度事件"""

    model_config = ConfigDict(frozen=True)

    current: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    message: str = ""

    @property
    def done(self) -> bool:
        return self.current >= self.total


def sanitize_name(name: str) -> str:
    """去除文件名中的非法字符"""
    return _UNSAFE_NAME_CHARS.sub("", name).strip()
