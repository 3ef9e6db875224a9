"""
数据集模型 - 表格数据（表头+行记录）

行记录是 表头→单元格值 的映射，可缺省某些表头（视为空单元格）
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

CellValue = Union[bool, int, float, Decimal, datetime, date, str, None]
Row = dict[str, CellValue]


class Dataset(BaseModel):
    """表格数据集"""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    headers: list[str] = Field(default_factory=list)
    rows: list[Row] = Field(default_factory=list)
    selected_sheet: str = ""

    @model_validator(mode="after")
    def _check_shape(self) -> Dataset:
        if len(set(self.headers)) != len(self.headers):
            raise ValueError("表头存在重复列名")
        header_set = set(self.headers)
        for i, row in enumerate(self.rows):
            unknown = [k for k in row if k not in header_set]
            if unknown:
                raise ValueError(f"第 {i + 1} 行包含未知列: {', '.join(unknown)}")
        return self

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def get_row(self, index: int) -> Row | None:
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return None

    @classmethod
    def from_records(
        cls,
        records: list[dict[str, Any]],
        headers: list[str] | None = None,
        selected_sheet: str = "",
    ) -> Dataset:
        """由记录列表构建（未给表头时按首次出现顺序收集）"""
        if headers is None:
            headers = []
            for record in records:
                for key in record:
                    if key not in headers:
                        headers.append(key)
        return cls(headers=headers, rows=records, selected_sheet=selected_sheet)
