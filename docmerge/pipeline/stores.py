"""
协作方存储 - 模板存储与数据集来源的默认实现

职责：
1. FileTemplateStore: 模板以JSON文件保存在 storage_dir/templates 下
2. InMemoryDatasetProvider: 内存数据集（测试与API上传后使用）
3. XlsxDatasetProvider: 读取xlsx工作表，首行为表头

持久化可靠性与表格解析正确性不属于引擎职责，这里只提供最小实现

测试要点：
- test_template_store_roundtrip: 保存/读取/删除
- test_xlsx_provider_headers: 首行表头、空单元格
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime
from pathlib import Path

from openpyxl import load_workbook
from pydantic import ValidationError

from ..config import get_config
from ..interfaces import IDatasetProvider, ITemplateStore
from ..models import Dataset, Template

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[\w-]+$")


class FileTemplateStore(ITemplateStore):
    """基于JSON文件的模板存储"""

    def __init__(self, root: Path | None = None):
        self.root = Path(root) if root else get_config().get_templates_dir()
        self._cache: dict[str, Template] = {}

    def get_template(self, template_id: str) -> Template | None:
        """获取模板"""
        if template_id in self._cache:
            return self._cache[template_id]

        template = self._load(template_id)
        if template:
            self._cache[template_id] = template
        return template

    def save_template(self, template: Template) -> str:
        """保存模板（id为空时分配新ID）"""
        if not template.id:
            template = template.model_copy(update={"id": str(uuid.uuid4())})
        self._check_id(template.id)

        self.root.mkdir(parents=True, exist_ok=True)
        with open(self._path(template.id), "w", encoding="utf-8") as f:
            json.dump(template.model_dump(mode="json", by_alias=True), f, ensure_ascii=False, indent=2)

        self._cache[template.id] = template
        return template.id

    def list_templates(self) -> list[Template]:
        """列出全部模板（按名称排序）"""
        if not self.root.exists():
            return []
        templates = []
        for file in sorted(self.root.glob("*.json")):
            template = self.get_template(file.stem)
            if template:
                templates.append(template)
        templates.sort(key=lambda t: t.name)
        return templates

    def delete_template(self, template_id: str) -> bool:
        """删除模板"""
        self._cache.pop(template_id, None)
        if not _SAFE_ID.match(template_id):
            return False
        path = self._path(template_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _path(self, template_id: str) -> Path:
        return self.root / f"{template_id}.json"

    def _check_id(self, template_id: str) -> None:
        if not _SAFE_ID.match(template_id):
            raise ValueError(f"模板ID包含非法字符: {template_id!r}")

    def _load(self, template_id: str) -> Template | None:
        if not _SAFE_ID.match(template_id):
            return None
        path = self._path(template_id)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return Template.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"模板文件无法读取: {path} ({e})")
            return None


class InMemoryDatasetProvider(IDatasetProvider):
    """内存数据集来源"""

    def __init__(self, datasets: dict[str, Dataset] | None = None):
        self._datasets: dict[str, Dataset] = dict(datasets or {})

    def add(self, ref: str, dataset: Dataset) -> None:
        self._datasets[ref] = dataset

    def get_dataset(self, ref: str) -> Dataset:
        try:
            return self._datasets[ref]
        except KeyError:
            raise KeyError(f"数据集不存在: {ref}") from None


class XlsxDatasetProvider(IDatasetProvider):
    """xlsx 数据集来源

    ref 形如 "文件名.xlsx" 或 "文件名.xlsx#工作表"，相对 root 解析；
    首行为表头，空表头列被忽略，全空行被跳过
    """

    def __init__(self, root: Path | None = None):
        self.root = Path(root) if root else get_config().storage_dir / "datasets"

    def get_dataset(self, ref: str) -> Dataset:
        file_part, _, sheet_name = ref.partition("#")
        path = (self.root / file_part).resolve()
        if not path.is_relative_to(self.root.resolve()) or not path.exists():
            raise KeyError(f"数据集不存在: {ref}")
        return self.load(path, sheet_name or None)

    @staticmethod
    def load(path: Path, sheet_name: str | None = None) -> Dataset:
        """读取工作表为数据集"""
        wb = load_workbook(path, read_only=True, data_only=True)
        try:
            if sheet_name:
                if sheet_name not in wb.sheetnames:
                    raise KeyError(f"工作表不存在: {sheet_name}")
                ws = wb[sheet_name]
            else:
                ws = wb.worksheets[0]

            rows = ws.iter_rows(values_only=True)
            header_row = next(rows, None) or ()

            columns: list[tuple[int, str]] = []
            seen: set[str] = set()
            for col, value in enumerate(header_row):
                if value is None or str(value).strip() == "":
                    continue
                header = str(value).strip()
                if header in seen:
                    logger.warning(f"重复表头已忽略: {header}")
                    continue
                seen.add(header)
                columns.append((col, header))

            records = []
            for values in rows:
                record = {}
                for col, header in columns:
                    cell = values[col] if col < len(values) else None
                    if cell is not None:
                        record[header] = _normalize_cell(cell)
                if record:
                    records.append(record)

            logger.info(f"读取数据集: {path.name} [{ws.title}] {len(records)} 行")
            return Dataset(
                headers=[h for _, h in columns],
                rows=records,
                selected_sheet=ws.title,
            )
        finally:
            wb.close()


def _normalize_cell(value):
    # openpyxl 将日期单元格读为 datetime；零点时刻按日期处理
    if isinstance(value, datetime) and value.hour == value.minute == value.second == value.microsecond == 0:
        return value.date()
    if isinstance(value, (bool, int, float, str, datetime)):
        return value
    return str(value)
