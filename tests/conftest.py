"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(resolver, sample_dataset):
        assert resolver.resolve("Имя", sample_dataset.rows[0], sample_dataset.headers) == "Иван"
"""

from __future__ import annotations

import tempfile
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Generator

import pytest

from docmerge.config import LocaleConfig, RuntimeConfig
from docmerge.doc_gen import FieldResolver, LayoutSequencer
from docmerge.interfaces import IDocumentRenderer, RenderFailure
from docmerge.models import (
    Dataset,
    GenerationRequest,
    PageGeometry,
    PlaceholderElement,
    ResolvedElement,
    Template,
)
from docmerge.pipeline import GenerationCoordinator

FIXED_NOW = datetime(2024, 3, 5, 14, 7, 9)


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def runtime_config(temp_dir: Path) -> RuntimeConfig:
    """运行期配置（存储目录指向临时目录，超时缩短）"""
    config = RuntimeConfig(storage_dir=temp_dir / "storage")
    config.worker.request_timeout_ms = 10_000
    config.worker.join_timeout_sec = 2.0
    config.worker.poll_interval_sec = 0.02
    return config


@pytest.fixture
def locale() -> LocaleConfig:
    return LocaleConfig()


@pytest.fixture
def fixed_clock():
    """固定时钟"""
    return lambda: FIXED_NOW


@pytest.fixture
def resolver(locale: LocaleConfig, fixed_clock) -> FieldResolver:
    return FieldResolver(locale, clock=fixed_clock)


@pytest.fixture
def sequencer() -> LayoutSequencer:
    return LayoutSequencer(10)


# ============================================================================
# 模板与数据 Fixtures
# ============================================================================

def make_element(element_id: str, field_name: str, x: float, y: float, **style) -> PlaceholderElement:
    """构造占位元素"""
    return PlaceholderElement(
        id=element_id,
        field_name=field_name,
        x=x,
        y=y,
        width=120,
        height=24,
        style=style or {},
    )


@pytest.fixture
def sample_template() -> Template:
    """示例模板：一行两个字段 + 下一行日期"""
    return Template(
        id="tpl-1",
        name="Договор",
        page_geometry=PageGeometry(),
        elements=[
            make_element("e-date", "Дата", 100, 200),
            make_element("e-name", "Имя", 100, 100, font_weight="bold"),
            make_element("e-city", "Город", 300, 104),
        ],
    )


@pytest.fixture
def sample_dataset() -> Dataset:
    """示例数据集（3行）"""
    return Dataset(
        headers=["Имя", "Дата", "Город", "Сумма"],
        rows=[
            {"Имя": "Иван", "Дата": date(2024, 1, 15), "Город": "Москва", "Сумма": 1234567},
            {"Имя": "Мария", "Дата": date(2024, 2, 1), "Город": None, "Сумма": 12.5},
            {"Имя": "Пётр", "Дата": date(2024, 3, 10), "Сумма": 0},
        ],
        selected_sheet="Лист1",
    )


@pytest.fixture
def sample_request(sample_template: Template, sample_dataset: Dataset) -> GenerationRequest:
    """批量生成全部行"""
    return GenerationRequest(template=sample_template, dataset=sample_dataset, row_selection="all")


# ============================================================================
# 渲染器 Fixtures
# ============================================================================

class RecordingRenderer(IDocumentRenderer):
    """记录渲染输入，输出为可读文本"""

    media_type = "text/plain"
    extension = ".txt"

    def __init__(self, fail_on_call: int | None = None):
        self.calls: list[list[ResolvedElement]] = []
        self.headings: list[str | None] = []
        self.fail_on_call = fail_on_call

    def render(self, elements: list[ResolvedElement], page: PageGeometry, heading: str | None = None) -> bytes:
        self.calls.append(list(elements))
        self.headings.append(heading)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RenderFailure("模拟渲染失败")
        return "|".join(r.value for r in elements).encode("utf-8")


class BlockingRenderer(RecordingRenderer):
    """第一次渲染时阻塞，直到测试放行"""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def render(self, elements: list[ResolvedElement], page: PageGeometry, heading: str | None = None) -> bytes:
        if not self.started.is_set():
            self.started.set()
            assert self.release.wait(timeout=5), "测试未放行渲染"
        return super().render(elements, page, heading)


@pytest.fixture
def recording_renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def coordinator(recording_renderer: RecordingRenderer, make_coordinator) -> GenerationCoordinator:
    return make_coordinator(recording_renderer)


@pytest.fixture
def failing_renderer() -> RecordingRenderer:
    """第2次渲染失败"""
    return RecordingRenderer(fail_on_call=2)


@pytest.fixture
def blocking_renderer() -> BlockingRenderer:
    return BlockingRenderer()


@pytest.fixture
def make_coordinator(resolver: FieldResolver, runtime_config: RuntimeConfig):
    """按渲染器构造协调器"""

    def _make(renderer: IDocumentRenderer) -> GenerationCoordinator:
        return GenerationCoordinator(
            renderer=renderer,
            resolver=resolver,
            sequencer=LayoutSequencer(runtime_config.layout.line_tolerance),
            config=runtime_config,
        )

    return _make
