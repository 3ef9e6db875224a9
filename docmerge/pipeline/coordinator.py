"""
生成协调器 - 编排单文档/批量文档生成

职责：
1. 校验模板与行号
2. 逐行：字段解析 → 版面排序 → 渲染
3. 每完成一行上报一次进度（current 依次为 1..N，total 恒为 N）
4. 每行开始前检查取消标记（不在行内中断）

失败策略：
- 批量生成中任一行失败即整批失败，不返回部分结果；
  需要部分结果的调用方应自行按行拆分请求
- 取消时抛出 GenerationCancelled，已生成的产物全部丢弃

测试要点：
- test_generate_one: 单文档生成
- test_generate_batch_progress: 进度单调 1..N
- test_batch_render_failure: 单行失败整批失败
- test_cancel_at_row_boundary: 取消边界
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from pydantic import BaseModel

from ..config import RuntimeConfig, get_config
from ..doc_gen import DocxRenderer, FieldResolver, LayoutSequencer, ValidationReport, ensure_valid, validate_template
from ..doc_gen.resolver import FIELD_DATA, FIELD_SYSTEM, FIELD_UNRESOLVED
from ..interfaces import (
    GenerationCancelled,
    IDocumentRenderer,
    RenderFailure,
    RequestInvalid,
    RowOutOfRange,
)
from ..models import (
    Artifact,
    Dataset,
    GenerationRequest,
    GenerationResult,
    ProgressEvent,
    ResolvedElement,
    Row,
    Template,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class GenerationStats(BaseModel):
    """生成前统计"""
    total_elements: int
    system_fields: int
    data_fields: int
    unresolved_fields: int
    rows_to_process: int

    @property
    def can_generate(self) -> bool:
        return self.total_elements > 0 and self.unresolved_fields == 0


class GenerationCoordinator:
    """生成协调器"""

    def __init__(
        self,
        renderer: IDocumentRenderer | None = None,
        resolver: FieldResolver | None = None,
        sequencer: LayoutSequencer | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.config = config or get_config()
        self.renderer = renderer or DocxRenderer(self.config.layout)
        self.resolver = resolver or FieldResolver(self.config.locale)
        self.sequencer = sequencer or LayoutSequencer(self.config.layout.line_tolerance)

    # ------------------------------------------------------------------
    # 生成
    # ------------------------------------------------------------------

    def generate_one(self, request: GenerationRequest) -> GenerationResult:
        """生成单个文档"""
        self._check_template(request.template)

        index = request.single_index
        row = self._get_row(request.dataset, index)
        artifact = self._generate_row(request, index, row)
        return GenerationResult(artifact=artifact)

    def generate_batch(
        self,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> GenerationResult:
        """批量生成（任一行失败整批失败）"""
        self._check_template(request.template)

        indices = request.selected_indices()
        limit = self.config.limits.max_rows_per_batch
        if len(indices) > limit:
            raise RequestInvalid(f"选中行数超出上限: {len(indices)} > {limit}")
        for index in indices:
            if request.dataset.get_row(index) is None:
                raise RowOutOfRange(f"行号 {index} 超出数据范围 (共 {request.dataset.row_count} 行)")

        total = len(indices)
        artifacts: list[Artifact] = []
        logger.info(f"批量生成开始: 模板={request.template.name!r} 行数={total}")

        for done, index in enumerate(indices):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"批量生成已取消: 已完成 {done}/{total}")
                raise GenerationCancelled(completed=done)

            artifacts.append(self._generate_row(request, index, request.dataset.rows[index]))

            if on_progress is not None:
                on_progress(ProgressEvent(
                    current=done + 1,
                    total=total,
                    message=self.config.locale.progress_message.format(current=done + 1, total=total),
                ))

        logger.info(f"批量生成完成: {len(artifacts)} 个文档")
        return GenerationResult(artifacts=artifacts)

    def resolve_row(self, request: GenerationRequest, row: Row) -> list[ResolvedElement]:
        """解析一行：按阅读顺序返回已解析元素（不渲染）"""
        headers = request.dataset.headers
        resolved: list[ResolvedElement] = []
        for line_no, line in enumerate(self.sequencer.lines(request.template.elements)):
            for element in line:
                value = self.resolver.resolve(request.effective_field_name(element), row, headers)
                resolved.append(ResolvedElement(element=element, value=value, line=line_no))
        return resolved

    # ------------------------------------------------------------------
    # 校验与统计
    # ------------------------------------------------------------------

    def validate(self, template: Template) -> ValidationReport:
        """校验模板（不抛异常）"""
        return validate_template(template, self.config.limits.max_elements)

    def stats(self, request: GenerationRequest) -> GenerationStats:
        """统计各类字段数量"""
        counts = {FIELD_SYSTEM: 0, FIELD_DATA: 0, FIELD_UNRESOLVED: 0}
        for element in request.template.elements:
            kind = self.resolver.classify(request.effective_field_name(element), request.dataset.headers)
            counts[kind] += 1
        return GenerationStats(
            total_elements=len(request.template.elements),
            system_fields=counts[FIELD_SYSTEM],
            data_fields=counts[FIELD_DATA],
            unresolved_fields=counts[FIELD_UNRESOLVED],
            rows_to_process=len(request.selected_indices()),
        )

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    def _check_template(self, template: Template) -> None:
        ensure_valid(template, self.config.limits.max_elements)

    def _get_row(self, dataset: Dataset, index: int) -> Row:
        row = dataset.get_row(index)
        if row is not None:
            return row
        # 与前端行为一致：空数据集的第0行按空行渲染
        if index == 0 and dataset.row_count == 0:
            return {}
        raise RowOutOfRange(f"行号 {index} 超出数据范围 (共 {dataset.row_count} 行)")

    def _heading(self, request: GenerationRequest) -> str | None:
        headers = request.dataset.headers
        if not request.include_headers or not headers:
            return None
        return f"{self.config.locale.headers_label}: {', '.join(headers)}"

    def _generate_row(self, request: GenerationRequest, index: int, row: Row) -> Artifact:
        resolved = self.resolve_row(request, row)
        try:
            content = self.renderer.render(resolved, request.template.page_geometry, self._heading(request))
        except RenderFailure as e:
            raise RenderFailure(e.reason, row_index=index) from e
        except Exception as e:
            logger.exception(f"第 {index + 1} 行渲染异常")
            raise RenderFailure(str(e), row_index=index) from e

        return Artifact(
            row_index=index,
            file_name=request.output_naming.file_name(request.template.name, index),
            content=content,
            media_type=self.renderer.media_type,
        )
