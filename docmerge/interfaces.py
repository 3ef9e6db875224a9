"""
模块接口契约 - 定义各模块的抽象接口与异常

设计原则：
1. 引擎只通过接口依赖渲染器、模板存储、数据集来源
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from docmerge.interfaces import IDocumentRenderer

    class MyRenderer(IDocumentRenderer):
        def render(self, elements, page) -> bytes:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Dataset, Job, PageGeometry, ResolvedElement, Template


# ============================================================================
# 渲染器接口
# ============================================================================

class IDocumentRenderer(ABC):
    """文档渲染器接口 - 已解析字段+页面几何 → 二进制文档"""

    media_type: str = "application/octet-stream"
    extension: str = ""

    @abstractmethod
    def render(self, elements: list[ResolvedElement], page: PageGeometry, heading: str | None = None) -> bytes:
        """
        渲染单个文档

        Args:
            elements: 按阅读顺序排好的已解析元素（含行号）
            page: 页面几何
            heading: 置于正文之前的说明段落（如表头列表），None 表示不输出

        Returns:
            文档二进制内容

        Raises:
            RenderFailure: 渲染失败
        """
        ...


# ============================================================================
# 外部协作方接口
# ============================================================================

class ITemplateStore(ABC):
    """模板存储接口（持久化不属于引擎职责）"""

    @abstractmethod
    def get_template(self, template_id: str) -> Template | None:
        """按ID获取模板"""
        ...

    @abstractmethod
    def save_template(self, template: Template) -> str:
        """保存模板，返回模板ID"""
        ...

    @abstractmethod
    def list_templates(self) -> list[Template]:
        """列出模板"""
        ...

    @abstractmethod
    def delete_template(self, template_id: str) -> bool:
        """删除模板"""
        ...


class IDatasetProvider(ABC):
    """数据集来源接口（引擎不负责解析源文件）"""

    @abstractmethod
    def get_dataset(self, ref: str) -> Dataset:
        """
        按引用获取数据集

        Raises:
            KeyError: 引用不存在
        """
        ...


class IJobManager(ABC):
    """任务管理器接口"""

    @abstractmethod
    def create_job(self, total: int, **kwargs) -> Job:
        """创建任务"""
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> Job | None:
        """获取任务"""
        ...

    @abstractmethod
    def update_job(self, job: Job) -> None:
        """更新任务状态"""
        ...

    @abstractmethod
    def cancel_job(self, job_id: str) -> bool:
        """取消任务"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class DocMergeError(Exception):
    """基础异常"""

    code = "INTERNAL"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TemplateInvalid(DocMergeError):
    """模板不可用于生成（无元素/几何错误）"""

    code = "TEMPLATE_INVALID"


class RowOutOfRange(DocMergeError):
    """请求的行号超出数据集范围"""

    code = "ROW_OUT_OF_RANGE"


class RenderFailure(DocMergeError):
    """渲染失败（整批失败）"""

    code = "RENDER_FAILURE"

    def __init__(self, reason: str, row_index: int | None = None):
        message = reason if row_index is None else f"第 {row_index + 1} 行渲染失败: {reason}"
        super().__init__(message)
        self.reason = reason
        self.row_index = row_index


class RequestInvalid(DocMergeError):
    """请求结构校验失败"""

    code = "REQUEST_INVALID"


class RequestTimeout(DocMergeError):
    """请求超时（仅由请求追踪器抛出）"""

    code = "TIMEOUT"


class WorkerUnavailable(DocMergeError):
    """隔离执行环境无法建立"""

    code = "WORKER_UNAVAILABLE"


class WorkerError(DocMergeError):
    """工作线程返回的未分类错误"""

    code = "WORKER_ERROR"


class GenerationCancelled(Exception):
    """用户主动取消（终止结果，不属于错误）"""

    def __init__(self, message: str = "生成已取消", completed: int = 0):
        super().__init__(message)
        self.message = message
        self.completed = completed


ERROR_TYPES: dict[str, type[DocMergeError]] = {
    cls.code: cls
    for cls in (
        TemplateInvalid,
        RowOutOfRange,
        RenderFailure,
        RequestInvalid,
        RequestTimeout,
        WorkerUnavailable,
        WorkerError,
    )
}


def error_from_code(code: str | None, message: str) -> DocMergeError:
    """按错误码还原异常（跨边界传递后使用）"""
    cls = ERROR_TYPES.get(code or "", WorkerError)
    if cls is RenderFailure:
        return RenderFailure(message)
    return cls(message)
