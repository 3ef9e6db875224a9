"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- Template/PlaceholderElement/PageGeometry: 模板与版面
- Dataset: 表格数据
- GenerationRequest/GenerationResult/Artifact/ProgressEvent: 生成请求与结果
- Job: 服务端任务状态与生命周期
"""

from .dataset import CellValue, Dataset, Row
from .job import Job, JobArtifacts, JobProgress, JobStatus
from .request import (
    DOCX_MEDIA_TYPE,
    Artifact,
    GenerationRequest,
    GenerationResult,
    OutputNaming,
    ProgressEvent,
    ResolvedElement,
    RowSelection,
)
from .template import (
    ElementStyle,
    PageGeometry,
    PlaceholderElement,
    Template,
    is_system_token,
    system_token_name,
)

__all__ = [
    "Template",
    "PlaceholderElement",
    "PageGeometry",
    "ElementStyle",
    "is_system_token",
    "system_token_name",
    "Dataset",
    "Row",
    "CellValue",
    "GenerationRequest",
    "GenerationResult",
    "OutputNaming",
    "RowSelection",
    "ResolvedElement",
    "Artifact",
    "ProgressEvent",
    "DOCX_MEDIA_TYPE",
    "Job",
    "JobStatus",
    "JobProgress",
    "JobArtifacts",
]
