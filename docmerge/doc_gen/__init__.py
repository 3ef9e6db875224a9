"""
文档生成模块 - 字段解析/版面排序/模板校验/DOCX渲染

子模块：
- resolver: 占位字段解析（系统字段+数据列+软失败）
- sequencer: 阅读顺序排序（行容差）
- validation: 生成前模板校验
- docx_renderer: 默认渲染器（python-docx）
"""

from .docx_renderer import DocxRenderer
from .resolver import FieldResolver, unresolved_marker
from .sequencer import LayoutSequencer
from .validation import ValidationReport, ensure_valid, validate_template

__all__ = [
    "FieldResolver",
    "unresolved_marker",
    "LayoutSequencer",
    "ValidationReport",
    "validate_template",
    "ensure_valid",
    "DocxRenderer",
]
