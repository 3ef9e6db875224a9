"""
DOCX渲染器 - 已解析元素 → Word文档（python-docx）

职责：
1. 按页面几何设置纸张尺寸/方向/页边距
2. 每行元素生成一个段落，行内元素为带样式的文本片段
3. 同行元素间距超过 run_gap 时插入两个空格
4. 段落对齐取该行第一个元素的对齐方式
5. 可选的表头说明段落（斜体10磅）置于正文之前
6. 文本中 XML 1.0 不允许的控制字符被剔除

依赖：
- python-docx: Word操作

测试要点：
- test_render_paragraph_per_line: 每行一个段落
- test_render_run_styles: 字体/字号/加粗/颜色
- test_render_page_geometry: 页面尺寸与页边距
"""

from __future__ import annotations

import io
import logging
import re
from itertools import groupby

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor, Twips

from ..config import LayoutConfig, get_config
from ..interfaces import IDocumentRenderer, RenderFailure
from ..models import DOCX_MEDIA_TYPE, PageGeometry, ResolvedElement

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^[0-9A-Fa-f]{6}$")

# Word 文档不接受的控制字符（保留 \t \n \r）
_XML_ILLEGAL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

_ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
}


class DocxRenderer(IDocumentRenderer):
    """DOCX渲染器实现"""

    media_type = DOCX_MEDIA_TYPE
    extension = ".docx"

    def __init__(self, layout: LayoutConfig | None = None, paragraph_spacing_pt: float = 10.0):
        self.layout = layout or get_config().layout
        self.paragraph_spacing_pt = paragraph_spacing_pt

    def render(self, elements: list[ResolvedElement], page: PageGeometry, heading: str | None = None) -> bytes:
        """渲染单个文档"""
        try:
            doc = Document()
            self._apply_page(doc, page)
            if heading:
                self._write_heading(doc, heading)
            for _, line in groupby(elements, key=lambda r: r.line):
                self._write_line(doc, list(line))

            buffer = io.BytesIO()
            doc.save(buffer)
            return buffer.getvalue()
        except RenderFailure:
            raise
        except Exception as e:
            logger.error(f"DOCX渲染失败: {e}")
            raise RenderFailure(f"无法创建文档: {e}") from e

    def _apply_page(self, doc, page: PageGeometry) -> None:
        """设置纸张与页边距"""
        section = doc.sections[0]
        section.orientation = (
            WD_ORIENT.LANDSCAPE if page.orientation == "landscape" else WD_ORIENT.PORTRAIT
        )
        section.page_width = self._twips(page.width)
        section.page_height = self._twips(page.height)
        section.top_margin = self._twips(page.margin_top)
        section.right_margin = self._twips(page.margin_right)
        section.bottom_margin = self._twips(page.margin_bottom)
        section.left_margin = self._twips(page.margin_left)

    def _write_line(self, doc, line: list[ResolvedElement]) -> None:
        """一行 → 一个段落"""
        paragraph = doc.add_paragraph()
        paragraph.alignment = _ALIGNMENTS.get(line[0].element.style.text_align, WD_ALIGN_PARAGRAPH.LEFT)
        paragraph.paragraph_format.space_after = Pt(self.paragraph_spacing_pt)

        previous = None
        for resolved in line:
            element = resolved.element
            if previous is not None:
                gap = element.x - (previous.x + previous.width)
                if gap > self.layout.run_gap:
                    paragraph.add_run("  ")

            style = element.style
            run = paragraph.add_run(xml_safe(resolved.value))
            run.font.name = style.font_family
            run.font.size = Pt(round(style.font_size * self.layout.px_to_pt))
            run.font.bold = style.font_weight == "bold"
            run.font.color.rgb = RGBColor.from_string(_normalize_color(style.color))
            previous = element

    def _write_heading(self, doc, text: str) -> None:
        paragraph = doc.add_paragraph()
        paragraph.paragraph_format.space_after = Pt(20)
        run = paragraph.add_run(xml_safe(text))
        run.font.size = Pt(10)
        run.italic = True

    def _twips(self, units: float) -> Twips:
        # 版面单位(px) → 磅 → twips(1/20磅)
        return Twips(round(units * self.layout.px_to_pt * 20))


def xml_safe(text: str) -> str:
    return _XML_ILLEGAL.sub("", text)


def _normalize_color(color: str | None) -> str:
    value = (color or "").lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    return value.upper() if _HEX_COLOR.match(value) else "000000"
