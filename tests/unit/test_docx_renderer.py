"""
DOCX渲染器与模板校验单元测试

每个模块完成后必须运行：pytest tests/unit/test_docx_renderer.py -v
"""

import io

import pytest
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor, Twips

from docmerge.config import LayoutConfig
from docmerge.doc_gen import DocxRenderer, ensure_valid, validate_template
from docmerge.interfaces import TemplateInvalid
from docmerge.models import PageGeometry, PlaceholderElement, ResolvedElement, Template


def resolved(element_id, value, x, y, line, **style):
    element = PlaceholderElement(
        id=element_id, field_name=element_id, x=x, y=y, width=100, height=20, style=style,
    )
    return ResolvedElement(element=element, value=value, line=line)


@pytest.fixture
def renderer() -> DocxRenderer:
    return DocxRenderer(LayoutConfig())


def read_back(content: bytes):
    return Document(io.BytesIO(content))


class TestDocxRenderer:
    """DOCX渲染测试"""

    def test_render_paragraph_per_line(self, renderer: DocxRenderer):
        """测试每行一个段落，行内为文本片段"""
        content = renderer.render(
            [
                resolved("a", "Иван", 0, 0, 0),
                resolved("b", "Москва", 100, 0, 0),
                resolved("c", "15.01.2024", 0, 50, 1),
            ],
            PageGeometry(),
        )
        doc = read_back(content)
        texts = [p.text for p in doc.paragraphs if p.text]
        assert texts == ["ИванМосква", "15.01.2024"]

    def test_render_gap_inserts_spaces(self, renderer: DocxRenderer):
        """测试间距超过阈值时插入两个空格"""
        content = renderer.render(
            [resolved("a", "A", 0, 0, 0), resolved("b", "B", 150, 0, 0)],
            PageGeometry(),
        )
        paragraph = [p for p in read_back(content).paragraphs if p.text][0]
        assert paragraph.text == "A  B"

    def test_render_strips_control_characters(self, renderer: DocxRenderer):
        """测试单元格中的控制字符被剔除，制表符保留"""
        content = renderer.render(
            [resolved("a", "Ив\x0bан\x00", 0, 0, 0), resolved("b", "a\tb\x1f", 0, 50, 1)],
            PageGeometry(),
        )
        texts = [p.text for p in read_back(content).paragraphs if p.text]
        assert texts == ["Иван", "a\tb"]

    def test_render_heading(self, renderer: DocxRenderer):
        """测试表头说明段落位于正文之前，斜体10磅"""
        content = renderer.render(
            [resolved("a", "Иван", 0, 0, 0)],
            PageGeometry(),
            heading="Заголовки полей: Имя, Город",
        )
        paragraphs = [p for p in read_back(content).paragraphs if p.text]
        assert [p.text for p in paragraphs] == ["Заголовки полей: Имя, Город", "Иван"]
        run = paragraphs[0].runs[0]
        assert run.italic is True
        assert run.font.size == Pt(10)

    def test_render_run_styles(self, renderer: DocxRenderer):
        """测试字体/字号/加粗/颜色/对齐"""
        content = renderer.render(
            [resolved("a", "X", 0, 0, 0, font_size=16, font_weight="bold", color="#ff0000",
                      font_family="Times New Roman", text_align="center")],
            PageGeometry(),
        )
        paragraph = [p for p in read_back(content).paragraphs if p.text][0]
        run = paragraph.runs[0]
        assert paragraph.alignment == WD_ALIGN_PARAGRAPH.CENTER
        assert run.font.size == Pt(12)
        assert run.font.bold is True
        assert run.font.name == "Times New Roman"
        assert run.font.color.rgb == RGBColor(0xFF, 0x00, 0x00)

    def test_render_page_geometry(self, renderer: DocxRenderer):
        """测试页面尺寸与页边距（px→twips）"""
        page = PageGeometry(width=800, height=600, margin_top=40, margin_right=40, margin_bottom=40, margin_left=80)
        section = read_back(renderer.render([resolved("a", "A", 0, 0, 0)], page)).sections[0]
        assert section.page_width == Twips(12000)
        assert section.page_height == Twips(9000)
        assert section.left_margin == Twips(1200)
        assert section.top_margin == Twips(600)

    def test_invalid_color_falls_back(self, renderer: DocxRenderer):
        """测试非法颜色回退为黑色"""
        content = renderer.render([resolved("a", "A", 0, 0, 0, color="red")], PageGeometry())
        run = [p for p in read_back(content).paragraphs if p.text][0].runs[0]
        assert run.font.color.rgb == RGBColor(0, 0, 0)


class TestTemplateValidation:
    """模板校验测试"""

    def test_empty_template_invalid(self):
        """测试无元素"""
        report = validate_template(Template(id="t"), max_elements=100)
        assert not report.is_valid
        assert report.errors == ["模板不包含任何元素"]

    def test_negative_position(self):
        """测试负坐标"""
        element = PlaceholderElement(id="e", field_name="A", x=-1, y=0, width=10, height=10)
        report = validate_template(Template(id="t", elements=[element]), max_elements=100)
        assert not report.is_valid

    def test_too_many_elements(self):
        """测试元素数量上限"""
        elements = [
            PlaceholderElement(id=f"e{i}", field_name="A", x=0, y=i, width=10, height=10)
            for i in range(3)
        ]
        assert not validate_template(Template(id="t", elements=elements), max_elements=2).is_valid

    def test_bad_geometry(self, sample_template: Template):
        """测试页边距超过页面"""
        broken = sample_template.model_copy(
            update={"page_geometry": PageGeometry(width=100, height=100, margin_left=50, margin_right=50)}
        )
        assert not validate_template(broken, max_elements=100).is_valid

    def test_ensure_valid_raises(self):
        """测试校验失败抛出 TemplateInvalid"""
        with pytest.raises(TemplateInvalid):
            ensure_valid(Template(id="t"), max_elements=100)

    def test_valid(self, sample_template: Template):
        """测试合法模板"""
        report = validate_template(sample_template, max_elements=100)
        assert report.is_valid
        assert report.error is None
