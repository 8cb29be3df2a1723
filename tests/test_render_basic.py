from pathlib import Path

from docx import Document as DocxReader
from docx.shared import Inches, Pt

from conftest import image_bytes
from MarkdownDocx.config import ConverterConfig, PageGeometry
from MarkdownDocx.converter import serialize_document
from MarkdownDocx.model import (
    Blank,
    Blockquote,
    Bold,
    Code,
    CodeBlock,
    DiagramBlock,
    DiagramImage,
    Heading,
    HorizontalRule,
    Italic,
    Link,
    ListItem,
    Paragraph,
    Strikethrough,
    Table,
    Text,
)
from MarkdownDocx.renderer_docx import DIAGRAM_PLACEHOLDER, assemble_document, fit_image_to_page


def _roundtrip(blocks, tmp_path: Path, title="report"):
    out = tmp_path / "out.docx"
    out.write_bytes(serialize_document(assemble_document(blocks, title=title)))
    return DocxReader(out)


def test_render_creates_docx(tmp_path: Path):
    blocks = [
        Heading(level=1, runs=[Text("Introduction")]),
        Paragraph(runs=[Text("Sample paragraph.")]),
    ]
    reader = _roundtrip(blocks, tmp_path)
    assert reader.paragraphs[0].style.name == "Heading 1"
    assert reader.paragraphs[0].text == "Introduction"
    assert reader.paragraphs[1].text == "Sample paragraph."
    assert reader.core_properties.title == "report"
    assert reader.core_properties.author == "MarkdownDocx"


def test_heading_levels_get_smaller(tmp_path: Path):
    blocks = [Heading(level=n, runs=[Text(f"H{n}")]) for n in range(1, 5)]
    reader = _roundtrip(blocks, tmp_path)
    sizes = [p.runs[0].font.size for p in reader.paragraphs]
    assert sizes == sorted(sizes, reverse=True)
    befores = [p.paragraph_format.space_before for p in reader.paragraphs]
    assert befores == sorted(befores, reverse=True)
    assert [p.style.name for p in reader.paragraphs] == ["Heading 1", "Heading 2", "Heading 3", "Heading 4"]


def test_inline_styles(tmp_path: Path):
    runs = [
        Text("a"),
        Bold("b"),
        Italic("c"),
        Strikethrough("d"),
        Link(label="e", url="https://example.com"),
        Code("f"),
    ]
    reader = _roundtrip([Paragraph(runs=runs)], tmp_path)
    docx_runs = reader.paragraphs[0].runs
    assert [r.text for r in docx_runs] == ["a", "b", "c", "d", "e", "f"]
    assert docx_runs[1].bold
    assert docx_runs[2].italic
    assert docx_runs[3].font.strike
    assert docx_runs[4].font.underline
    assert docx_runs[5].font.name == "Courier New"
    assert "w:shd" in docx_runs[5]._r.xml


def test_list_items_use_list_styles(tmp_path: Path):
    blocks = [
        ListItem(level=0, runs=[Text("one")]),
        ListItem(level=1, runs=[Text("two")]),
        ListItem(level=7, runs=[Text("deep")]),
        ListItem(level=0, runs=[Text("num")], ordered=True),
    ]
    reader = _roundtrip(blocks, tmp_path)
    styles = [p.style.name for p in reader.paragraphs]
    assert styles == ["List Bullet", "List Bullet 2", "List Bullet 3", "List Number"]
    assert reader.paragraphs[2].paragraph_format.left_indent == Inches(0.25 * 6)


def test_blockquote_has_border_and_shading(tmp_path: Path):
    reader = _roundtrip([Blockquote(runs=[Text("quoted")])], tmp_path)
    xml = reader.paragraphs[0]._p.xml
    assert "<w:pBdr>" in xml and "<w:left " in xml
    assert "w:shd" in xml
    assert xml.index("w:pBdr") < xml.index("w:shd")


def test_code_block_one_paragraph_per_line(tmp_path: Path):
    block = CodeBlock(lines=["x = 1", "", "y = 2"], language="python")
    reader = _roundtrip([block], tmp_path)
    assert [p.text for p in reader.paragraphs] == ["x = 1", " ", "y = 2"]
    for paragraph in reader.paragraphs:
        assert paragraph.runs[0].font.name == "Courier New"
        assert "w:shd" in paragraph._p.xml


def test_table_header_and_borders(tmp_path: Path):
    block = Table(rows=[["A", "B"], ["1", "2"], ["3"]])
    reader = _roundtrip([block], tmp_path)
    table = reader.tables[0]
    assert table.style.name == "Table Grid"
    assert [c.text for c in table.rows[0].cells] == ["A", "B"]
    assert [c.text for c in table.rows[2].cells] == ["3", ""]
    header_run = table.rows[0].cells[0].paragraphs[0].runs[0]
    assert header_run.bold
    assert "w:shd" in table.rows[0].cells[0]._tc.xml
    assert 'w:type="pct"' in table._tbl.xml


def test_horizontal_rule_and_blank(tmp_path: Path):
    reader = _roundtrip([HorizontalRule(), Blank()], tmp_path)
    rule, blank = reader.paragraphs
    assert "<w:bottom " in rule._p.xml
    assert rule.text == ""
    assert blank.text == ""


def test_diagram_placeholder_when_unresolved(tmp_path: Path):
    reader = _roundtrip([DiagramBlock(source="graph TD")], tmp_path)
    assert reader.paragraphs[0].text == DIAGRAM_PLACEHOLDER
    assert reader.paragraphs[0].runs[0].italic
    assert len(reader.inline_shapes) == 0


def test_diagram_image_is_embedded_within_page(tmp_path: Path):
    image = DiagramImage(data=image_bytes(1200, 600), width=1200, height=600)
    reader = _roundtrip([DiagramBlock(source="graph TD", image=image)], tmp_path)
    assert len(reader.inline_shapes) == 1
    shape = reader.inline_shapes[0]
    assert shape.width <= Inches(6.5)
    assert abs(shape.width / shape.height - 2.0) < 0.01


def test_empty_block_list_still_has_content(tmp_path: Path):
    reader = _roundtrip([], tmp_path)
    assert len(reader.paragraphs) == 1


def test_page_geometry_applied(tmp_path: Path):
    config = ConverterConfig(page=PageGeometry(width_in=8.25, height_in=11.75, margin_in=0.75))
    out = tmp_path / "custom.docx"
    out.write_bytes(serialize_document(assemble_document([Blank()], config)))
    section = DocxReader(out).sections[0]
    assert section.page_width == Inches(8.25)
    assert section.left_margin == Inches(0.75)
    assert section.bottom_margin == Inches(0.75)


def test_fit_image_to_page_never_upscales():
    page = PageGeometry()
    width, height = fit_image_to_page(100, 50, page)
    assert (width, height) == (Pt(75), Pt(37.5))


def test_fit_image_to_page_limits_width_and_height():
    page = PageGeometry()
    width, height = fit_image_to_page(1200, 600, page)
    assert abs(width - Inches(6.5)) <= 1
    tall_width, tall_height = fit_image_to_page(400, 4000, page)
    assert tall_height <= Inches(9) * 0.9
    assert abs(tall_height / tall_width - 10) < 0.01
