from __future__ import annotations

from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Emu, Inches, Pt, RGBColor

from .config import FontConfig, PageGeometry

CODE_SHADING = "F2F2F2"
QUOTE_SHADING = "F5F7FA"
QUOTE_BORDER_COLOR = "4A90D9"
HEADER_SHADING = "404040"
HEADER_TEXT_COLOR = RGBColor(0xFF, 0xFF, 0xFF)
LINK_COLOR = RGBColor(0x05, 0x63, 0xC1)
RULE_COLOR = "000000"

# Elements that must follow w:pBdr / w:shd inside w:pPr.
_PPR_AFTER_BORDER = (
    "w:shd", "w:tabs", "w:suppressAutoHyphens", "w:kinsoku", "w:wordWrap",
    "w:overflowPunct", "w:topLinePunct", "w:autoSpaceDE", "w:autoSpaceDN",
    "w:bidi", "w:adjustRightInd", "w:snapToGrid", "w:spacing", "w:ind",
    "w:contextualSpacing", "w:mirrorIndents", "w:suppressOverlap", "w:jc",
    "w:textDirection", "w:textAlignment", "w:textboxTightWrap",
    "w:outlineLvl", "w:divId", "w:cnfStyle", "w:rPr", "w:sectPr", "w:pPrChange",
)
_PPR_AFTER_SHADING = _PPR_AFTER_BORDER[1:]
_RPR_AFTER_SHADING = (
    "w:fitText", "w:vertAlign", "w:rtl", "w:cs", "w:em", "w:lang",
    "w:eastAsianLayout", "w:specVanish", "w:oMath",
)
_TCPR_AFTER_SHADING = (
    "w:noWrap", "w:tcMar", "w:textDirection", "w:tcFitText", "w:vAlign", "w:hideMark",
)


def apply_page_layout(doc, page: PageGeometry) -> None:
    """Apply one page size and uniform margins to every section."""
    for section in doc.sections:
        section.page_width = Inches(page.width_in)
        section.page_height = Inches(page.height_in)
        section.left_margin = Inches(page.margin_in)
        section.right_margin = Inches(page.margin_in)
        section.top_margin = Inches(page.margin_in)
        section.bottom_margin = Inches(page.margin_in)


def apply_base_font(doc, fonts: FontConfig) -> None:
    normal = doc.styles["Normal"]
    normal.font.name = fonts.body
    normal.font.size = Pt(fonts.body_size_pt)


def content_width(page: PageGeometry) -> Emu:
    return Emu(Inches(page.width_in - 2 * page.margin_in))


def content_height(page: PageGeometry) -> Emu:
    return Emu(Inches(page.height_in - 2 * page.margin_in))


def set_run_font(
    run,
    fonts: FontConfig,
    bold: bool = False,
    italic: bool = False,
    code: bool = False,
) -> None:
    run.font.name = fonts.code if code else fonts.body
    run.font.size = Pt(fonts.code_size_pt if code else fonts.body_size_pt)
    run.bold = bold
    run.italic = italic


def apply_body_paragraph_format(paragraph) -> None:
    paragraph.alignment = WD_ALIGN_PARAGRAPH.LEFT
    paragraph.paragraph_format.space_before = Pt(0)
    paragraph.paragraph_format.space_after = Pt(6)
    paragraph.paragraph_format.line_spacing = 1.0


def apply_code_paragraph_format(paragraph) -> None:
    paragraph.alignment = WD_ALIGN_PARAGRAPH.LEFT
    paragraph.paragraph_format.space_before = Pt(0)
    paragraph.paragraph_format.space_after = Pt(0)
    paragraph.paragraph_format.line_spacing = 1.0
    shade_paragraph(paragraph, CODE_SHADING)


def _shading(fill: str):
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill)
    return shd


def _border(name: str, color: str, size: int, space: int):
    border = OxmlElement(f"w:{name}")
    border.set(qn("w:val"), "single")
    border.set(qn("w:sz"), str(size))
    border.set(qn("w:space"), str(space))
    border.set(qn("w:color"), color)
    return border


def _remove_children(parent, tag: str) -> None:
    for child in parent.findall(qn(tag)):
        parent.remove(child)


def shade_paragraph(paragraph, fill: str) -> None:
    p_pr = paragraph._p.get_or_add_pPr()
    _remove_children(p_pr, "w:shd")
    p_pr.insert_element_before(_shading(fill), *_PPR_AFTER_SHADING)


def shade_run(run, fill: str) -> None:
    r_pr = run._r.get_or_add_rPr()
    _remove_children(r_pr, "w:shd")
    r_pr.insert_element_before(_shading(fill), *_RPR_AFTER_SHADING)


def shade_cell(cell, fill: str) -> None:
    tc_pr = cell._tc.get_or_add_tcPr()
    _remove_children(tc_pr, "w:shd")
    tc_pr.insert_element_before(_shading(fill), *_TCPR_AFTER_SHADING)


def set_paragraph_border(paragraph, side: str, color: str, size: int = 6, space: int = 1) -> None:
    """Draw a single border on one side (``left``, ``bottom`` ...) of a paragraph."""
    p_pr = paragraph._p.get_or_add_pPr()
    borders = p_pr.find(qn("w:pBdr"))
    if borders is None:
        borders = OxmlElement("w:pBdr")
        p_pr.insert_element_before(borders, *_PPR_AFTER_BORDER)
    _remove_children(borders, f"w:{side}")
    borders.append(_border(side, color, size, space))


def set_table_full_width(table) -> None:
    tbl_pr = table._tbl.tblPr
    width = tbl_pr.find(qn("w:tblW"))
    if width is None:
        width = OxmlElement("w:tblW")
        tbl_pr.insert_element_before(
            width, "w:jc", "w:tblCellSpacing", "w:tblInd", "w:tblBorders",
            "w:shd", "w:tblLayout", "w:tblCellMar", "w:tblLook",
        )
    width.set(qn("w:type"), "pct")
    width.set(qn("w:w"), "5000")
