from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Iterable, Tuple

from docx import Document as DocxDocument
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Emu, Inches, Pt, RGBColor

from . import layout
from .config import ConverterConfig, PageGeometry
from .model import (
    Blank,
    Block,
    Blockquote,
    Bold,
    BoldItalic,
    Code,
    CodeBlock,
    DiagramBlock,
    Heading,
    HorizontalRule,
    InlineRun,
    Italic,
    Link,
    ListItem,
    Paragraph,
    Strikethrough,
    Table,
)

logger = logging.getLogger(__name__)

DIAGRAM_PLACEHOLDER = "[Diagram could not be rendered]"
PLACEHOLDER_COLOR = RGBColor(0x80, 0x80, 0x80)
PX_TO_PT = 0.75
MAX_DIAGRAM_PAGE_FRACTION = 0.9
MAX_LIST_LEVEL = 5
LIST_INDENT_IN = 0.25
QUOTE_INDENT_IN = 0.3
LIST_STYLES = {
    False: ("List Bullet", "List Bullet 2", "List Bullet 3"),
    True: ("List Number", "List Number 2", "List Number 3"),
}


@dataclass(frozen=True)
class HeadingStyle:
    size_pt: float
    color: RGBColor
    bold: bool
    space_before_pt: float
    space_after_pt: float


HEADING_STYLES = {
    1: HeadingStyle(20, RGBColor(0x1F, 0x3A, 0x5F), True, 24, 12),
    2: HeadingStyle(16, RGBColor(0x2E, 0x5C, 0x8A), True, 18, 9),
    3: HeadingStyle(13, RGBColor(0x2E, 0x5C, 0x8A), True, 14, 6),
    4: HeadingStyle(12, RGBColor(0x40, 0x40, 0x40), False, 12, 4),
}


@dataclass
class RenderState:
    config: ConverterConfig
    diagrams_embedded: int = 0
    diagram_placeholders: int = 0
    tables: int = 0


def assemble_document(
    blocks: Iterable[Block],
    config: ConverterConfig | None = None,
    title: str | None = None,
):
    """Build a python-docx document from parsed blocks.

    Diagram blocks must already carry their resolved image (or ``None``).
    The result always has at least one body element.
    """
    config = config or ConverterConfig()
    state = RenderState(config=config)
    docx = DocxDocument()
    layout.apply_page_layout(docx, config.page)
    layout.apply_base_font(docx, config.fonts)
    docx.core_properties.title = title or ""
    docx.core_properties.author = config.creator

    for block in blocks:
        _dispatch_block(docx, block, state)

    if not docx.paragraphs and not docx.tables:
        docx.add_paragraph("")

    logger.debug(
        "Assembled %d paragraphs, %d tables, %d diagrams (%d placeholders)",
        len(docx.paragraphs),
        state.tables,
        state.diagrams_embedded,
        state.diagram_placeholders,
    )
    return docx


def _dispatch_block(docx: DocxDocument, block: Block, state: RenderState) -> None:
    if isinstance(block, Heading):
        _render_heading(docx, block, state)
    elif isinstance(block, Paragraph):
        _render_paragraph(docx, block.runs, state)
    elif isinstance(block, ListItem):
        _render_list_item(docx, block, state)
    elif isinstance(block, Blockquote):
        _render_blockquote(docx, block, state)
    elif isinstance(block, CodeBlock):
        _render_code_block(docx, block, state)
    elif isinstance(block, DiagramBlock):
        _render_diagram_block(docx, block, state)
    elif isinstance(block, Table):
        _render_table_block(docx, block, state)
    elif isinstance(block, HorizontalRule):
        _render_horizontal_rule(docx)
    elif isinstance(block, Blank):
        paragraph = docx.add_paragraph()
        layout.apply_body_paragraph_format(paragraph)


def _render_heading(docx: DocxDocument, heading: Heading, state: RenderState) -> None:
    level = min(max(heading.level, 1), len(HEADING_STYLES))
    style = HEADING_STYLES[level]
    paragraph = docx.add_heading(level=level)
    for run in _add_runs(paragraph, heading.runs, state):
        run.font.size = Pt(style.size_pt)
        run.font.color.rgb = style.color
        run.bold = style.bold or bool(run.bold)
    paragraph.paragraph_format.space_before = Pt(style.space_before_pt)
    paragraph.paragraph_format.space_after = Pt(style.space_after_pt)


def _render_paragraph(docx: DocxDocument, runs: Iterable[InlineRun], state: RenderState) -> None:
    paragraph = docx.add_paragraph()
    _add_runs(paragraph, runs, state)
    layout.apply_body_paragraph_format(paragraph)


def _add_runs(paragraph, runs: Iterable[InlineRun], state: RenderState) -> list:
    fonts = state.config.fonts
    added = []
    for inline in runs:
        if isinstance(inline, Link):
            run = paragraph.add_run(inline.label)
            layout.set_run_font(run, fonts)
            run.font.underline = True
            run.font.color.rgb = layout.LINK_COLOR
        elif isinstance(inline, Code):
            run = paragraph.add_run(inline.value)
            layout.set_run_font(run, fonts, code=True)
            layout.shade_run(run, layout.CODE_SHADING)
        else:
            run = paragraph.add_run(inline.value)
            layout.set_run_font(
                run,
                fonts,
                bold=isinstance(inline, (Bold, BoldItalic)),
                italic=isinstance(inline, (Italic, BoldItalic)),
            )
            if isinstance(inline, Strikethrough):
                run.font.strike = True
        added.append(run)
    return added


def _render_list_item(docx: DocxDocument, item: ListItem, state: RenderState) -> None:
    level = min(max(item.level, 0), MAX_LIST_LEVEL)
    styles = LIST_STYLES[item.ordered]
    paragraph = docx.add_paragraph(style=styles[min(level, len(styles) - 1)])
    _add_runs(paragraph, item.runs, state)
    if level >= len(styles):
        # Built-in list styles stop at level 3; deeper items only indent further.
        paragraph.paragraph_format.left_indent = Inches(LIST_INDENT_IN * (level + 1))
    paragraph.paragraph_format.space_after = Pt(0)
    paragraph.paragraph_format.line_spacing = 1.0


def _render_blockquote(docx: DocxDocument, block: Blockquote, state: RenderState) -> None:
    paragraph = docx.add_paragraph()
    _add_runs(paragraph, block.runs, state)
    layout.apply_body_paragraph_format(paragraph)
    paragraph.paragraph_format.left_indent = Inches(QUOTE_INDENT_IN)
    layout.set_paragraph_border(paragraph, "left", layout.QUOTE_BORDER_COLOR, size=24, space=8)
    layout.shade_paragraph(paragraph, layout.QUOTE_SHADING)


def _render_code_block(docx: DocxDocument, block: CodeBlock, state: RenderState) -> None:
    lines = block.lines or [""]
    paragraph = None
    for line in lines:
        paragraph = docx.add_paragraph()
        # A single space keeps the shading visible on empty lines.
        run = paragraph.add_run(line if line.strip() else " ")
        layout.set_run_font(run, state.config.fonts, code=True)
        layout.apply_code_paragraph_format(paragraph)
    paragraph.paragraph_format.space_after = Pt(6)


def fit_image_to_page(width_px: int, height_px: int, page: PageGeometry) -> Tuple[Emu, Emu]:
    """Scale a bitmap (96 dpi) down to the text width and part of the text height."""
    natural_width = Pt(max(width_px, 1) * PX_TO_PT)
    natural_height = Pt(max(height_px, 1) * PX_TO_PT)
    max_width = layout.content_width(page)
    max_height = layout.content_height(page) * MAX_DIAGRAM_PAGE_FRACTION
    scale = min(1.0, max_width / natural_width, max_height / natural_height)
    return Emu(int(natural_width * scale)), Emu(int(natural_height * scale))


def _render_diagram_block(docx: DocxDocument, block: DiagramBlock, state: RenderState) -> None:
    paragraph = docx.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    paragraph.paragraph_format.space_before = Pt(6)
    paragraph.paragraph_format.space_after = Pt(6)
    if block.image is None:
        run = paragraph.add_run(DIAGRAM_PLACEHOLDER)
        layout.set_run_font(run, state.config.fonts, italic=True)
        run.font.color.rgb = PLACEHOLDER_COLOR
        state.diagram_placeholders += 1
        return
    width, height = fit_image_to_page(block.image.width, block.image.height, state.config.page)
    paragraph.add_run().add_picture(io.BytesIO(block.image.data), width=width, height=height)
    state.diagrams_embedded += 1


def _render_table_block(docx: DocxDocument, block: Table, state: RenderState) -> None:
    rows = block.rows or [[""]]
    col_count = max(len(row) for row in rows) or 1
    table = docx.add_table(rows=len(rows), cols=col_count)
    table.style = "Table Grid"
    table.alignment = WD_TABLE_ALIGNMENT.CENTER
    layout.set_table_full_width(table)
    column_width = Emu(layout.content_width(state.config.page) // col_count)
    fonts = state.config.fonts

    for r_idx, row in enumerate(rows):
        is_header = block.first_row_is_header and r_idx == 0
        for c_idx in range(col_count):
            cell = table.cell(r_idx, c_idx)
            cell.width = column_width
            paragraph = cell.paragraphs[0]
            run = paragraph.add_run(row[c_idx] if c_idx < len(row) else "")
            layout.set_run_font(run, fonts, bold=is_header)
            if is_header:
                run.font.color.rgb = layout.HEADER_TEXT_COLOR
                layout.shade_cell(cell, layout.HEADER_SHADING)
    state.tables += 1

    spacer = docx.add_paragraph()
    layout.apply_body_paragraph_format(spacer)


def _render_horizontal_rule(docx: DocxDocument) -> None:
    paragraph = docx.add_paragraph()
    paragraph.paragraph_format.space_before = Pt(0)
    paragraph.paragraph_format.space_after = Pt(0)
    paragraph.paragraph_format.line_spacing = Pt(1)
    layout.set_paragraph_border(paragraph, "bottom", layout.RULE_COLOR, size=6, space=1)
