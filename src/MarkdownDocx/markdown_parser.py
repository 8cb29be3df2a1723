from __future__ import annotations

import enum
import re
from typing import List

from .inline_parser import parse_inline
from .model import (
    Blank,
    Block,
    Blockquote,
    CodeBlock,
    DiagramBlock,
    Heading,
    HorizontalRule,
    ListItem,
    Paragraph,
    Table,
    Text,
)

FENCE_MARKER = "```"
TABLE_DELIMITER = "|"
DIAGRAM_LANGUAGE = "mermaid"
MAX_LIST_LEVEL = 8
SPACES_PER_LEVEL = 2

_HEADING_RE = re.compile(r"^(#{1,4})\s+(.*?)\s*$")
_BULLET_RE = re.compile(r"^([ \t]*)[-*+]\s+(.*)$")
_ORDERED_RE = re.compile(r"^([ \t]*)\d+[.)]\s+(.*)$")
_QUOTE_RE = re.compile(r"^\s*>\s?(.*)$")
_RULE_RE = re.compile(r"^(-{3,}|\*{3,}|_{3,})$")
_SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")


class ParserState(enum.Enum):
    NORMAL = "normal"
    IN_FENCE = "in_fence"
    IN_TABLE = "in_table"


class BlockParser:
    """Line-by-line state machine producing an ordered list of blocks."""

    def __init__(self, diagram_language: str = DIAGRAM_LANGUAGE) -> None:
        self.diagram_language = diagram_language.lower()
        self.state = ParserState.NORMAL
        self.blocks: List[Block] = []
        self._fence_language: str | None = None
        self._fence_lines: List[str] = []
        self._table_rows: List[List[str]] = []

    def parse(self, text: str) -> List[Block]:
        if not text.strip():
            return [Paragraph(runs=[Text("")])]
        for line in text.splitlines():
            self.feed(line)
        self.finish()
        if not self.blocks:
            # e.g. a lone table separator row, which carries no content
            self.blocks.append(Paragraph(runs=[Text("")]))
        return self.blocks

    def feed(self, line: str) -> None:
        stripped = line.strip()
        if self.state is ParserState.IN_FENCE:
            if stripped.startswith(FENCE_MARKER):
                self._close_fence()
            else:
                self._fence_lines.append(line)
            return

        if self.state is ParserState.IN_TABLE:
            if stripped.startswith(TABLE_DELIMITER):
                self._add_table_row(stripped)
                return
            self._close_table()

        if stripped.startswith(FENCE_MARKER):
            self._open_fence(stripped)
        elif stripped.startswith(TABLE_DELIMITER):
            self.state = ParserState.IN_TABLE
            self._add_table_row(stripped)
        else:
            self.blocks.append(_parse_line(line, stripped))

    def finish(self) -> None:
        if self.state is ParserState.IN_FENCE:
            self._close_fence()
        elif self.state is ParserState.IN_TABLE:
            self._close_table()

    def _open_fence(self, stripped: str) -> None:
        info = stripped[len(FENCE_MARKER) :].strip()
        self._fence_language = info.split()[0].lower() if info else None
        self._fence_lines = []
        self.state = ParserState.IN_FENCE

    def _close_fence(self) -> None:
        if self._fence_language == self.diagram_language:
            self.blocks.append(DiagramBlock(source="\n".join(self._fence_lines)))
        else:
            self.blocks.append(CodeBlock(lines=list(self._fence_lines), language=self._fence_language))
        self._fence_language = None
        self._fence_lines = []
        self.state = ParserState.NORMAL

    def _add_table_row(self, stripped: str) -> None:
        cells = split_table_row(stripped)
        if is_separator_row(cells):
            return
        self._table_rows.append(cells)

    def _close_table(self) -> None:
        if self._table_rows:
            self.blocks.append(Table(rows=self._table_rows, first_row_is_header=True))
        self._table_rows = []
        self.state = ParserState.NORMAL


def parse_markdown(text: str, diagram_language: str = DIAGRAM_LANGUAGE) -> List[Block]:
    """Parse markup into blocks. Never raises and never returns an empty list."""
    return BlockParser(diagram_language=diagram_language).parse(text)


def split_table_row(stripped: str) -> List[str]:
    inner = stripped[1:] if stripped.startswith(TABLE_DELIMITER) else stripped
    if inner.endswith(TABLE_DELIMITER):
        inner = inner[:-1]
    return [cell.strip() for cell in inner.split(TABLE_DELIMITER)]


def is_separator_row(cells: List[str]) -> bool:
    return bool(cells) and all(_SEPARATOR_CELL_RE.match(cell) for cell in cells)


def list_level(indent: str) -> int:
    width = len(indent.replace("\t", " " * SPACES_PER_LEVEL))
    return min(width // SPACES_PER_LEVEL, MAX_LIST_LEVEL)


def _parse_line(line: str, stripped: str) -> Block:
    heading = _HEADING_RE.match(stripped)
    if heading:
        return Heading(level=len(heading.group(1)), runs=parse_inline(heading.group(2)))
    bullet = _BULLET_RE.match(line)
    if bullet:
        return ListItem(level=list_level(bullet.group(1)), runs=parse_inline(bullet.group(2).strip()))
    ordered = _ORDERED_RE.match(line)
    if ordered:
        return ListItem(
            level=list_level(ordered.group(1)),
            runs=parse_inline(ordered.group(2).strip()),
            ordered=True,
        )
    quote = _QUOTE_RE.match(line)
    if quote:
        return Blockquote(runs=parse_inline(quote.group(1).strip()))
    if _RULE_RE.match(stripped):
        return HorizontalRule()
    if not stripped:
        return Blank()
    return Paragraph(runs=parse_inline(stripped))
