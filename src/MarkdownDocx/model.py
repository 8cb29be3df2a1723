from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class InlineRun:
    """Base class for inline nodes."""


@dataclass
class Text(InlineRun):
    value: str


@dataclass
class Bold(InlineRun):
    value: str


@dataclass
class Italic(InlineRun):
    value: str


@dataclass
class BoldItalic(InlineRun):
    value: str


@dataclass
class Code(InlineRun):
    value: str


@dataclass
class Link(InlineRun):
    label: str
    url: str


@dataclass
class Strikethrough(InlineRun):
    value: str


@dataclass
class Block:
    """Base class for block-level nodes."""


@dataclass
class Heading(Block):
    level: int
    runs: List[InlineRun]


@dataclass
class Paragraph(Block):
    runs: List[InlineRun]


@dataclass
class ListItem(Block):
    level: int
    runs: List[InlineRun]
    ordered: bool = False


@dataclass
class Blockquote(Block):
    runs: List[InlineRun]


@dataclass
class CodeBlock(Block):
    lines: List[str]
    language: str | None = None


@dataclass
class DiagramImage:
    """Rasterized diagram: PNG bytes plus pixel size."""

    data: bytes
    width: int
    height: int


@dataclass
class DiagramBlock(Block):
    source: str
    image: Optional[DiagramImage] = None


@dataclass
class Table(Block):
    rows: List[List[str]] = field(default_factory=list)
    first_row_is_header: bool = True


@dataclass
class HorizontalRule(Block):
    """Horizontal rule / thematic break."""


@dataclass
class Blank(Block):
    """Empty line between blocks."""
