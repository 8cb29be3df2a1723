from __future__ import annotations

import asyncio
import io
import logging
import re
from dataclasses import dataclass
from typing import Callable, List

from .config import ConverterConfig
from .diagram import CairoRasterizer, DiagramRenderer, MermaidCliEngine, resolve_diagrams
from .errors import ConversionError
from .markdown_parser import parse_markdown
from .model import Block
from .renderer_docx import assemble_document

logger = logging.getLogger(__name__)

DOCX_EXTENSION = ".docx"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DEFAULT_BASENAME = "document"

_SOURCE_SUFFIX_RE = re.compile(r"\.(md|markdown)$", re.IGNORECASE)
_DOCX_SUFFIX_RE = re.compile(r"\.docx$", re.IGNORECASE)

SaveCallback = Callable[[bytes, str], object]


@dataclass
class ConversionResult:
    filename: str
    data: bytes
    mime_type: str = DOCX_MIME_TYPE
    diagram_count: int = 0
    diagrams_rendered: int = 0


def output_filename(name: str) -> str:
    """``notes.md`` / ``notes`` -> ``notes.docx``; empty names become ``document.docx``.

    Names already ending in ``.docx`` are kept as they are.
    """
    name = name.strip()
    if _DOCX_SUFFIX_RE.search(name) and len(name) > len(DOCX_EXTENSION):
        return name
    base = _SOURCE_SUFFIX_RE.sub("", name) or DEFAULT_BASENAME
    return f"{base}{DOCX_EXTENSION}"


def serialize_document(docx) -> bytes:
    buffer = io.BytesIO()
    docx.save(buffer)
    return buffer.getvalue()


class MarkdownConverter:
    """Markup text in, ``.docx`` bytes out.

    The diagram renderer (and the engine inside it) is created once by the
    caller and reused across conversions. Without one, diagrams become
    placeholder notes.
    """

    def __init__(self, renderer: DiagramRenderer | None = None, config: ConverterConfig | None = None) -> None:
        self.config = config or ConverterConfig()
        self.renderer = renderer

    @classmethod
    def with_mermaid_cli(cls, config: ConverterConfig | None = None) -> "MarkdownConverter":
        config = config or ConverterConfig()
        engine = MermaidCliEngine(executable=config.diagrams.mmdc, timeout=config.diagrams.engine_timeout_s)
        rasterizer = CairoRasterizer(timeout=config.diagrams.load_timeout_s)
        renderer = DiagramRenderer(engine, rasterizer, config.diagrams)
        return cls(renderer=renderer, config=config)

    def parse(self, text: str) -> List[Block]:
        return parse_markdown(text, diagram_language=self.config.diagrams.language)

    async def convert(self, text: str, basename: str = DEFAULT_BASENAME) -> ConversionResult:
        filename = output_filename(basename)
        blocks = self.parse(text)
        logger.info("Parsed %d blocks", len(blocks))

        diagram_count, rendered = await resolve_diagrams(blocks, self.renderer)
        if diagram_count:
            logger.info("Rendered %d of %d diagrams", rendered, diagram_count)

        try:
            docx = assemble_document(blocks, self.config, title=filename[: -len(DOCX_EXTENSION)])
            data = serialize_document(docx)
        except Exception as exc:
            raise ConversionError(f"Could not create {filename}: {exc}") from exc

        logger.debug("Serialized %s (%d bytes)", filename, len(data))
        return ConversionResult(
            filename=filename,
            data=data,
            diagram_count=diagram_count,
            diagrams_rendered=rendered,
        )

    async def export(self, text: str, basename: str, save: SaveCallback) -> ConversionResult:
        """Convert and hand the bytes to ``save(data, filename)``; nothing is saved on failure."""
        result = await self.convert(text, basename)
        save(result.data, result.filename)
        return result

    def convert_sync(self, text: str, basename: str = DEFAULT_BASENAME) -> ConversionResult:
        return asyncio.run(self.convert(text, basename))

    def close(self) -> None:
        """Release the diagram renderer's worker resources."""
        if self.renderer is not None:
            self.renderer.close()
