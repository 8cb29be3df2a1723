import asyncio
import io

import pytest
from docx import Document as DocxReader

from conftest import FakeEngine, FakeRasterizer
from MarkdownDocx import converter as converter_module
from MarkdownDocx.config import ConverterConfig
from MarkdownDocx.converter import (
    DOCX_MIME_TYPE,
    MarkdownConverter,
    output_filename,
)
from MarkdownDocx.diagram import DiagramRenderer
from MarkdownDocx.errors import ConversionError
from MarkdownDocx.renderer_docx import DIAGRAM_PLACEHOLDER

SAMPLE = """# Report

Intro with **bold** and `code`.

| A | B |
|---|---|
| 1 | 2 |

```mermaid
graph TD
  A-->B
```

> Note

- item
"""


def _texts(data: bytes) -> list:
    return [p.text for p in DocxReader(io.BytesIO(data)).paragraphs]


@pytest.mark.parametrize(
    "name, expected",
    [
        ("notes", "notes.docx"),
        ("notes.md", "notes.docx"),
        ("Notes.MARKDOWN", "Notes.docx"),
        ("", "document.docx"),
        ("archive.tar", "archive.tar.docx"),
        ("notes.md.docx", "notes.md.docx"),
        ("Report.DOCX", "Report.DOCX"),
    ],
)
def test_output_filename(name, expected):
    assert output_filename(name) == expected


def test_convert_embeds_rendered_diagram():
    renderer = DiagramRenderer(FakeEngine(), FakeRasterizer())
    result = asyncio.run(MarkdownConverter(renderer=renderer).convert(SAMPLE, "report.md"))
    assert result.filename == "report.docx"
    assert result.mime_type == DOCX_MIME_TYPE
    assert (result.diagram_count, result.diagrams_rendered) == (1, 1)
    reader = DocxReader(io.BytesIO(result.data))
    assert len(reader.inline_shapes) == 1
    assert len(reader.tables) == 1
    assert reader.core_properties.title == "report"


def test_invalid_diagram_degrades_to_placeholder():
    text = "# Title\n\n```mermaid\ninvalid syntax here\n```\n"
    renderer = DiagramRenderer(FakeEngine(), FakeRasterizer())
    result = asyncio.run(MarkdownConverter(renderer=renderer).convert(text, "doc"))
    assert (result.diagram_count, result.diagrams_rendered) == (1, 0)
    assert DIAGRAM_PLACEHOLDER in _texts(result.data)


def test_bad_raster_signature_degrades_to_placeholder():
    renderer = DiagramRenderer(FakeEngine(), FakeRasterizer(fmt="JPEG"))
    result = asyncio.run(MarkdownConverter(renderer=renderer).convert(SAMPLE, "doc"))
    assert result.diagrams_rendered == 0
    assert DIAGRAM_PLACEHOLDER in _texts(result.data)


def test_convert_without_renderer():
    result = MarkdownConverter().convert_sync(SAMPLE, "doc")
    assert DIAGRAM_PLACEHOLDER in _texts(result.data)


def test_empty_input_still_produces_document():
    result = MarkdownConverter().convert_sync("", "")
    assert result.filename == "document.docx"
    assert len(DocxReader(io.BytesIO(result.data)).paragraphs) >= 1


def test_export_hands_bytes_to_save_callback():
    saved = []
    converter = MarkdownConverter()
    result = asyncio.run(converter.export("Hello", "greeting", lambda data, name: saved.append((name, data))))
    assert saved == [("greeting.docx", result.data)]


def test_assembly_failure_is_one_error_and_saves_nothing(monkeypatch):
    def broken_assembly(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(converter_module, "assemble_document", broken_assembly)
    saved = []
    with pytest.raises(ConversionError, match="boom"):
        asyncio.run(MarkdownConverter().export("Hello", "x", lambda data, name: saved.append(name)))
    assert saved == []


def test_with_mermaid_cli_uses_configured_executable():
    config = ConverterConfig()
    config.diagrams.mmdc = "/opt/mermaid/bin/mmdc"
    converter = MarkdownConverter.with_mermaid_cli(config)
    assert converter.renderer.engine.executable == "/opt/mermaid/bin/mmdc"
    assert converter.renderer.config is config.diagrams
    assert converter.renderer.rasterizer.timeout == config.diagrams.load_timeout_s
