from __future__ import annotations

import logging
from typing import List
from urllib.parse import quote

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml

from .diagram import DiagramRenderer, make_diagram_id
from .markdown_parser import DIAGRAM_LANGUAGE

logger = logging.getLogger(__name__)


def build_markdown_it() -> MarkdownIt:
    md = MarkdownIt("commonmark", {"html": True, "breaks": True, "typographer": True})
    md.enable(["table", "strikethrough", "replacements", "smartquotes"])
    md.add_render_rule("fence", _render_fence)
    return md


def _render_fence(self, tokens, idx, options, env):
    token = tokens[idx]
    info = token.info.strip()
    language = info.split()[0].lower() if info else ""
    code = token.content.strip()
    if language != env.get("diagram_language", DIAGRAM_LANGUAGE) or not code:
        return self.fence(tokens, idx, options, env)
    diagrams: List[str] = env.setdefault("diagrams", [])
    diagrams.append(code)
    return _diagram_div(len(diagrams) - 1, code) + "\n"


def _diagram_div(index: int, code: str, inner: str = "") -> str:
    return (
        f'<div class="mermaid-diagram" data-mermaid-index="{index}" '
        f'data-mermaid-code="{quote(code)}">{inner}</div>'
    )


def _render(text: str, diagram_language: str) -> tuple[str, List[str]]:
    env = {"diagram_language": diagram_language.lower()}
    html = build_markdown_it().render(text, env)
    return html, env.get("diagrams", [])


def render_preview_html(text: str, diagram_language: str = DIAGRAM_LANGUAGE) -> str:
    """HTML preview with empty placeholders where diagrams go."""
    if not text.strip():
        return ""
    html, _ = _render(text, diagram_language)
    return html


async def render_preview_with_diagrams(
    text: str,
    renderer: DiagramRenderer,
    diagram_language: str = DIAGRAM_LANGUAGE,
) -> str:
    """HTML preview with every diagram placeholder filled with SVG or an error note."""
    if not text.strip():
        return ""
    html, diagrams = _render(text, diagram_language)
    for index, code in enumerate(diagrams):
        try:
            svg = await renderer.engine.render_to_vector(make_diagram_id(index), code)
            inner = f'<div class="mermaid-preview">{svg}</div>'
        except Exception as exc:
            logger.warning("Preview of diagram %d failed: %s", index, exc)
            inner = (
                '<div class="mermaid-error">Error rendering Mermaid diagram: '
                f"{escapeHtml(str(exc) or 'Unknown error')}</div>"
            )
        html = html.replace(_diagram_div(index, code), _diagram_div(index, code, inner), 1)
    return html
