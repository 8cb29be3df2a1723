from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from . import preview
from .config import ConverterConfig, load_config
from .converter import MarkdownConverter
from .errors import MarkdownDocxError
from .utils import configure_logging, directory_saver, read_markdown, resolve_output_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markdowndocx",
        description="Convert Markdown with Mermaid diagrams into DOCX.",
    )
    parser.add_argument("input", type=str, help="Path to Markdown file")
    parser.add_argument("-o", "--output", type=str, help="Output DOCX path or directory")
    parser.add_argument("-c", "--config", type=str, help="YAML style configuration")
    parser.add_argument("--html", type=str, help="Also write an HTML preview to this path")
    parser.add_argument("--mmdc", type=str, help="Mermaid CLI executable (default: mmdc)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


async def _run(args: argparse.Namespace) -> None:
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        raise MarkdownDocxError(f"Input file not found: {input_path}")
    output_path = resolve_output_path(input_path, args.output)

    config = load_config(args.config) if args.config else ConverterConfig()
    if args.mmdc:
        config.diagrams.mmdc = args.mmdc
    converter = MarkdownConverter.with_mermaid_cli(config)
    try:
        await _convert(args, converter, input_path, output_path)
    finally:
        converter.close()


async def _convert(args: argparse.Namespace, converter: MarkdownConverter, input_path: Path, output_path: Path) -> None:
    logging.info("Reading %s", input_path)
    try:
        markdown_text = read_markdown(input_path)
    except (OSError, UnicodeDecodeError) as exc:
        raise MarkdownDocxError(f"Failed to read {input_path}: {exc}") from exc
    logging.debug("Markdown length: %d chars", len(markdown_text))

    logging.info("Rendering DOCX to %s", output_path)
    try:
        result = await converter.export(markdown_text, output_path.name, directory_saver(output_path.parent))
    except OSError as exc:
        raise MarkdownDocxError(f"Failed to write {output_path}: {exc}") from exc

    if args.html:
        html_path = Path(args.html)
        logging.info("Writing HTML preview to %s", html_path)
        html = await preview.render_preview_with_diagrams(
            markdown_text, converter.renderer, converter.config.diagrams.language
        )
        try:
            html_path.write_text(html, encoding="utf-8")
        except OSError as exc:
            raise MarkdownDocxError(f"Failed to write {html_path}: {exc}") from exc

    logging.info("Done. Saved to %s", output_path.parent / result.filename)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    try:
        asyncio.run(_run(args))
    except MarkdownDocxError as exc:
        logging.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
