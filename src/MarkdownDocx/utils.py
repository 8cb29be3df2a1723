from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional


NOISY_LOGGERS = ("PIL", "markdown_it")


def configure_logging(verbose: bool = False) -> None:
    """Console logging for the command line; image and markup libraries stay at WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def resolve_output_path(input_path: Path, output: Optional[str]) -> Path:
    if output:
        out_path = Path(output)
        if out_path.is_dir():
            out_path = out_path / f"{input_path.stem}.docx"
        return out_path.with_suffix(".docx")
    return input_path.with_suffix(".docx")


def read_markdown(path: Path) -> str:
    # utf-8-sig drops the byte order mark some editors prepend
    return path.read_text(encoding="utf-8-sig")


def directory_saver(directory: Path) -> Callable[[bytes, str], Path]:
    """Return a save callback writing ``filename`` into ``directory``."""

    def save(data: bytes, filename: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / filename
        target.write_bytes(data)
        return target

    return save
