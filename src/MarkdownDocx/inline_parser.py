from __future__ import annotations

import re
from typing import Iterable, List

from .model import Bold, BoldItalic, Code, InlineRun, Italic, Link, Strikethrough, Text

# Alternatives are tried in order at each position, which gives the priority
# bold+italic > bold > italic > code > link > strikethrough.
_INLINE_RE = re.compile(
    r"\*\*\*(?P<bold_italic>.+?)\*\*\*"
    r"|\*\*(?P<bold>.+?)\*\*"
    r"|\*(?P<italic>[^*]+)\*"
    r"|`(?P<code>[^`]+)`"
    r"|\[(?P<label>[^\]]+)\]\((?P<url>[^)\s]+)\)"
    r"|~~(?P<strike>.+?)~~"
)

_SIMPLE_RUNS = {
    "bold_italic": BoldItalic,
    "bold": Bold,
    "italic": Italic,
    "code": Code,
    "strike": Strikethrough,
}

_DELIMITERS = {
    BoldItalic: "***",
    Bold: "**",
    Italic: "*",
    Code: "`",
    Strikethrough: "~~",
}


def parse_inline(line: str) -> List[InlineRun]:
    """Split one line into styled runs. Never fails; unmatched markers stay literal."""
    runs: List[InlineRun] = []
    position = 0
    for match in _INLINE_RE.finditer(line):
        if match.start() > position:
            runs.append(Text(line[position : match.start()]))
        runs.append(_run_from_match(match))
        position = match.end()
    if position < len(line) or not runs:
        runs.append(Text(line[position:]))
    return runs


def _run_from_match(match: re.Match) -> InlineRun:
    if match.group("label") is not None:
        return Link(label=match.group("label"), url=match.group("url"))
    for group, run_type in _SIMPLE_RUNS.items():
        value = match.group(group)
        if value is not None:
            return run_type(value)
    return Text(match.group(0))


def run_text(run: InlineRun) -> str:
    if isinstance(run, Link):
        return run.label
    return run.value


def plain_text(runs: Iterable[InlineRun]) -> str:
    return "".join(run_text(run) for run in runs)


def to_markup(run: InlineRun) -> str:
    """Wrap a run back in the delimiters it was parsed from."""
    if isinstance(run, Link):
        return f"[{run.label}]({run.url})"
    delimiter = _DELIMITERS.get(type(run), "")
    return f"{delimiter}{run.value}{delimiter}"
