from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError


@dataclass
class PageGeometry:
    """Page size and uniform margins, in inches."""

    width_in: float = 8.5
    height_in: float = 11.0
    margin_in: float = 1.0


@dataclass
class FontConfig:
    body: str = "Calibri"
    body_size_pt: float = 11
    code: str = "Courier New"
    code_size_pt: float = 10


@dataclass
class DiagramConfig:
    language: str = "mermaid"
    mmdc: str = "mmdc"
    engine_timeout_s: float = 30.0
    load_timeout_s: float = 5.0
    fallback_width: int = 800
    fallback_height: int = 600
    min_width: int = 400
    min_height: int = 300
    max_width: int = 1200
    max_height: int = 1000
    min_upscale: float = 2.0


@dataclass
class ConverterConfig:
    page: PageGeometry = field(default_factory=PageGeometry)
    fonts: FontConfig = field(default_factory=FontConfig)
    diagrams: DiagramConfig = field(default_factory=DiagramConfig)
    creator: str = "MarkdownDocx"


_SECTIONS = {
    "page": PageGeometry,
    "fonts": FontConfig,
    "diagrams": DiagramConfig,
}


def load_config(path: str | Path) -> ConverterConfig:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    return parse_config(text)


def parse_config(text: str) -> ConverterConfig:
    """Parse a YAML style document into a ConverterConfig.

    Every key is optional; missing keys keep their defaults. Unknown keys are
    rejected so that typos do not silently fall back to defaults.
    """
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping.")

    config = ConverterConfig()
    for key, value in data.items():
        if key == "creator":
            if not isinstance(value, str):
                raise ConfigError("'creator' must be a string.")
            config.creator = value
        elif key in _SECTIONS:
            setattr(config, key, _build_section(key, _SECTIONS[key], value))
        else:
            raise ConfigError(f"Unknown config key: {key!r}")
    return config


def _build_section(name: str, section_type: type, value: Any):
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{name}' must be a mapping.")
    defaults = section_type()
    known = {f.name for f in fields(section_type)}
    kwargs: dict[str, Any] = {}
    for key, item in value.items():
        if key not in known:
            raise ConfigError(f"Unknown key {key!r} in section '{name}'.")
        kwargs[key] = _coerce(name, key, item, getattr(defaults, key))
    return section_type(**kwargs)


def _coerce(section: str, key: str, value: Any, default: Any) -> Any:
    if isinstance(default, str):
        if not isinstance(value, str):
            raise ConfigError(f"'{section}.{key}' must be a string.")
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{section}.{key}' must be a number.")
    if value <= 0:
        raise ConfigError(f"'{section}.{key}' must be positive.")
    if isinstance(default, int):
        return int(value)
    return float(value)
