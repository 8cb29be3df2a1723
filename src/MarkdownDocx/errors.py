from __future__ import annotations


class MarkdownDocxError(Exception):
    """Base class for errors raised by the converter."""


class ConfigError(MarkdownDocxError):
    """Invalid or unreadable style configuration."""


class DiagramRenderError(MarkdownDocxError):
    """A single diagram could not be turned into an image.

    Raised inside the diagram pipeline only; callers receive ``None`` instead.
    """


class ConversionError(MarkdownDocxError):
    """Assembling or serializing the document failed; no output was produced."""
