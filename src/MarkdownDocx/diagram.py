from __future__ import annotations

import asyncio
import io
import json
import logging
import math
import multiprocessing
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol, Tuple

from lxml import etree
from PIL import Image

from .config import DiagramConfig
from .errors import DiagramRenderError
from .model import Block, DiagramBlock, DiagramImage

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG"

# Mermaid settings for the CLI. HTML labels are rendered through
# <foreignObject>, which Cairo ignores, so plain SVG text labels are requested.
MERMAID_SETTINGS = {
    "theme": "default",
    "securityLevel": "loose",
    "fontFamily": "Arial",
    "logLevel": "error",
    "flowchart": {"htmlLabels": False},
}


class DiagramEngine(Protocol):
    async def render_to_vector(self, diagram_id: str, description: str) -> str:
        """Return SVG markup for a diagram description."""


class Rasterizer(Protocol):
    def rasterize(self, vector_markup: str, width: int, height: int) -> bytes:
        """Return encoded raster bytes of exactly ``width`` x ``height`` pixels."""


class MermaidCliEngine:
    """Renders Mermaid descriptions to SVG with the local ``mmdc`` executable.

    The executable is looked up once, on first use, and the result (or the
    failure) is reused for the lifetime of the engine.
    """

    def __init__(self, executable: str = "mmdc", timeout: float = 30.0) -> None:
        self.executable = executable
        self.timeout = timeout
        self._resolved: str | None = None
        self._init_error: DiagramRenderError | None = None

    def initialize(self) -> str:
        if self._resolved is not None:
            return self._resolved
        if self._init_error is not None:
            raise self._init_error
        path = shutil.which(self.executable)
        if path is None:
            self._init_error = DiagramRenderError(f"Mermaid CLI not found: {self.executable}")
            raise self._init_error
        logger.debug("Using Mermaid CLI at %s", path)
        self._resolved = path
        return path

    async def render_to_vector(self, diagram_id: str, description: str) -> str:
        executable = self.initialize()
        with tempfile.TemporaryDirectory(prefix="markdowndocx-") as tmp:
            workdir = Path(tmp)
            source = workdir / f"{diagram_id}.mmd"
            target = workdir / f"{diagram_id}.svg"
            settings = workdir / "mermaid.json"
            source.write_text(description, encoding="utf-8")
            settings.write_text(json.dumps(MERMAID_SETTINGS), encoding="utf-8")
            process = await asyncio.create_subprocess_exec(
                executable,
                "-i", str(source),
                "-o", str(target),
                "-c", str(settings),
                "-b", "transparent",
                "--quiet",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                process.kill()
                await process.wait()
                raise DiagramRenderError(f"Mermaid CLI timed out after {self.timeout:g}s") from exc
            if process.returncode != 0 or not target.exists():
                message = stderr.decode("utf-8", errors="replace").strip()
                raise DiagramRenderError(f"Mermaid CLI exited with {process.returncode}: {message}")
            return target.read_text(encoding="utf-8")


def _svg_to_png(bytestring: bytes, width: int, height: int, background_color: str) -> bytes:
    # Runs in the worker process. cairosvg needs the native Cairo library.
    import cairosvg

    return cairosvg.svg2png(
        bytestring=bytestring,
        output_width=width,
        output_height=height,
        background_color=background_color,
    )


class CairoRasterizer:
    """Paints SVG onto a white Cairo surface and encodes it as PNG.

    Painting happens in a single worker process. When a call takes longer
    than ``timeout`` seconds the worker is terminated, so no abandoned
    rasterization keeps running behind the next diagram.
    """

    background_color = "white"

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._pool = None

    def rasterize(self, vector_markup: str, width: int, height: int) -> bytes:
        pool = self._pool
        if pool is None:
            pool = self._pool = multiprocessing.get_context("spawn").Pool(processes=1)
        pending = pool.apply_async(
            _svg_to_png,
            (vector_markup.encode("utf-8"), width, height, self.background_color),
        )
        try:
            return pending.get(timeout=self.timeout)
        except multiprocessing.TimeoutError as exc:
            # Only the pool this call used; a later call may already own a new one.
            if self._pool is pool:
                self._pool = None
            pool.terminate()
            pool.join()
            raise DiagramRenderError(f"Rasterization timed out after {self.timeout:g}s") from exc
        except Exception as exc:
            raise DiagramRenderError(f"Rasterization failed: {exc}") from exc

    def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.terminate()
            pool.join()


def make_diagram_id(index: int) -> str:
    return f"mermaid-diagram-{index}-{time.monotonic_ns()}"


def intrinsic_size(vector_markup: str, config: DiagramConfig | None = None) -> Tuple[int, int]:
    """Read width/height from the root ``viewBox``; fall back to the default size."""
    config = config or DiagramConfig()
    fallback = (config.fallback_width, config.fallback_height)
    try:
        root = etree.fromstring(vector_markup.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        raise DiagramRenderError(f"Engine returned invalid SVG: {exc}") from exc
    view_box = root.get("viewBox")
    if not view_box:
        return fallback
    parts = view_box.replace(",", " ").split()
    try:
        width = math.ceil(float(parts[2]))
        height = math.ceil(float(parts[3]))
    except (IndexError, ValueError):
        return fallback
    return (
        width if width > 0 else config.fallback_width,
        height if height > 0 else config.fallback_height,
    )


def fit_diagram_size(width: int, height: int, config: DiagramConfig | None = None) -> Tuple[int, int]:
    """Scale small diagrams up, then large ones down, keeping the aspect ratio."""
    config = config or DiagramConfig()
    if width < config.min_width or height < config.min_height:
        scale = max(config.min_width / width, config.min_height / height, config.min_upscale)
        width = math.ceil(width * scale)
        height = math.ceil(height * scale)
    if width > config.max_width or height > config.max_height:
        scale = min(config.max_width / width, config.max_height / height)
        width = min(config.max_width, math.ceil(width * scale))
        height = min(config.max_height, math.ceil(height * scale))
    return width, height


def _decode_raster(data: bytes) -> Tuple[int, int]:
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return image.size
    except (OSError, ValueError) as exc:
        raise DiagramRenderError(f"Rasterized image could not be loaded: {exc}") from exc


class DiagramRenderer:
    """Turns one diagram description into a PNG bitmap, or ``None`` on failure."""

    def __init__(
        self,
        engine: DiagramEngine,
        rasterizer: Rasterizer | None = None,
        config: DiagramConfig | None = None,
    ) -> None:
        self.engine = engine
        self.rasterizer = rasterizer or CairoRasterizer()
        self.config = config or DiagramConfig()

    async def render(self, description: str, index: int) -> Optional[DiagramImage]:
        if not description.strip():
            logger.warning("Diagram %d is empty, skipping", index)
            return None
        diagram_id = make_diagram_id(index)
        try:
            vector = await self.engine.render_to_vector(diagram_id, description)
        except Exception as exc:
            logger.warning("Diagram %d could not be rendered: %s", index, exc)
            return None

        try:
            width, height = fit_diagram_size(*intrinsic_size(vector, self.config), self.config)
            logger.debug("Diagram %d (%s) rasterizing at %dx%d", index, diagram_id, width, height)
            data = await asyncio.wait_for(
                _run_detached(self._rasterize_and_load, vector, width, height),
                timeout=self.config.load_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Diagram %d timed out after %gs", index, self.config.load_timeout_s)
            # Stops a stuck worker before the next diagram starts.
            self.close()
            return None
        except Exception as exc:
            logger.warning("Diagram %d could not be rasterized: %s", index, exc)
            return None

        if data[: len(PNG_SIGNATURE)] != PNG_SIGNATURE:
            logger.warning("Diagram %d produced data without a PNG signature", index)
            return None
        return DiagramImage(data=data, width=width, height=height)

    def _rasterize_and_load(self, vector: str, width: int, height: int) -> bytes:
        data = self.rasterizer.rasterize(vector, width, height)
        _decode_raster(data)
        return data

    def close(self) -> None:
        close = getattr(self.rasterizer, "close", None)
        if close is not None:
            close()


def _run_detached(func: Callable[..., Any], *args: Any) -> "asyncio.Future[Any]":
    """Run ``func`` on a daemon thread and return a future for its result.

    Unlike ``asyncio.to_thread`` the thread is not owned by the loop's
    default executor, so a call that never returns does not hold up
    ``asyncio.run`` or interpreter exit after the caller stops waiting.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(setter: Callable[[Any], None], value: Any) -> None:
        if not future.done():
            setter(value)

    def worker() -> None:
        try:
            result = func(*args)
        except BaseException as exc:
            outcome = (future.set_exception, exc)
        else:
            outcome = (future.set_result, result)
        try:
            loop.call_soon_threadsafe(deliver, *outcome)
        except RuntimeError:
            # The loop closed after the caller gave up waiting.
            pass

    threading.Thread(target=worker, name="markdowndocx-rasterize", daemon=True).start()
    return future


async def resolve_diagrams(blocks: Iterable[Block], renderer: DiagramRenderer | None) -> Tuple[int, int]:
    """Render every diagram block in document order, one at a time.

    Returns ``(diagram_count, rendered_count)``. Without a renderer every
    diagram keeps ``image=None`` and is shown as a placeholder.
    """
    total = 0
    rendered = 0
    for block in blocks:
        if not isinstance(block, DiagramBlock):
            continue
        if renderer is not None:
            block.image = await renderer.render(block.source, total)
        if block.image is not None:
            rendered += 1
        total += 1
    return total, rendered
