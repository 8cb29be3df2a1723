import io

import pytest
from PIL import Image

SVG_TEMPLATE = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {w} {h}"><rect width="10" height="10"/></svg>'


def image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, fmt)
    return buffer.getvalue()


class FakeEngine:
    """Returns a fixed SVG; descriptions containing 'invalid' fail like a syntax error."""

    def __init__(self, width: int = 200, height: int = 100) -> None:
        self.svg = SVG_TEMPLATE.format(w=width, h=height)
        self.calls = []

    async def render_to_vector(self, diagram_id, description):
        self.calls.append((diagram_id, description))
        if "invalid" in description:
            raise ValueError(f"Parse error in {diagram_id}")
        return self.svg


class FakeRasterizer:
    def __init__(self, fmt: str = "PNG") -> None:
        self.fmt = fmt
        self.sizes = []

    def rasterize(self, vector_markup, width, height):
        self.sizes.append((width, height))
        return image_bytes(width, height, self.fmt)


class GarbageRasterizer:
    def rasterize(self, vector_markup, width, height):
        return b"not an image at all"


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def rasterizer():
    return FakeRasterizer()
