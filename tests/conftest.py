import io
import threading
from typing import Optional

import pytest
from PIL import Image

from ice.errors import DecodeError
from ice.results import SourceImage
from ice.surface import PixelBuffer


def make_image_bytes(fmt: str = "PNG", size=(64, 48), color=(100, 150, 200), mode: str = "RGB", **save_kwargs) -> bytes:
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


def make_source(data: bytes = b"\x89PNG fake", name: str = "photo.png", width: int = 40, height: int = 30) -> SourceImage:
    return SourceImage(
        name=name,
        data=data,
        mime_type="image/png",
        original_size=len(data),
        width=width,
        height=height,
    )


class FakeSurface:
    """
    Stands in for Pillow. Output size is width * height * quality / 100,
    with quality treated as 100 when the caller passes none.
    """

    def __init__(self, width: int = 40, height: int = 30, gated: bool = False) -> None:
        self.width = width
        self.height = height
        self.calls = []
        self.fail_decode = False
        self.empty_output = False
        self.started = threading.Event()
        self._gate = threading.Event()
        if not gated:
            self._gate.set()

    def release(self) -> None:
        self._gate.set()

    def decode(self, data: bytes, mime_type: str) -> PixelBuffer:
        if self.fail_decode:
            raise DecodeError("Error loading image")
        return PixelBuffer(image=None, width=self.width, height=self.height)

    def encode(self, pixels, width: int, height: int, fmt: str, quality: Optional[int] = None) -> bytes:
        self.calls.append((fmt, quality, width, height))
        self.started.set()
        assert self._gate.wait(5), "test never released the surface"
        if self.empty_output:
            return b""
        return b"\0" * (width * height * (quality or 100) // 100)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def fake_surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def gated_surface() -> FakeSurface:
    return FakeSurface(gated=True)


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def source_factory():
    return make_source
