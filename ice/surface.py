from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, EncodeError
from .settings import OUTPUT_FORMATS, EncoderSettings


logger = logging.getLogger(__name__)

FORMAT_TO_MIME = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "gif": "image/gif",
}


@dataclass(frozen=True)
class PixelBuffer:
    image: Image.Image
    width: int
    height: int


class RasterSurface(Protocol):
    def decode(self, data: bytes, mime_type: str) -> PixelBuffer: ...

    def encode(
        self,
        pixels: PixelBuffer,
        width: int,
        height: int,
        fmt: str,
        quality: Optional[int] = None,
    ) -> bytes: ...


class PillowSurface:
    """Decode/encode through Pillow, entirely in memory."""

    def __init__(self, settings: Optional[EncoderSettings] = None) -> None:
        self.settings = settings or EncoderSettings()

    def decode(self, data: bytes, mime_type: str) -> PixelBuffer:
        if not data:
            raise DecodeError("Error loading image: file is empty")
        try:
            with Image.open(io.BytesIO(data)) as im:
                im.load()
                if self.settings.auto_orient:
                    im = ImageOps.exif_transpose(im)
                # Animated sources: the first frame is what gets converted.
                im = im.copy()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
            raise DecodeError(f"Error loading image ({mime_type}): {exc}") from exc

        w, h = im.size
        logger.debug("decoded %s: %dx%d mode=%s", mime_type, w, h, im.mode)
        return PixelBuffer(image=im, width=w, height=h)

    def encode(
        self,
        pixels: PixelBuffer,
        width: int,
        height: int,
        fmt: str,
        quality: Optional[int] = None,
    ) -> bytes:
        if fmt not in OUTPUT_FORMATS:
            raise EncodeError(fmt, detail="unknown output format")

        im = pixels.image
        if (width, height) != (pixels.width, pixels.height):
            im = im.resize((int(width), int(height)), Image.Resampling.LANCZOS)

        im = self._prepare_mode(im, fmt)
        save_kwargs = _build_save_kwargs(self.settings, fmt, quality)

        buf = io.BytesIO()
        try:
            # Pillow chooses the encoder by format=..., there is no filename.
            im.save(buf, format=fmt.upper(), **save_kwargs)
        except (KeyError, OSError, ValueError) as exc:
            raise EncodeError(fmt, detail=str(exc)) from exc

        data = buf.getvalue()
        logger.debug("encoded %s %dx%d quality=%s -> %d bytes", fmt, width, height, quality, len(data))
        return data

    def _prepare_mode(self, im: Image.Image, fmt: str) -> Image.Image:
        if fmt == "jpeg":
            # JPEG has no alpha: flatten onto the background colour.
            if _has_alpha(im):
                return _flatten_alpha(im, self.settings.jpeg_background)
            if im.mode not in ("RGB", "L", "CMYK"):
                return im.convert("RGB")
            return im

        if fmt == "gif":
            # The GIF plugin quantizes RGB/RGBA itself.
            return im

        if im.mode in ("RGB", "RGBA") or (fmt == "png" and im.mode in ("L", "LA", "P", "1")):
            return im
        return im.convert("RGBA" if _has_alpha(im) else "RGB")


def _build_save_kwargs(s: EncoderSettings, fmt: str, quality: Optional[int]) -> dict:
    kwargs: dict = {}

    # Quality is only forwarded to encoders that use it. For png/bmp/gif a
    # quality value is dropped here on purpose.
    if fmt == "jpeg":
        if quality is not None:
            kwargs["quality"] = int(quality)
        kwargs["optimize"] = bool(s.jpeg_optimize)
        kwargs["progressive"] = bool(s.jpeg_progressive)

    elif fmt == "webp":
        if quality is not None:
            kwargs["quality"] = int(quality)
        kwargs["method"] = int(s.webp_method)

    elif fmt == "png":
        kwargs["compress_level"] = int(s.png_compress_level)
        kwargs["optimize"] = bool(s.png_optimize)

    return kwargs


def _flatten_alpha(im: Image.Image, background_rgb: tuple[int, int, int]) -> Image.Image:
    # Ensure we are in RGBA so alpha exists
    rgba = im.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, background_rgb + (255,))
    comp = Image.alpha_composite(bg, rgba)
    return comp.convert("RGB")


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False
