from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Literal, Optional


# Output formats we can encode to.
OutputFormat = Literal["jpeg", "png", "webp", "bmp", "gif"]

OUTPUT_FORMATS: tuple[str, ...] = ("jpeg", "png", "webp", "bmp", "gif")

# Only these encoders have a lossy-quality knob. Everything else ignores it.
QUALITY_FORMATS = frozenset({"jpeg", "webp"})

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024


def supports_quality(fmt: str) -> bool:
    return fmt in QUALITY_FORMATS


@dataclass(frozen=True)
class ConversionParameters:
    """
    The conversion knobs a user can turn.

    Immutable on purpose: "changing" parameters means building a new
    snapshot and handing it to the controller, so a running encode never
    sees half of an update.

    width/height may stay None while resize is off; the controller fills
    them with the natural size of the accepted image.
    """

    format: OutputFormat = "jpeg"
    quality: int = 80
    resize: bool = False
    width: Optional[int] = None
    height: Optional[int] = None

    def __post_init__(self) -> None:
        if self.format not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {self.format}")
        if not 1 <= int(self.quality) <= 100:
            raise ValueError(f"quality must be 1-100, got {self.quality}")
        for label, value in (("width", self.width), ("height", self.height)):
            if value is not None and int(value) <= 0:
                raise ValueError(f"{label} must be positive, got {value}")
        if self.resize and (self.width is None or self.height is None):
            raise ValueError("resize needs both width and height")

    @property
    def quality_enabled(self) -> bool:
        return supports_quality(self.format)

    def encode_key(self) -> tuple:
        """
        The part of the parameters that actually changes encoder output.

        Quality drops out for formats that ignore it, dimensions drop out
        while resize is off. Two snapshots with the same key produce the
        same bytes.
        """
        quality = self.quality if self.quality_enabled else None
        size = (self.width, self.height) if self.resize else None
        return (self.format, quality, size)


@dataclass(frozen=True)
class EncoderSettings:
    """Per-encoder tuning that is not exposed as a conversion parameter."""

    # Apply the EXIF orientation tag when decoding.
    auto_orient: bool = True

    # ----- JPEG -----
    jpeg_progressive: bool = True
    jpeg_optimize: bool = True
    # Only used when the source has transparency.
    jpeg_background: tuple[int, int, int] = (255, 255, 255)

    # ----- PNG -----
    # Pillow uses "compress_level" (0-9). Higher = smaller but slower.
    png_compress_level: int = 6
    png_optimize: bool = False

    # ----- WebP -----
    webp_method: int = 4  # 0-6, higher = smaller but slower


@dataclass(frozen=True)
class ConverterConfig:
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    embed_ratio_in_name: bool = False
    encoder: EncoderSettings = field(default_factory=EncoderSettings)


def load_config(path: Path) -> ConverterConfig:
    """
    Read a ConverterConfig from JSON.

    The file uses the dataclass field names; "encoder" is a nested object.
    Missing keys keep their defaults.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a JSON object")

    encoder_raw = raw.pop("encoder", {}) or {}

    if not isinstance(encoder_raw, dict):
        raise ValueError(f"{path}: \"encoder\" must be a JSON object")

    _check_keys(raw, ConverterConfig, path)
    _check_keys(encoder_raw, EncoderSettings, path)

    if isinstance(encoder_raw.get("jpeg_background"), list):
        encoder_raw["jpeg_background"] = tuple(encoder_raw["jpeg_background"])

    _check_types(raw, ConverterConfig(), path)
    _check_types(encoder_raw, EncoderSettings(), path)

    return ConverterConfig(**raw, encoder=EncoderSettings(**encoder_raw))


def _check_keys(raw: dict, cls: type, path: Path) -> None:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"{path}: unknown config keys: {', '.join(unknown)}")


def _check_types(raw: dict, defaults: object, path: Path) -> None:
    # JSON booleans are ints in Python, so bool and int are told apart here.
    for key, value in raw.items():
        expected = type(getattr(defaults, key))
        if expected is bool:
            ok = isinstance(value, bool)
        elif expected is int:
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif expected is tuple:
            ok = isinstance(value, tuple) and all(
                isinstance(v, int) and not isinstance(v, bool) for v in value
            )
        else:
            ok = isinstance(value, expected)
        if not ok:
            raise ValueError(f"{path}: {key} must be {expected.__name__}, got {value!r}")
