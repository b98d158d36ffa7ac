from __future__ import annotations

from .settings import ConversionParameters


PRESET_NAMES = ("web", "photo", "lossless", "small")


def apply_preset(name: str, base: ConversionParameters) -> ConversionParameters:
    name = name.lower()

    if name == "web":
        return base.__class__(
            **{**base.__dict__,
               "format": "webp",
               "quality": 80}
        )

    if name == "photo":
        return base.__class__(
            **{**base.__dict__,
               "format": "jpeg",
               "quality": 85}
        )

    if name == "lossless":
        return base.__class__(
            **{**base.__dict__,
               "format": "png"}
        )

    if name == "small":
        return base.__class__(
            **{**base.__dict__,
               "format": "webp",
               "quality": 60}
        )

    raise ValueError(f"Unknown preset: {name}")
