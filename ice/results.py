from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .settings import ConversionParameters


@dataclass(frozen=True)
class SourceFile:
    """An upload held in memory. mime_type is sniffed from name when missing."""
    name: str
    data: bytes
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class SourceImage:
    """
    The accepted image.

    original_size is captured at accept time and is what every
    compression ratio is measured against.
    """
    name: str
    data: bytes = field(repr=False)
    mime_type: str
    original_size: int
    width: int
    height: int


@dataclass(frozen=True)
class EstimationResult:
    """
    Output of one recompute pass.

    Keeping it immutable (frozen=True) makes it safe to hand from the
    worker thread to listeners.
    """
    encoded_bytes: bytes = field(repr=False)
    encoded_size: int
    compression_ratio_percent: int
    parameters: ConversionParameters
    width: int
    height: int
    source: SourceImage = field(repr=False, compare=False)

    @property
    def saved_bytes(self) -> int:
        # Negative when the encode grew the file.
        return self.source.original_size - self.encoded_size


@dataclass(frozen=True)
class ConvertedArtifact:
    data: bytes = field(repr=False)
    suggested_file_name: str
    format: str
    mime_type: str
    compression_ratio_percent: int

    @property
    def size(self) -> int:
        return len(self.data)
