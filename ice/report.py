from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .results import ConvertedArtifact, SourceImage
from .sizes import format_size


@dataclass(frozen=True)
class ConversionReport:
    created_utc: str
    src_name: str
    src_mime_type: str
    src_bytes: int
    src_dimensions: dict
    out_name: str
    out_path: Optional[str]
    out_format: str
    out_bytes: int
    compression_ratio_percent: int
    src_size_human: str
    out_size_human: str


def build_report(
    source: SourceImage,
    artifact: ConvertedArtifact,
    saved_path: Optional[Path] = None,
) -> ConversionReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    return ConversionReport(
        created_utc=created_utc,
        src_name=source.name,
        src_mime_type=source.mime_type,
        src_bytes=source.original_size,
        src_dimensions={"width": source.width, "height": source.height},
        out_name=artifact.suggested_file_name,
        out_path=str(saved_path) if saved_path else None,
        out_format=artifact.format,
        out_bytes=artifact.size,
        compression_ratio_percent=artifact.compression_ratio_percent,
        src_size_human=format_size(source.original_size),
        out_size_human=format_size(artifact.size),
    )


def save_report_json(report: ConversionReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(asdict(report), f, indent=2, ensure_ascii=False)
