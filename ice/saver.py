from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol


logger = logging.getLogger(__name__)


class FileSaver(Protocol):
    def save(self, data: bytes, suggested_file_name: str) -> Path: ...


class LocalFileSaver:
    """Writes downloads into a directory. Existing files are kept unless overwrite=True."""

    def __init__(self, output_dir: Path, overwrite: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.overwrite = overwrite

    def save(self, data: bytes, suggested_file_name: str) -> Path:
        # Only the name part is honoured; no writing outside output_dir.
        name = Path(suggested_file_name).name
        self.output_dir.mkdir(parents=True, exist_ok=True)

        out_path = self.output_dir / name
        if out_path.exists() and not self.overwrite:
            out_path = _next_available_name(out_path)

        # Write to a temp file in the same dir, then rename into place.
        fd, tmp_name = tempfile.mkstemp(prefix="ice_", suffix=out_path.suffix, dir=str(self.output_dir))
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            tmp_path.replace(out_path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.info("saved %s (%d bytes)", out_path, len(data))
        return out_path


def _next_available_name(path: Path) -> Path:
    # photo.webp -> photo (1).webp
    base = path.with_suffix("")
    ext = path.suffix
    i = 1
    while True:
        candidate = Path(f"{base} ({i}){ext}")
        if not candidate.exists():
            return candidate
        i += 1
