from __future__ import annotations

import math


SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_size(num_bytes: float) -> str:
    """
    Render a byte count for humans: 0 -> "0 Bytes", 1536 -> "1.5 KB".

    The magnitude is floor(log1024(n)) clamped to the unit table, so
    anything from 1024 GB upwards is still shown in GB.
    """
    if num_bytes < 0:
        raise ValueError("num_bytes must be non-negative")
    if num_bytes == 0:
        return "0 Bytes"

    # Integer steps instead of log() so exact powers of 1024 land on the
    # right unit.
    i = 0
    while i < len(SIZE_UNITS) - 1 and num_bytes >= 1024 ** (i + 1):
        i += 1

    value = round(num_bytes / 1024 ** i, 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def compression_ratio(original: int, encoded: int) -> int:
    """
    Percent saved going from original to encoded bytes.

    0 when either side is 0 (no meaningful ratio). Negative when the
    encoded file is bigger; that is reported, not floored.
    """
    if original == 0 or encoded == 0:
        return 0
    percent = 100 * (original - encoded) / original
    # Half-up, so -49.5 -> -49 and 49.5 -> 50.
    return int(math.floor(percent + 0.5))
