"""Exceptions raised by the converter. All of them derive from ConversionError."""
from __future__ import annotations


class ConversionError(Exception):
    pass


class ValidationError(ConversionError):
    """A file was rejected on acceptance. The previous image is kept."""


class NotAnImage(ValidationError):
    def __init__(self, mime_type: str) -> None:
        super().__init__(f"Please select an image file (got {mime_type or 'unknown type'})")
        self.mime_type = mime_type


class TooLarge(ValidationError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File size exceeds {limit // (1024 * 1024)}MB limit")
        self.size = size
        self.limit = limit


class DecodeError(ConversionError):
    pass


class EncodeError(ConversionError):
    UNSUPPORTED_FORMAT = "unsupported_format"
    EMPTY_RESULT = "empty_result"

    def __init__(self, fmt: str, reason: str = UNSUPPORTED_FORMAT, detail: str = "") -> None:
        msg = f"Failed to convert to {fmt.upper()}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.format = fmt
        self.reason = reason


class EncodeFailed(EncodeError):
    """The encoder ran but produced no bytes."""

    def __init__(self, fmt: str) -> None:
        super().__init__(fmt, reason=EncodeError.EMPTY_RESULT)


class NoImageSelected(ConversionError):
    def __init__(self) -> None:
        super().__init__("No image selected")


class NotConverted(ConversionError):
    def __init__(self) -> None:
        super().__init__("Nothing to download yet, convert first")


class EstimateBusy(ConversionError):
    def __init__(self) -> None:
        super().__init__("Estimate still running, try again")
