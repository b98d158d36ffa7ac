"""
The conversion controller.

Owns the accepted image, the current parameters and the last converted
artifact, and keeps the estimation engine fed. A UI (the CLI, or anything
else) talks only to this class.
"""
from __future__ import annotations

import logging
import mimetypes
import re
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Union

from .errors import (
    ConversionError,
    DecodeError,
    EstimateBusy,
    NoImageSelected,
    NotAnImage,
    NotConverted,
    TooLarge,
)
from .estimator import EstimationEngine, EstimationState, run_pass
from .results import ConvertedArtifact, EstimationResult, SourceFile, SourceImage
from .saver import FileSaver
from .settings import ConversionParameters, ConverterConfig
from .surface import FORMAT_TO_MIME, PillowSurface, RasterSurface


logger = logging.getLogger(__name__)

IMAGE_MIME = re.compile(r"^image/")

FileInput = Union[str, Path, SourceFile]
Listener = Callable[[Optional[EstimationResult], Optional[Exception]], None]


class ConversionController:
    def __init__(
        self,
        config: Optional[ConverterConfig] = None,
        surface: Optional[RasterSurface] = None,
        saver: Optional[FileSaver] = None,
        parameters: Optional[ConversionParameters] = None,
    ) -> None:
        self.config = config or ConverterConfig()
        self._surface = surface or PillowSurface(self.config.encoder)
        self._saver = saver

        self._source: Optional[SourceImage] = None
        self._params = parameters or ConversionParameters()
        self._artifact: Optional[ConvertedArtifact] = None
        self._listeners: List[Listener] = []

        self._engine = EstimationEngine(
            self._surface,
            on_result=self._notify_result,
            on_error=self._notify_error,
        )

    # ---------------- Read-only state for the UI ----------------
    @property
    def source(self) -> Optional[SourceImage]:
        return self._source

    @property
    def parameters(self) -> ConversionParameters:
        return self._params

    @property
    def estimate(self) -> Optional[EstimationResult]:
        return self._engine.result

    @property
    def last_error(self) -> Optional[Exception]:
        return self._engine.error

    @property
    def artifact(self) -> Optional[ConvertedArtifact]:
        return self._artifact

    @property
    def state(self) -> EstimationState:
        return self._engine.state

    @property
    def quality_enabled(self) -> bool:
        """False when the selected format ignores quality; the UI greys the slider out."""
        return self._params.quality_enabled

    @property
    def passes(self) -> int:
        return self._engine.passes

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current estimate has settled."""
        return self._engine.wait(timeout)

    def subscribe(self, listener: Listener) -> None:
        """listener(result, error) is called after every pass, on the worker thread."""
        self._listeners.append(listener)

    # ---------------- Actions ----------------
    def accept_file(self, file: FileInput) -> SourceImage:
        """
        Validate and take ownership of a new image.

        Raises NotAnImage / TooLarge on validation failure and DecodeError
        when the bytes are not a readable image. In every failure case the
        previously accepted image stays in place.
        """
        if isinstance(file, SourceFile):
            name, mime_type = file.name, file.mime_type or _sniff_mime(file.name)
            size = len(file.data)
        else:
            path = Path(file)
            name, mime_type = path.name, _sniff_mime(path.name)
            size = path.stat().st_size

        if not IMAGE_MIME.match(mime_type):
            logger.warning("rejected %s: not an image (%s)", name, mime_type)
            raise NotAnImage(mime_type)

        if size > self.config.max_file_bytes:
            logger.warning("rejected %s: %d bytes is over the limit", name, size)
            raise TooLarge(size, self.config.max_file_bytes)

        data = file.data if isinstance(file, SourceFile) else Path(file).read_bytes()
        if not data:
            raise DecodeError(f"Error loading image: {name} is empty")

        pixels = self._surface.decode(data, mime_type)

        source = SourceImage(
            name=name,
            data=data,
            mime_type=mime_type,
            original_size=len(data),
            width=pixels.width,
            height=pixels.height,
        )

        self._source = source
        self._artifact = None
        if not self._params.resize:
            # Resize fields start at the natural size, like a form would.
            self._params = replace(self._params, width=source.width, height=source.height)

        logger.info("accepted %s (%s, %dx%d, %d bytes)", name, mime_type, source.width, source.height, source.original_size)
        self._engine.load(source, self._params)
        return source

    def set_parameters(self, next_params: ConversionParameters) -> None:
        if self._params.quality_enabled and not next_params.quality_enabled:
            logger.debug("%s ignores quality, quality control disabled", next_params.format)
        self._params = next_params
        self._engine.update(next_params)

    def clear(self) -> None:
        self._source = None
        self._artifact = None
        self._engine.clear()

    def convert(self, timeout: Optional[float] = None) -> ConvertedArtifact:
        """
        Produce the downloadable file for the current image and parameters.

        Uses the latest estimate when it was made from exactly this image and
        these parameters; otherwise encodes once more synchronously. Raises
        EstimateBusy if the running pass does not finish within timeout. The ratio
        in the file name always comes from the same encode as the bytes.
        """
        source = self._source
        if source is None:
            raise NoImageSelected()

        params = self._params
        if not self._engine.wait(timeout):
            # Encoding here too would put a second encode in flight.
            raise EstimateBusy()
        result = self._engine.result

        if not _matches(result, source, params):
            logger.debug("no usable estimate, encoding directly")
            result = run_pass(self._surface, source, params)

        artifact = ConvertedArtifact(
            data=result.encoded_bytes,
            suggested_file_name=self._file_name(source.name, params.format, result.compression_ratio_percent),
            format=params.format,
            mime_type=FORMAT_TO_MIME[params.format],
            compression_ratio_percent=result.compression_ratio_percent,
        )
        self._artifact = artifact
        logger.info("converted %s -> %s (%d bytes)", source.name, artifact.suggested_file_name, artifact.size)
        return artifact

    def download(self, artifact: Optional[ConvertedArtifact] = None) -> Path:
        artifact = artifact or self._artifact
        if artifact is None:
            raise NotConverted()
        if self._saver is None:
            raise ConversionError("No file saver configured")
        return self._saver.save(artifact.data, artifact.suggested_file_name)

    # ---------------- Helpers ----------------
    def _file_name(self, original_name: str, fmt: str, ratio: int) -> str:
        base = base_name(original_name)
        if self.config.embed_ratio_in_name:
            if ratio >= 0:
                return f"{base}-{ratio}pct-reduced.{fmt}"
            return f"{base}-{-ratio}pct-larger.{fmt}"
        return f"{base}.{fmt}"

    def _notify_result(self, result: EstimationResult) -> None:
        for listener in list(self._listeners):
            listener(result, None)

    def _notify_error(self, error: Exception) -> None:
        for listener in list(self._listeners):
            listener(None, error)


def base_name(file_name: str) -> str:
    """'photo.final.png' -> 'photo.final'; a name without an extension is kept whole."""
    idx = file_name.rfind(".")
    if idx <= 0:
        return file_name
    return file_name[:idx]


def _sniff_mime(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or "application/octet-stream"


def _matches(result: Optional[EstimationResult], source: SourceImage, params: ConversionParameters) -> bool:
    if result is None:
        return False
    return result.source is source and result.parameters.encode_key() == params.encode_key()
