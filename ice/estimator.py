from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Optional

from .errors import ConversionError, EncodeFailed
from .results import EstimationResult, SourceImage
from .settings import ConversionParameters
from .sizes import compression_ratio
from .surface import RasterSurface


logger = logging.getLogger(__name__)

ResultCallback = Callable[[EstimationResult], None]
ErrorCallback = Callable[[Exception], None]


class EstimationState(str, enum.Enum):
    IDLE = "idle"
    READY = "ready"
    COMPUTING = "computing"
    STALE = "stale"


def run_pass(surface: RasterSurface, source: SourceImage, params: ConversionParameters) -> EstimationResult:
    """One decode + encode + measure cycle. Blocking."""
    pixels = surface.decode(source.data, source.mime_type)

    if params.resize:
        width, height = int(params.width), int(params.height)
    else:
        width, height = pixels.width, pixels.height

    quality = params.quality if params.quality_enabled else None
    data = surface.encode(pixels, width, height, params.format, quality)
    if not data:
        raise EncodeFailed(params.format)

    encoded_size = len(data)
    return EstimationResult(
        encoded_bytes=data,
        encoded_size=encoded_size,
        compression_ratio_percent=compression_ratio(source.original_size, encoded_size),
        parameters=params,
        width=width,
        height=height,
        source=source,
    )


class EstimationEngine:
    """
    Keeps a size estimate in step with the current image and parameters.

    Every relevant change starts a pass on a background thread. While a
    pass is running, further changes only mark the engine STALE; when the
    pass finishes, exactly one more pass runs with whatever snapshot is
    current by then. So there is never more than one encode in flight and
    never more than one queued behind it.

    Callbacks run on the worker thread.
    """

    def __init__(
        self,
        surface: RasterSurface,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._surface = surface
        self._on_result = on_result
        self._on_error = on_error

        self._cond = threading.Condition()
        self._state = EstimationState.IDLE
        self._busy = False  # a worker thread is alive
        self._worker: Optional[threading.Thread] = None

        self._source: Optional[SourceImage] = None
        self._params: Optional[ConversionParameters] = None
        self._result: Optional[EstimationResult] = None
        self._error: Optional[Exception] = None
        self._passes = 0

    # ---------------- State ----------------
    @property
    def state(self) -> EstimationState:
        with self._cond:
            return self._state

    @property
    def result(self) -> Optional[EstimationResult]:
        with self._cond:
            return self._result

    @property
    def error(self) -> Optional[Exception]:
        with self._cond:
            return self._error

    @property
    def passes(self) -> int:
        """Number of passes that have completed (published or not)."""
        with self._cond:
            return self._passes

    @property
    def busy(self) -> bool:
        with self._cond:
            return self._busy

    # ---------------- Inputs ----------------
    def load(self, source: SourceImage, params: ConversionParameters) -> None:
        """A new image was accepted: drop the old estimate and recompute."""
        with self._cond:
            self._source = source
            self._params = params
            self._result = None
            self._error = None
            if self._state is EstimationState.IDLE:
                self._state = EstimationState.READY
            logger.debug("image loaded: %s (%d bytes)", source.name, source.original_size)
            self._request_locked()

    def update(self, params: ConversionParameters) -> bool:
        """
        Swap in a new parameter snapshot.

        Returns True if that triggered (or queued) a recompute. Changes the
        encoder cannot see, like quality under PNG, are stored but don't
        recompute.
        """
        with self._cond:
            previous = self._params
            self._params = params
            if self._source is None:
                return False
            if previous is not None and previous.encode_key() == params.encode_key():
                logger.debug("parameter change has no effect on output, not recomputing")
                return False
            self._request_locked()
            return True

    def clear(self) -> None:
        with self._cond:
            self._source = None
            self._result = None
            self._error = None
            self._state = EstimationState.IDLE
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no pass is in flight. False on timeout.

        Called from a listener (i.e. on the worker itself) it returns True
        right away: the result being published is already in place.
        """
        with self._cond:
            if self._busy and threading.current_thread() is self._worker:
                return True
            return self._cond.wait_for(lambda: not self._busy, timeout)

    # ---------------- Internals ----------------
    def _request_locked(self) -> None:
        if self._source is None or self._params is None:
            return

        if self._busy:
            if self._state is not EstimationState.STALE:
                logger.debug("pass in flight, marking stale")
            self._state = EstimationState.STALE
            return

        self._state = EstimationState.COMPUTING
        self._busy = True
        source, params = self._source, self._params

        self._worker = threading.Thread(target=self._work, args=(source, params), daemon=True)
        self._worker.start()

    def _work(self, source: SourceImage, params: ConversionParameters) -> None:
        while True:
            logger.debug("pass start: %s %s", source.name, params)
            result, error = self._compute(source, params)

            with self._cond:
                self._passes += 1

                if self._state is EstimationState.STALE and self._source is not None:
                    # Superseded: drop this outcome and run once more with
                    # the latest snapshot.
                    self._state = EstimationState.COMPUTING
                    source, params = self._source, self._params
                    continue

                if self._state is EstimationState.IDLE or self._source is None:
                    # Cleared while we were encoding.
                    self._state = EstimationState.IDLE
                    self._busy = False
                    self._cond.notify_all()
                    return

                self._state = EstimationState.READY
                self._result = result
                self._error = error

            self._publish(result, error)

            # Listeners ran outside the lock; a change may have come in
            # meanwhile and found us still busy.
            with self._cond:
                if self._state is EstimationState.STALE and self._source is not None:
                    self._state = EstimationState.COMPUTING
                    source, params = self._source, self._params
                    continue
                self._busy = False
                self._cond.notify_all()
                return

    def _compute(
        self, source: SourceImage, params: ConversionParameters
    ) -> tuple[Optional[EstimationResult], Optional[Exception]]:
        try:
            return run_pass(self._surface, source, params), None
        except ConversionError as ex:
            logger.warning("estimate failed: %s", ex)
            return None, ex
        except Exception as ex:
            # Never leave the engine stuck in COMPUTING.
            logger.exception("unexpected error during estimate")
            return None, ex

    def _publish(self, result: Optional[EstimationResult], error: Optional[Exception]) -> None:
        try:
            if result is not None:
                logger.debug(
                    "pass done: %d bytes (%d%%)", result.encoded_size, result.compression_ratio_percent
                )
                if self._on_result:
                    self._on_result(result)
            elif error is not None and self._on_error:
                self._on_error(error)
        except Exception:
            logger.exception("estimate listener failed")
