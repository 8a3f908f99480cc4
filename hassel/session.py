from __future__ import annotations

from dataclasses import replace
import logging
import threading
from typing import Callable, Optional

from .dimensions import Axis, resolve_dimensions
from .engine import compress
from .errors import HasselError
from .results import CompressionResult, Dimensions, ImageState
from .settings import CompressionSettings
from .source import SourceImage
from .units import to_display, to_pixels


logger = logging.getLogger(__name__)


# Seconds of quiet after the last settings change before a run starts.
DEFAULT_QUIESCENCE = 0.3

Pipeline = Callable[[SourceImage, CompressionSettings, Optional[Axis]], CompressionResult]
StateCallback = Callable[[ImageState], None]


class EditingSession:
    """
    Owns one image being edited and the state the UI displays for it.

    Every settings change goes through update(). Changes are debounced:
    a run only starts once `quiescence` seconds pass without another change,
    at most one run executes at a time, and a run whose settings have since
    been superseded never writes its result into the state.

    Callbacks run on the worker thread.
    """

    def __init__(
        self,
        source: SourceImage,
        settings: Optional[CompressionSettings] = None,
        *,
        quiescence: float = DEFAULT_QUIESCENCE,
        on_result: Optional[StateCallback] = None,
        on_error: Optional[StateCallback] = None,
        pipeline: Pipeline = compress,
        autostart: bool = True,
    ) -> None:
        self.source = source
        self.quiescence = quiescence

        self._on_result = on_result
        self._on_error = on_error
        self._pipeline = pipeline

        self._lock = threading.Lock()  # guards everything below
        self._run_lock = threading.Lock()  # one pipeline run at a time

        self._settings = settings or CompressionSettings.for_source(source)
        self._state = ImageState(
            name=source.name,
            original_size=source.size,
            original_dimensions=source.dimensions,
            source=source.data,
        )
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False

        self.completed_runs = 0

        if autostart:
            self.update(self._settings)

    # ---------------- Reading ----------------
    @property
    def state(self) -> ImageState:
        with self._lock:
            return self._state

    @property
    def settings(self) -> CompressionSettings:
        with self._lock:
            return self._settings

    @property
    def original_dimensions(self) -> Dimensions:
        return self.source.dimensions

    def display_dimensions(self) -> tuple[float, float]:
        """Current width/height expressed in the settings' resize unit."""
        s = self.settings
        original = self.source.dimensions
        return (
            to_display(s.width, s.resize_unit, original.width),
            to_display(s.height, s.resize_unit, original.height),
        )

    def export(self) -> Optional[tuple[str, bytes]]:
        """(suggested file name, bytes) of the current result, if there is one."""
        state = self.state
        if state.is_processing or state.result is None:
            return None
        return state.result.file_name, state.result.data

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is pending or running. False on timeout."""
        return self._idle.wait(timeout)

    # ---------------- Changing ----------------
    def update(self, settings: CompressionSettings, changed_axis: Optional[Axis] = None) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Session is closed")

            self._generation += 1
            generation = self._generation
            self._settings = settings

            if self._timer is not None:
                self._timer.cancel()

            # Whatever is shown now is about to be stale.
            self._state = replace(self._state, is_processing=True)
            self._idle.clear()

            timer = threading.Timer(self.quiescence, self._run, args=(generation, settings, changed_axis))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def change(self, **changes) -> None:
        """update() with a few fields replaced, e.g. change(quality=0.6)."""
        self.update(replace(self.settings, **changes))

    def set_dimension(self, value: float, axis: Axis) -> None:
        """
        Apply a width or height typed in the current resize unit.

        With the aspect lock on the other axis follows from the original ratio.
        """
        s = self.settings
        original = self.source.dimensions

        px = to_pixels(value, s.resize_unit, axis == "width", original)
        if axis == "width":
            requested = Dimensions(px, s.height)
        else:
            requested = Dimensions(s.width, px)

        dims = resolve_dimensions(requested, original, s.maintain_aspect_ratio, axis)
        self.update(replace(s, width=dims.width, height=dims.height), changed_axis=axis)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._idle.set()

    def __enter__(self) -> "EditingSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ---------------- Worker side ----------------
    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation and not self._closed

    def _run(self, generation: int, settings: CompressionSettings, changed_axis: Optional[Axis]) -> None:
        with self._run_lock:
            if not self._is_current(generation):
                logger.debug("Run %d superseded before it started", generation)
                return

            try:
                result = self._pipeline(self.source, settings, changed_axis)
            except HasselError as exc:
                logger.warning("Compression of %s failed: %s", self.source.name, exc)
                self._fail(generation, str(exc))
                return
            except Exception:
                # Worker thread: nobody above us would see this.
                logger.exception("Unexpected error compressing %s", self.source.name)
                self._fail(generation, "Error compressing image.")
                return

            self._publish(generation, result)

    def _publish(self, generation: int, result: CompressionResult) -> None:
        with self._lock:
            if generation != self._generation or self._closed:
                logger.info("Discarding result of superseded run %d", generation)
                return

            # Size, dimensions and bytes are replaced in one step.
            self._state = replace(
                self._state,
                compressed=result.data,
                compressed_size=result.size,
                compressed_dimensions=result.dimensions,
                result=result,
                is_processing=False,
                error=None,
            )
            self.completed_runs += 1
            state = self._state
            self._idle.set()

        logger.info(
            "Run %d done: %s %dx%d, %d bytes",
            generation, result.media_type, result.dimensions.width, result.dimensions.height, result.size,
        )
        if self._on_result:
            self._on_result(state)

    def _fail(self, generation: int, message: str) -> None:
        with self._lock:
            if generation != self._generation or self._closed:
                return
            # Previous result fields stay as they were.
            self._state = replace(self._state, is_processing=False, error=message)
            state = self._state
            self._idle.set()

        if self._on_error:
            self._on_error(state)
