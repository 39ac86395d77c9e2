"""OpenCV camera adapter running the fixed-rate detection cycle.

Dependencies:
    - ``cv2`` for device access (``VideoCapture``) and backend constants.
    - ``swapface.utils.polling_scheduler`` for the repeating cycle timer.

Call context:
    - Built by ``swapface.app.controller.AppController``.
    - Driven by the workflow orchestrator on the event-loop thread. The
      device search may run on a worker; its result comes back through the
      injected ``dispatch``, so every callback still runs on that thread.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

import cv2
import numpy as np

from swapface.domain.entities import BoundingBox, FrameBuffer
from swapface.domain.ports import CapturePort, DetectCallback, DetectorPort, DispatchFn, FrameCallback
from swapface.utils.polling_scheduler import PollingScheduler, RepeatingTask

# Platform backends tried after the generic one, in order.
BACKEND_FALLBACKS = ("CAP_V4L2", "CAP_DSHOW", "CAP_MSMF", "CAP_AVFOUNDATION")

DeviceOpener = Callable[[int, Optional[int]], Any]


class CaptureState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    STREAMING = "streaming"
    PAUSED = "paused"
    STOPPED = "stopped"
    RELEASED = "released"


def open_video_capture(index: int, api: Optional[int]) -> Any:
    if api is None:
        return cv2.VideoCapture(index)
    return cv2.VideoCapture(index, api)


def fallback_backends() -> List[Optional[int]]:
    """Generic backend first, then whichever platform backends this build has."""
    backends: List[Optional[int]] = [None]
    for name in BACKEND_FALLBACKS:
        value = getattr(cv2, name, None)
        if isinstance(value, int):
            backends.append(value)
    return backends


class CaptureLoop(CapturePort):
    """Own the camera stream and run detection at a steady frame rate.

    The cycle self-corrects for processing time: after each frame the next
    one is scheduled ``max(0, 1000/fps - elapsed)`` ms later. A failing cycle
    halts the loop (logged); ``start`` or ``play`` resumes it.
    """

    def __init__(
        self,
        detector: DetectorPort,
        scheduler: PollingScheduler,
        *,
        camera_index: int = 0,
        fps: float = 30.0,
        frame_width: Optional[int] = None,
        frame_height: Optional[int] = None,
        opener: DeviceOpener = open_video_capture,
        backends: Optional[Sequence[Optional[int]]] = None,
        clock: Callable[[], float] = time.monotonic,
        dispatch: Optional[DispatchFn] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        if fps <= 0:
            raise ValueError("fps must be positive")
        self._log = logging.getLogger(__name__)
        self.detector = detector
        self.camera_index = camera_index
        self.fps = float(fps)
        self.frame_width = frame_width
        self.frame_height = frame_height
        self._opener = opener
        self._backends = list(backends) if backends is not None else fallback_backends()
        self._clock = clock
        self._task = RepeatingTask(scheduler, f"capture-{id(self)}", self._cycle)
        self._dispatch = dispatch
        self._owns_executor = dispatch is not None and executor is None
        if self._owns_executor:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera-detect")
        self._executor = executor
        self._detect_lock = threading.Lock()
        self._generation = 0

        self._state = CaptureState.IDLE
        self._stream: Any = None
        self._paused = False
        self._started = False
        self._on_frame: FrameCallback = lambda _count: None
        self.last_detection_count = 0
        self.last_boxes: List[BoundingBox] = []
        self.latest_frame: Optional[np.ndarray] = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def started(self) -> bool:
        return self._started

    @property
    def cycling(self) -> bool:
        return self._task.running

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.fps

    # ------------------------------------------------------------------
    # Device lifecycle
    # ------------------------------------------------------------------
    def detect_device(self, on_done: DetectCallback) -> None:
        """Try every backend for the camera and report availability; never raises.

        With a ``dispatch`` the backends are tried on a worker thread and
        ``on_done`` arrives through ``dispatch``; without one the search runs
        inline. A detection that finishes after ``stop``/``release`` releases the
        stream it opened and reports nothing.
        """
        self._state = CaptureState.DETECTING
        with self._detect_lock:
            generation = self._generation
        if self._dispatch is None or self._executor is None:
            self._finish_detection(generation, self._search(), on_done)
            return
        dispatch = self._dispatch

        def _work() -> None:
            stream = self._search()
            if self._is_stale(generation):
                self._drop_stream(stream)
                return
            dispatch(lambda: self._finish_detection(generation, stream, on_done))

        self._executor.submit(_work)

    def _search(self) -> Any:
        try:
            return self._acquire()
        except Exception as exc:
            self._log.warning("Camera detection failed: %s", exc)
            return None

    def _is_stale(self, generation: int) -> bool:
        with self._detect_lock:
            return generation != self._generation

    def _drop_stream(self, stream: Any) -> None:
        if stream is None:
            return
        self._log.info("Camera detection finished after stop; stream released")
        try:
            stream.release()
        except Exception as exc:
            self._log.warning("Releasing camera stream failed: %s", exc)

    def _finish_detection(self, generation: int, stream: Any, on_done: DetectCallback) -> None:
        if self._is_stale(generation):
            self._drop_stream(stream)
            return
        self._stream = stream
        available = stream is not None
        self._state = CaptureState.AVAILABLE if available else CaptureState.UNAVAILABLE
        self._log.info("Camera %s", "detected" if available else "not detected")
        on_done(available)

    def _acquire(self) -> Any:
        for api in self._backends:
            try:
                stream = self._opener(self.camera_index, api)
            except Exception as exc:
                self._log.debug("Backend %s failed to open camera %s: %s", api, self.camera_index, exc)
                continue
            if stream is not None and stream.isOpened():
                self._configure(stream)
                self._log.debug("Camera %s opened with backend %s", self.camera_index, api)
                return stream
            if stream is not None:
                stream.release()
        return None

    def _configure(self, stream: Any) -> None:
        if self.frame_width:
            stream.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        if self.frame_height:
            stream.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)

    def start(self, on_ready: Callable[[], None], on_frame_processed: FrameCallback) -> None:
        """Load the detector, signal readiness once, and begin cycling."""
        if self._state is CaptureState.RELEASED:
            self._log.warning("start() after release() ignored")
            return
        self._on_frame = on_frame_processed
        if self._stream is None:
            self._stream = self._acquire()
            if self._stream is None:
                self._log.error("Cannot start capture: camera unavailable")
                return
        try:
            self.detector.load()
        except Exception as exc:
            self._log.error("Cannot start capture: detector failed to load: %s", exc)
            return
        self._started = True
        on_ready()
        self.play()

    def play(self) -> None:
        """Resume cycling; reopens the stream if ``stop`` released it."""
        if self._state is CaptureState.RELEASED:
            self._log.warning("play() after release() ignored")
            return
        if not self._started:
            self._log.warning("play() before start() ignored")
            return
        if self._stream is None:
            self._stream = self._acquire()
            if self._stream is None:
                self._log.error("Cannot resume capture: camera unavailable")
                return
        self._paused = False
        self.last_detection_count = 0
        self._state = CaptureState.STREAMING
        self._task.start(0)

    def pause(self) -> None:
        """Drop the pending cycle; keeps the stream and detector."""
        self._paused = True
        self._task.stop()
        if self._state is CaptureState.STREAMING:
            self._state = CaptureState.PAUSED

    def stop(self) -> None:
        """Halt cycling and release the device stream; safe when never started."""
        with self._detect_lock:
            self._generation += 1
        self._paused = True
        self._task.stop()
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.release()
            except Exception as exc:
                self._log.warning("Releasing camera stream failed: %s", exc)
        if self._state is not CaptureState.RELEASED:
            self._state = CaptureState.STOPPED

    def release(self) -> None:
        """Free detector resources and scratch buffers; the loop is unusable afterwards."""
        with self._detect_lock:
            self._generation += 1
        self._task.stop()
        self._paused = True
        self._started = False
        try:
            self.detector.release()
        except Exception as exc:
            self._log.warning("Releasing detector failed: %s", exc)
        self.latest_frame = None
        self.last_boxes = []
        self._state = CaptureState.RELEASED
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------
    def capture(self, target: FrameBuffer) -> bool:
        """Grab one frame into ``target``, independent of the cycle."""
        if self._stream is None or self._state is CaptureState.RELEASED:
            self._log.error("capture() without an open camera stream")
            return False
        try:
            ok, frame = self._stream.read()
        except Exception as exc:
            self._log.error("Error taking photo: %s", exc)
            return False
        if not ok or frame is None:
            self._log.error("Error taking photo: camera returned no frame")
            return False
        target.store(frame)
        return True

    def _cycle(self) -> Optional[int]:
        if self._paused or self._stream is None:
            return None
        begin = self._clock()
        try:
            ok, frame = self._stream.read()
            if not ok or frame is None:
                raise RuntimeError("camera returned no frame")
            boxes = list(self.detector.detect(frame))
            self.latest_frame = frame
            self.last_boxes = boxes
            self.last_detection_count = len(boxes)
            self._on_frame(len(boxes))
        except Exception:
            self._log.exception("Capture cycle failed; loop halted")
            return None
        elapsed_ms = (self._clock() - begin) * 1000.0
        return max(0, int(round(self.frame_interval_ms - elapsed_ms)))


__all__ = [
    "BACKEND_FALLBACKS",
    "CaptureLoop",
    "CaptureState",
    "fallback_backends",
    "open_video_capture",
]
