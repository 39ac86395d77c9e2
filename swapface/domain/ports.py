from __future__ import annotations
from typing import Callable, List, Optional, Protocol, Sequence

import numpy as np

from .entities import BoundingBox, FrameBuffer, ImageHandle

# ---- Callback shapes ----
CatalogCallback = Callable[[Optional[List[ImageHandle]]], None]
SubmitCallback = Callable[[Optional[ImageHandle], Optional[Exception]], None]
DetectCallback = Callable[[bool], None]
FrameCallback = Callable[[int], None]
ScheduleFn = Callable[[int, Callable[[], None]], object]
CancelFn = Callable[[object], None]
DispatchFn = Callable[[Callable[[], None]], None]


# ---- Ports (Hexagonal boundaries) ----
class TransferPort(Protocol):
    """Cancellable catalog/submission calls against the swap service.

    Completions are delivered through callbacks only; a cancelled operation
    never completes.
    """

    def fetch_catalog(self, on_done: CatalogCallback) -> None: ...
    def submit_by_frame(self, frame: np.ndarray, partner_index: int, on_done: SubmitCallback) -> None: ...
    def submit_by_index_pair(self, index1: int, index2: int, on_done: SubmitCallback) -> None: ...
    def cancel(self) -> None: ...
    def rearm(self) -> None: ...


class CapturePort(Protocol):
    """Camera lifecycle plus the fixed-rate detection cycle."""

    @property
    def paused(self) -> bool: ...
    @property
    def started(self) -> bool: ...
    def detect_device(self, on_done: DetectCallback) -> None: ...
    def start(self, on_ready: Callable[[], None], on_frame_processed: FrameCallback) -> None: ...
    def pause(self) -> None: ...
    def play(self) -> None: ...
    def stop(self) -> None: ...
    def capture(self, target: FrameBuffer) -> bool: ...
    def release(self) -> None: ...


class DetectorPort(Protocol):
    """Object/face detection capability used by the capture loop."""

    def load(self) -> None: ...
    def detect(self, frame: np.ndarray) -> Sequence[BoundingBox]: ...
    def release(self) -> None: ...
