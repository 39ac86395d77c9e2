from __future__ import annotations

"""Domain value objects and the mutable workflow context shared by use cases."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

import numpy as np


class WorkflowState(str, Enum):
    """Every state of the face-swap automaton; exactly one is active."""

    DETECTING_DEVICE = "detecting_device"
    SHOWING_DETECTION_RESULT = "showing_detection_result"
    LOADING_CATALOG = "loading_catalog"
    AWAITING_SELECTION = "awaiting_selection"
    SHOWING_CAPTURE_PREVIEW = "showing_capture_preview"
    SHOWING_CAPTURED_FRAME = "showing_captured_frame"
    SUBMITTING = "submitting"
    SHOWING_RESULT = "showing_result"
    SHOWING_ERROR = "showing_error"
    TERMINATED = "terminated"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle reported by a detector, in pixel units."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError("BoundingBox dimensions must be non-negative.")

    @property
    def corners(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """Return ``((x1, y1), (x2, y2))`` for drawing overlays."""
        return (self.x, self.y), (self.x + self.width, self.y + self.height)


class ImageHandle:
    """Opaque reference to an encoded image payload with explicit release.

    Handles are created by the transfer adapter and owned by whoever stores
    them afterwards (the orchestrator context). ``release`` drops the payload;
    reading a released handle raises ``ValueError``.
    """

    def __init__(self, data: bytes, content_type: str = "application/octet-stream", *, source: str = "") -> None:
        self._data: Optional[bytes] = bytes(data)
        self.content_type = content_type
        self.source = source

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise ValueError(f"ImageHandle {self.source or id(self)} was already released.")
        return self._data

    @property
    def size(self) -> int:
        return 0 if self._data is None else len(self._data)

    def decode(self) -> Optional[np.ndarray]:
        """Decode the payload into a BGR image, or ``None`` when undecodable."""
        import cv2

        buffer = np.frombuffer(self.data, dtype=np.uint8)
        if buffer.size == 0:
            return None
        return cv2.imdecode(buffer, cv2.IMREAD_COLOR)

    def release(self) -> bool:
        """Drop the payload. Returns ``False`` if the handle was already released."""
        if self._data is None:
            return False
        self._data = None
        return True

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size}B"
        return f"ImageHandle({self.source or '?'}, {self.content_type}, {state})"


class FrameBuffer:
    """Mutable slot holding one captured frame, independent of the live stream."""

    def __init__(self) -> None:
        self.image: Optional[np.ndarray] = None

    @property
    def is_empty(self) -> bool:
        return self.image is None

    @property
    def width(self) -> int:
        return 0 if self.image is None else int(self.image.shape[1])

    @property
    def height(self) -> int:
        return 0 if self.image is None else int(self.image.shape[0])

    def store(self, image: np.ndarray) -> None:
        self.image = np.array(image, copy=True)

    def clear(self) -> None:
        self.image = None


@dataclass
class ErrorCounts:
    """Counters for the two independent submission error budgets."""

    transport_errors: int = 0
    detection_errors: int = 0


@dataclass
class OrchestratorContext:
    """Mutable workflow data; only transition handlers write to it."""

    device_available: bool = False
    api_healthy: bool = True
    error_counts: ErrorCounts = field(default_factory=ErrorCounts)
    catalog_items: List[ImageHandle] = field(default_factory=list)
    selected_indexes: List[int] = field(default_factory=list)
    result_handle: Optional[ImageHandle] = None
    captured_frame: FrameBuffer = field(default_factory=FrameBuffer)
    error_message: Optional[str] = None
    faces_on_cam: int = 0
    pending_request: int = 0
    """Id of the submission whose completion is awaited; 0 when none is."""
    request_seq: int = 0

    @property
    def max_picks(self) -> int:
        """One pick on the device-available path, two on the no-device path."""
        return 1 if self.device_available else 2

    def next_request_id(self) -> int:
        self.request_seq += 1
        self.pending_request = self.request_seq
        return self.pending_request


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Read-only view-state handed to presenters after every transition."""

    state: WorkflowState
    device_available: bool
    api_healthy: bool
    catalog_items: Tuple[ImageHandle, ...]
    selected_indexes: Tuple[int, ...]
    result_handle: Optional[ImageHandle]
    error_message: Optional[str]
    faces_on_cam: int = 0
    captured_frame: Any = None

    @classmethod
    def from_context(cls, state: WorkflowState, ctx: OrchestratorContext) -> "WorkflowSnapshot":
        return cls(
            state=state,
            device_available=ctx.device_available,
            api_healthy=ctx.api_healthy,
            catalog_items=tuple(ctx.catalog_items),
            selected_indexes=tuple(ctx.selected_indexes),
            result_handle=ctx.result_handle,
            error_message=ctx.error_message,
            faces_on_cam=ctx.faces_on_cam,
            captured_frame=ctx.captured_frame.image,
        )


__all__ = [
    "BoundingBox",
    "ErrorCounts",
    "FrameBuffer",
    "ImageHandle",
    "OrchestratorContext",
    "WorkflowSnapshot",
    "WorkflowState",
]
