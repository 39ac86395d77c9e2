"""Transition table for the face-swap workflow.

Every handler takes the current context plus one event, mutates the context,
and returns the next state together with the side effects the orchestrator
must carry out. Handlers never call adapters themselves, so each row of the
table can be exercised without a camera or a network.

Unknown ``(state, event)`` pairs are ignored: ``transition`` returns the
current state, no effects and ``handled=False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple, Type

from swapface.domain.entities import ImageHandle, OrchestratorContext, WorkflowState

from .error_mapping import MSG_API_UNREACHABLE, classify_failure

if TYPE_CHECKING:  # pragma: no cover - type checking helper
    from swapface.viewmodels.settings_vm import SettingsConfig

S = WorkflowState

TIMER_DEVICE_PROBE = "device-probe"
TIMER_DETECTION_RESULT = "detection-result"
TIMER_ERROR_DISMISS = "error-dismiss"


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------
class Event:
    """Base class for everything the orchestrator reacts to."""


@dataclass(frozen=True)
class DeviceProbeDue(Event):
    pass


@dataclass(frozen=True)
class DeviceDetected(Event):
    available: bool


@dataclass(frozen=True)
class DetectionResultElapsed(Event):
    pass


@dataclass(frozen=True)
class CatalogLoaded(Event):
    items: Optional[Tuple[ImageHandle, ...]]


@dataclass(frozen=True)
class ImagePicked(Event):
    index: int
    """1-based catalog index."""


@dataclass(frozen=True)
class FramesProcessed(Event):
    count: int


@dataclass(frozen=True)
class CaptureRequested(Event):
    pass


@dataclass(frozen=True)
class FrameCaptured(Event):
    ok: bool


@dataclass(frozen=True)
class CaptureConfirmed(Event):
    pass


@dataclass(frozen=True)
class CaptureCancelled(Event):
    pass


@dataclass(frozen=True)
class SelectionRemoved(Event):
    position: int
    """0-based position inside ``selected_indexes``."""


@dataclass(frozen=True)
class SubmissionSucceeded(Event):
    request_id: int
    handle: ImageHandle


@dataclass(frozen=True)
class SubmissionFailed(Event):
    request_id: int
    error: Optional[BaseException]


@dataclass(frozen=True)
class ErrorDismissElapsed(Event):
    pass


@dataclass(frozen=True)
class ErrorAcknowledged(Event):
    pass


@dataclass(frozen=True)
class RestartRequested(Event):
    pass


# ----------------------------------------------------------------------
# Effects
# ----------------------------------------------------------------------
class Effect:
    """Base class for commands issued to collaborators."""


@dataclass(frozen=True)
class DetectDevice(Effect):
    pass


@dataclass(frozen=True)
class FetchCatalog(Effect):
    pass


@dataclass(frozen=True)
class SubmitByFrame(Effect):
    request_id: int
    partner_index: int


@dataclass(frozen=True)
class SubmitByIndexPair(Effect):
    request_id: int
    index1: int
    index2: int


@dataclass(frozen=True)
class CancelTransfer(Effect):
    """Abort in-flight calls and rearm for the next one."""


@dataclass(frozen=True)
class StartCapture(Effect):
    """Start the capture loop on first use, resume it afterwards."""


@dataclass(frozen=True)
class PauseCapture(Effect):
    pass


@dataclass(frozen=True)
class StopCapture(Effect):
    pass


@dataclass(frozen=True)
class CaptureFrame(Effect):
    pass


@dataclass(frozen=True)
class ScheduleTimer(Effect):
    name: str
    delay_ms: int
    event: Event


@dataclass(frozen=True)
class CancelTimer(Effect):
    name: str


@dataclass(frozen=True)
class ReleaseHandle(Effect):
    handle: ImageHandle


@dataclass(frozen=True)
class Transition:
    next_state: WorkflowState
    effects: Tuple[Effect, ...] = ()
    handled: bool = True


Handler = Callable[[OrchestratorContext, Event, "SettingsConfig"], Transition]


def _stay(state: WorkflowState, *effects: Effect) -> Transition:
    return Transition(state, tuple(effects))


def _ignored(state: WorkflowState) -> Transition:
    return Transition(state, (), handled=False)


def _reset(ctx: OrchestratorContext) -> List[Effect]:
    """Return to a clean selection screen; the result handle is released."""
    effects: List[Effect] = []
    if ctx.result_handle is not None:
        effects.append(ReleaseHandle(ctx.result_handle))
        ctx.result_handle = None
    ctx.selected_indexes.clear()
    ctx.captured_frame.clear()
    ctx.error_message = None
    ctx.faces_on_cam = 0
    ctx.pending_request = 0
    return effects


# ----------------------------------------------------------------------
# Startup
# ----------------------------------------------------------------------
def _on_probe_due(ctx, event, cfg) -> Transition:
    return _stay(S.DETECTING_DEVICE, DetectDevice())


def _on_device_detected(ctx, event: DeviceDetected, cfg) -> Transition:
    ctx.device_available = bool(event.available)
    return Transition(
        S.SHOWING_DETECTION_RESULT,
        (ScheduleTimer(TIMER_DETECTION_RESULT, cfg.detection_result_ms, DetectionResultElapsed()),),
    )


def _on_detection_result_elapsed(ctx, event, cfg) -> Transition:
    return Transition(S.LOADING_CATALOG, (FetchCatalog(),))


def _on_catalog_loaded(ctx, event: CatalogLoaded, cfg) -> Transition:
    if event.items is None:
        ctx.api_healthy = False
        ctx.error_message = MSG_API_UNREACHABLE
        return Transition(S.TERMINATED, (StopCapture(),))
    ctx.catalog_items = list(event.items)
    return Transition(S.AWAITING_SELECTION)


# ----------------------------------------------------------------------
# Selection
# ----------------------------------------------------------------------
def _on_image_picked(ctx, event: ImagePicked, cfg) -> Transition:
    index = event.index
    if not 1 <= index <= len(ctx.catalog_items):
        return _ignored(S.AWAITING_SELECTION)
    if index in ctx.selected_indexes or len(ctx.selected_indexes) >= ctx.max_picks:
        return _ignored(S.AWAITING_SELECTION)
    ctx.selected_indexes.append(index)

    if ctx.device_available:
        ctx.faces_on_cam = 0
        ctx.captured_frame.clear()
        return Transition(S.SHOWING_CAPTURE_PREVIEW, (StartCapture(),))
    if len(ctx.selected_indexes) == 2:
        first, second = ctx.selected_indexes
        request_id = ctx.next_request_id()
        return Transition(S.SUBMITTING, (SubmitByIndexPair(request_id, second, first),))
    return _stay(S.AWAITING_SELECTION)


def _remove_pick(ctx: OrchestratorContext, position: int) -> bool:
    if not 0 <= position < len(ctx.selected_indexes):
        return False
    del ctx.selected_indexes[position]
    return True


def _on_unpick_idle(ctx, event: SelectionRemoved, cfg) -> Transition:
    if not _remove_pick(ctx, event.position):
        return _ignored(S.AWAITING_SELECTION)
    return _stay(S.AWAITING_SELECTION)


def _unpick_from(state: WorkflowState) -> Handler:
    def _handler(ctx, event: SelectionRemoved, cfg) -> Transition:
        if not _remove_pick(ctx, event.position):
            return _ignored(state)
        effects: List[Effect] = []
        if state is S.SUBMITTING:
            ctx.pending_request = 0
            effects.append(CancelTransfer())
            if ctx.device_available:
                effects.append(PauseCapture())
        else:
            effects.append(PauseCapture())
        ctx.captured_frame.clear()
        ctx.faces_on_cam = 0
        return Transition(S.AWAITING_SELECTION, tuple(effects))

    return _handler


# ----------------------------------------------------------------------
# Capture
# ----------------------------------------------------------------------
def _on_frames_processed(state: WorkflowState) -> Handler:
    def _handler(ctx, event: FramesProcessed, cfg) -> Transition:
        ctx.faces_on_cam = max(0, int(event.count))
        return _stay(state)

    return _handler


def _on_capture_requested(ctx, event, cfg) -> Transition:
    if cfg.require_single_face and ctx.faces_on_cam != 1:
        return _ignored(S.SHOWING_CAPTURE_PREVIEW)
    return _stay(S.SHOWING_CAPTURE_PREVIEW, CaptureFrame())


def _on_frame_captured(ctx, event: FrameCaptured, cfg) -> Transition:
    if not event.ok or ctx.captured_frame.is_empty:
        ctx.captured_frame.clear()
        return _stay(S.SHOWING_CAPTURE_PREVIEW)
    return Transition(S.SHOWING_CAPTURED_FRAME)


def _on_capture_confirmed(ctx, event, cfg) -> Transition:
    request_id = ctx.next_request_id()
    return Transition(
        S.SUBMITTING,
        (PauseCapture(), SubmitByFrame(request_id, ctx.selected_indexes[0])),
    )


def _on_capture_cancelled(ctx, event, cfg) -> Transition:
    ctx.captured_frame.clear()
    return Transition(S.SHOWING_CAPTURE_PREVIEW)


# ----------------------------------------------------------------------
# Submission outcome
# ----------------------------------------------------------------------
def _on_submission_succeeded(ctx, event: SubmissionSucceeded, cfg) -> Transition:
    if event.request_id != ctx.pending_request:
        return _ignored(S.SUBMITTING)
    ctx.pending_request = 0
    ctx.error_counts.transport_errors = 0
    effects: List[Effect] = []
    if ctx.result_handle is not None:
        effects.append(ReleaseHandle(ctx.result_handle))
    ctx.result_handle = event.handle
    ctx.captured_frame.clear()
    return Transition(S.SHOWING_RESULT, tuple(effects))


def _on_submission_failed(ctx, event: SubmissionFailed, cfg) -> Transition:
    if event.request_id != ctx.pending_request:
        return _ignored(S.SUBMITTING)
    ctx.pending_request = 0
    outcome = classify_failure(
        event.error,
        ctx.error_counts,
        max_transport_errors=cfg.max_transport_errors,
        max_detection_errors=cfg.max_detection_errors,
        markers=cfg.detection_error_markers,
    )
    ctx.error_message = outcome.message
    ctx.captured_frame.clear()
    if outcome.terminal:
        ctx.api_healthy = False
        return Transition(S.TERMINATED, (StopCapture(),))
    effects: List[Effect] = []
    if outcome.device_lost:
        ctx.device_available = False
        effects.append(StopCapture())
    effects.append(ScheduleTimer(TIMER_ERROR_DISMISS, cfg.error_display_ms, ErrorDismissElapsed()))
    return Transition(S.SHOWING_ERROR, tuple(effects))


def _on_error_dismissed(ctx, event, cfg) -> Transition:
    return Transition(S.AWAITING_SELECTION, tuple(_reset(ctx)))


def _on_error_acknowledged(ctx, event, cfg) -> Transition:
    effects: List[Effect] = [CancelTimer(TIMER_ERROR_DISMISS)]
    effects.extend(_reset(ctx))
    return Transition(S.AWAITING_SELECTION, tuple(effects))


def _on_restart(ctx, event, cfg) -> Transition:
    return Transition(S.AWAITING_SELECTION, tuple(_reset(ctx)))


TRANSITIONS: Dict[Tuple[WorkflowState, Type[Event]], Handler] = {
    (S.DETECTING_DEVICE, DeviceProbeDue): _on_probe_due,
    (S.DETECTING_DEVICE, DeviceDetected): _on_device_detected,
    (S.SHOWING_DETECTION_RESULT, DetectionResultElapsed): _on_detection_result_elapsed,
    (S.LOADING_CATALOG, CatalogLoaded): _on_catalog_loaded,
    (S.AWAITING_SELECTION, ImagePicked): _on_image_picked,
    (S.AWAITING_SELECTION, SelectionRemoved): _on_unpick_idle,
    (S.SHOWING_CAPTURE_PREVIEW, FramesProcessed): _on_frames_processed(S.SHOWING_CAPTURE_PREVIEW),
    (S.SHOWING_CAPTURE_PREVIEW, CaptureRequested): _on_capture_requested,
    (S.SHOWING_CAPTURE_PREVIEW, FrameCaptured): _on_frame_captured,
    (S.SHOWING_CAPTURE_PREVIEW, SelectionRemoved): _unpick_from(S.SHOWING_CAPTURE_PREVIEW),
    (S.SHOWING_CAPTURED_FRAME, FramesProcessed): _on_frames_processed(S.SHOWING_CAPTURED_FRAME),
    (S.SHOWING_CAPTURED_FRAME, CaptureConfirmed): _on_capture_confirmed,
    (S.SHOWING_CAPTURED_FRAME, CaptureCancelled): _on_capture_cancelled,
    (S.SHOWING_CAPTURED_FRAME, SelectionRemoved): _unpick_from(S.SHOWING_CAPTURED_FRAME),
    (S.SUBMITTING, SubmissionSucceeded): _on_submission_succeeded,
    (S.SUBMITTING, SubmissionFailed): _on_submission_failed,
    (S.SUBMITTING, SelectionRemoved): _unpick_from(S.SUBMITTING),
    (S.SHOWING_ERROR, ErrorDismissElapsed): _on_error_dismissed,
    (S.SHOWING_ERROR, ErrorAcknowledged): _on_error_acknowledged,
    (S.SHOWING_RESULT, RestartRequested): _on_restart,
}


def transition(
    state: WorkflowState,
    ctx: OrchestratorContext,
    event: Event,
    cfg: "SettingsConfig",
) -> Transition:
    """Apply ``event`` in ``state``; Terminated accepts nothing."""
    if state is S.TERMINATED:
        return _ignored(state)
    handler = TRANSITIONS.get((state, type(event)))
    if handler is None:
        return _ignored(state)
    return handler(ctx, event, cfg)


def accepted_events(state: WorkflowState) -> Sequence[Type[Event]]:
    """Event types with a row for ``state``, in table order."""
    return [event_type for (row_state, event_type) in TRANSITIONS if row_state is state]


__all__ = [
    "CancelTimer",
    "CancelTransfer",
    "CaptureCancelled",
    "CaptureConfirmed",
    "CaptureFrame",
    "CaptureRequested",
    "CatalogLoaded",
    "DetectDevice",
    "DetectionResultElapsed",
    "DeviceDetected",
    "DeviceProbeDue",
    "Effect",
    "ErrorAcknowledged",
    "ErrorDismissElapsed",
    "Event",
    "FetchCatalog",
    "FrameCaptured",
    "FramesProcessed",
    "ImagePicked",
    "PauseCapture",
    "ReleaseHandle",
    "RestartRequested",
    "ScheduleTimer",
    "SelectionRemoved",
    "StartCapture",
    "StopCapture",
    "SubmissionFailed",
    "SubmissionSucceeded",
    "SubmitByFrame",
    "SubmitByIndexPair",
    "TIMER_DETECTION_RESULT",
    "TIMER_DEVICE_PROBE",
    "TIMER_ERROR_DISMISS",
    "TRANSITIONS",
    "Transition",
    "accepted_events",
    "transition",
]
