from __future__ import annotations

"""Orchestrator driving the face-swap workflow without UI concerns."""

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Deque, Iterable, List, Optional

from swapface.domain.entities import ImageHandle, OrchestratorContext, WorkflowSnapshot, WorkflowState
from swapface.domain.ports import CapturePort, TransferPort
from swapface.utils.polling_scheduler import PollingScheduler

from .workflow_transitions import (
    TIMER_DEVICE_PROBE,
    CancelTimer,
    CancelTransfer,
    CaptureCancelled,
    CaptureConfirmed,
    CaptureFrame,
    CaptureRequested,
    CatalogLoaded,
    DetectDevice,
    DeviceDetected,
    DeviceProbeDue,
    Effect,
    ErrorAcknowledged,
    Event,
    FetchCatalog,
    FrameCaptured,
    FramesProcessed,
    ImagePicked,
    PauseCapture,
    ReleaseHandle,
    RestartRequested,
    ScheduleTimer,
    SelectionRemoved,
    StartCapture,
    StopCapture,
    SubmissionFailed,
    SubmissionSucceeded,
    SubmitByFrame,
    SubmitByIndexPair,
    transition,
)

if TYPE_CHECKING:  # pragma: no cover - type checking helper
    from swapface.viewmodels.settings_vm import SettingsConfig


def _noop(*_: object, **__: object) -> None:
    """Default no-op callback used for hooks."""


@dataclass
class WorkflowHooks:
    """Optional callbacks triggered on significant workflow events."""

    on_snapshot: Callable[[WorkflowSnapshot], None] = _noop
    on_error: Callable[[str], None] = _noop
    on_terminated: Callable[[WorkflowSnapshot], None] = _noop

    def __post_init__(self) -> None:
        self.on_snapshot = self.on_snapshot or _noop
        self.on_error = self.on_error or _noop
        self.on_terminated = self.on_terminated or _noop


class WorkflowOrchestrator:
    """Own the workflow state and carry out the effects of each transition.

    Events are processed one at a time on the owner thread. An event raised
    while another is being applied (a collaborator completing synchronously)
    is queued and handled right after, so transitions never interleave.
    """

    def __init__(
        self,
        transfer: TransferPort,
        capture: CapturePort,
        scheduler: PollingScheduler,
        settings: "SettingsConfig",
        hooks: Optional[WorkflowHooks] = None,
    ) -> None:
        self._log = logging.getLogger(__name__)
        self.transfer = transfer
        self.capture = capture
        self.scheduler = scheduler
        self.settings = settings
        self.hooks = hooks or WorkflowHooks()
        self.ctx = OrchestratorContext()
        self._state = WorkflowState.DETECTING_DEVICE
        self._queue: Deque[Event] = deque()
        self._dispatching = False
        self._capture_used = False
        self._camera_acquired = False
        self._started = False
        self._closed = False

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot.from_context(self._state, self.ctx)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Publish the initial snapshot and schedule device detection."""
        if self._started or self._closed:
            return
        self._started = True
        self._log.info("Workflow started; probing camera in %d ms", self.settings.detection_delay_ms)
        self._publish()
        self._apply_effects(
            [ScheduleTimer(TIMER_DEVICE_PROBE, self.settings.detection_delay_ms, DeviceProbeDue())]
        )

    def close(self) -> None:
        """Cancel timers and transfers and release every held resource; idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.clear()
        self.scheduler.cancel_all()
        try:
            self.transfer.cancel()
        except Exception as exc:
            self._log.warning("Cancelling transfers on close failed: %s", exc)
        if self._camera_acquired:
            self.capture.stop()
            self.capture.release()
        self._release_all(self.ctx.catalog_items)
        self.ctx.catalog_items = []
        if self.ctx.result_handle is not None:
            self.ctx.result_handle.release()
            self.ctx.result_handle = None
        self.ctx.captured_frame.clear()
        self.ctx.selected_indexes.clear()
        self.ctx.pending_request = 0
        self._log.info("Workflow closed in state %s", self._state)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------
    def pick_image(self, index: int) -> None:
        self.dispatch(ImagePicked(int(index)))

    def capture_frame(self) -> None:
        self.dispatch(CaptureRequested())

    def confirm_capture(self) -> None:
        self.dispatch(CaptureConfirmed())

    def cancel_capture(self) -> None:
        self.dispatch(CaptureCancelled())

    def remove_selection(self, position: int) -> None:
        self.dispatch(SelectionRemoved(int(position)))

    def acknowledge_error(self) -> None:
        self.dispatch(ErrorAcknowledged())

    def restart(self) -> None:
        self.dispatch(RestartRequested())

    # ------------------------------------------------------------------
    # Event processing
    # ------------------------------------------------------------------
    def dispatch(self, event: Event) -> None:
        """Feed one event to the state machine."""
        if self._closed:
            self._discard(event)
            return
        self._queue.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue and not self._closed:
                self._process(self._queue.popleft())
        finally:
            self._dispatching = False

    def _process(self, event: Event) -> None:
        previous = self._state
        result = transition(previous, self.ctx, event, self.settings)
        if not result.handled:
            self._log.debug("Ignored %s in state %s", type(event).__name__, previous)
            self._discard(event)
            return
        self._state = result.next_state
        if previous is not self._state:
            self._log.info("Workflow %s -> %s (%s)", previous, self._state, type(event).__name__)
        if self._state is WorkflowState.TERMINATED:
            self.scheduler.cancel_all()
        self._apply_effects(result.effects)
        snapshot = self.snapshot()
        self.hooks.on_snapshot(snapshot)
        if self._state is WorkflowState.SHOWING_ERROR and previous is not self._state:
            self.hooks.on_error(self.ctx.error_message or "")
        if self._state is WorkflowState.TERMINATED and previous is not self._state:
            self._log.error("Workflow terminated: %s", self.ctx.error_message)
            self.hooks.on_terminated(snapshot)

    def _publish(self) -> None:
        self.hooks.on_snapshot(self.snapshot())

    def _discard(self, event: Event) -> None:
        """Release image payloads carried by an event nobody will own."""
        if isinstance(event, SubmissionSucceeded):
            event.handle.release()
        elif isinstance(event, CatalogLoaded) and event.items:
            self._release_all(event.items)

    @staticmethod
    def _release_all(items: Iterable[ImageHandle]) -> None:
        for item in items:
            item.release()

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------
    def _apply_effects(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            self._apply(effect)

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, ScheduleTimer):
            event = effect.event
            self.scheduler.schedule(effect.name, effect.delay_ms, lambda: self.dispatch(event))
        elif isinstance(effect, CancelTimer):
            self.scheduler.cancel(effect.name)
        elif isinstance(effect, DetectDevice):
            self._camera_acquired = True
            self.capture.detect_device(lambda available: self.dispatch(DeviceDetected(bool(available))))
        elif isinstance(effect, FetchCatalog):
            self.transfer.fetch_catalog(self._on_catalog)
        elif isinstance(effect, SubmitByIndexPair):
            self.transfer.submit_by_index_pair(
                effect.index1, effect.index2, self._on_submission(effect.request_id)
            )
        elif isinstance(effect, SubmitByFrame):
            frame = self.ctx.captured_frame.image
            if frame is None:
                self._log.error("Confirmed capture without a frame")
                self.dispatch(SubmissionFailed(effect.request_id, ValueError("No captured frame")))
                return
            self.transfer.submit_by_frame(frame, effect.partner_index, self._on_submission(effect.request_id))
        elif isinstance(effect, CancelTransfer):
            self.transfer.cancel()
            self.transfer.rearm()
        elif isinstance(effect, StartCapture):
            self._capture_used = True
            self._camera_acquired = True
            if self.capture.started:
                self.capture.play()
            else:
                self.capture.start(self._on_camera_ready, self._on_frames)
        elif isinstance(effect, PauseCapture):
            if self._capture_used:
                self.capture.pause()
        elif isinstance(effect, StopCapture):
            if self._camera_acquired:
                self.capture.stop()
        elif isinstance(effect, CaptureFrame):
            ok = self.capture.capture(self.ctx.captured_frame)
            self.dispatch(FrameCaptured(bool(ok)))
        elif isinstance(effect, ReleaseHandle):
            effect.handle.release()
        else:
            raise TypeError(f"Unsupported effect {effect!r}")

    # ------------------------------------------------------------------
    # Collaborator callbacks
    # ------------------------------------------------------------------
    def _on_catalog(self, items: Optional[List[ImageHandle]]) -> None:
        self.dispatch(CatalogLoaded(None if items is None else tuple(items)))

    def _on_submission(self, request_id: int) -> Callable[[Optional[ImageHandle], Optional[Exception]], None]:
        def _done(result: Optional[ImageHandle], error: Optional[Exception]) -> None:
            if result is not None:
                self.dispatch(SubmissionSucceeded(request_id, result))
            else:
                self.dispatch(SubmissionFailed(request_id, error))

        return _done

    def _on_camera_ready(self) -> None:
        self._log.info("Camera ready")

    def _on_frames(self, count: int) -> None:
        self.dispatch(FramesProcessed(count))


__all__ = ["WorkflowHooks", "WorkflowOrchestrator"]
