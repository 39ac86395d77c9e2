"""Adapter and use-case wiring for the face-swap runtime.

This module owns lazy construction of the transfer adapter, the face
detector, the capture loop and the workflow orchestrator from the values in
:class:`swapface.viewmodels.settings_vm.SettingsVM`.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..adapters.capture_cv import CaptureLoop
from ..adapters.detector_haar import HaarFaceDetector
from ..adapters.transfer_mock import TransferMock
from ..adapters.transfer_rest import TransferManager
from ..domain.ports import CapturePort, TransferPort
from ..usecases.workflow_orchestrator import WorkflowHooks, WorkflowOrchestrator
from ..utils.polling_scheduler import PollingScheduler
from ..viewmodels.settings_vm import SettingsVM
from .event_loop import EventLoop


class AppController:
    """Create and cache runtime adapters and the orchestrator from settings.

    Call chain:
        ``swapface.app.main`` creates one instance, calls ``ensure_ready`` and
        then drives the orchestrator through ``orchestrator`` intents. The
        event loop passed in hosts every timer and receives all network
        completions through ``post``.
    """

    def __init__(
        self,
        settings_vm: SettingsVM,
        loop: EventLoop,
        *,
        offline: bool = False,
        hooks: Optional[WorkflowHooks] = None,
    ) -> None:
        """Initialize controller with settings-backed lazy dependencies.

        Args:
            settings_vm: Validated settings used to build every adapter.
            loop: Owner-thread event loop.
            offline: Use ``TransferMock`` instead of the REST adapter.
            hooks: Presenter callbacks handed to the orchestrator.
        """
        self._log = logging.getLogger(__name__)
        self.settings_vm = settings_vm
        self.loop = loop
        self.offline = offline
        self.hooks = hooks
        self.scheduler = PollingScheduler(loop.after, loop.after_cancel)
        self._transfer: Optional[TransferPort] = None
        self._capture: Optional[CapturePort] = None
        self._orchestrator: Optional[WorkflowOrchestrator] = None

    @property
    def transfer(self) -> Optional[TransferPort]:
        return self._transfer

    @property
    def capture(self) -> Optional[CapturePort]:
        return self._capture

    @property
    def orchestrator(self) -> Optional[WorkflowOrchestrator]:
        return self._orchestrator

    def ensure_ready(self) -> WorkflowOrchestrator:
        """Build any missing dependency and return the orchestrator."""
        if self._orchestrator is not None:
            return self._orchestrator
        cfg = self.settings_vm.config

        if self._transfer is None:
            if self.offline:
                self._log.info("Offline mode: using the mock transfer adapter")
                self._transfer = TransferMock(auto_complete=True, dispatch=self.loop.post)
            else:
                self._transfer = TransferManager(
                    cfg.api_base_url,
                    request_timeout_s=cfg.request_timeout_s,
                    retries=cfg.retries,
                    dispatch=self.loop.post,
                )

        if self._capture is None:
            detector = HaarFaceDetector(cfg.classifier_url)
            self._capture = CaptureLoop(
                detector,
                self.scheduler,
                camera_index=cfg.camera_index,
                fps=cfg.fps,
                frame_width=cfg.frame_width,
                frame_height=cfg.frame_height,
                dispatch=self.loop.post,
            )

        self._orchestrator = WorkflowOrchestrator(
            self._transfer,
            self._capture,
            self.scheduler,
            cfg,
            hooks=self.hooks,
        )
        return self._orchestrator

    def shutdown(self) -> None:
        """Tear the workflow down and free the transfer worker threads."""
        if self._orchestrator is not None:
            self._orchestrator.close()
        close = getattr(self._transfer, "close", None)
        if callable(close):
            close()
        self.reset()

    def reset(self) -> None:
        """Drop cached objects so the next ``ensure_ready`` rebuilds them."""
        self._transfer = None
        self._capture = None
        self._orchestrator = None


__all__ = ["AppController"]
