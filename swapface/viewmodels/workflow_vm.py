from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..domain.entities import WorkflowSnapshot, WorkflowState

_HEADLINES: Dict[WorkflowState, str] = {
    WorkflowState.DETECTING_DEVICE: "Looking for a camera...",
    WorkflowState.LOADING_CATALOG: "Loading images...",
    WorkflowState.SUBMITTING: "Swapping faces, please wait...",
    WorkflowState.SHOWING_RESULT: "Here is your result.",
    WorkflowState.SHOWING_CAPTURED_FRAME: "Keep this photo?",
}


@dataclass
class WorkflowVM:
    """Turns workflow snapshots into display-ready state for a presenter."""

    on_update: Optional[Callable[[Dict[str, Any]], None]] = None
    require_single_face: bool = True

    last_snapshot: Optional[WorkflowSnapshot] = None
    view: Dict[str, Any] = field(default_factory=dict)

    def apply_snapshot(self, snapshot: WorkflowSnapshot) -> Dict[str, Any]:
        """Consume the latest snapshot and fan the derived view out."""
        if not isinstance(snapshot, WorkflowSnapshot):
            raise TypeError("WorkflowVM.apply_snapshot requires a WorkflowSnapshot.")
        self.last_snapshot = snapshot
        self.view = {
            "state": snapshot.state.value,
            "headline": self.headline(snapshot),
            "catalog_size": len(snapshot.catalog_items),
            "selected": list(snapshot.selected_indexes),
            "selectable": self.selectable_indexes(snapshot),
            "can_capture": self.can_capture(snapshot),
            "can_confirm": snapshot.state is WorkflowState.SHOWING_CAPTURED_FRAME,
            "can_restart": snapshot.state is WorkflowState.SHOWING_RESULT,
            "can_acknowledge": snapshot.state is WorkflowState.SHOWING_ERROR,
            "has_result": snapshot.result_handle is not None and not snapshot.result_handle.released,
            "error": snapshot.error_message or "",
            "terminal": snapshot.state is WorkflowState.TERMINATED,
        }
        if self.on_update:
            self.on_update(self.view)
        return self.view

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    def headline(self, snapshot: WorkflowSnapshot) -> str:
        state = snapshot.state
        if state is WorkflowState.SHOWING_DETECTION_RESULT:
            return "Camera detected." if snapshot.device_available else "No camera detected."
        if state is WorkflowState.AWAITING_SELECTION:
            if snapshot.device_available:
                return "Pick the face you want to become."
            remaining = 2 - len(snapshot.selected_indexes)
            return f"Pick {remaining} image{'s' if remaining != 1 else ''} to swap."
        if state is WorkflowState.SHOWING_CAPTURE_PREVIEW:
            return self._faces_label(snapshot.faces_on_cam)
        if state in (WorkflowState.SHOWING_ERROR, WorkflowState.TERMINATED):
            return snapshot.error_message or "An error occurred, please wait."
        return _HEADLINES.get(state, "")

    def selectable_indexes(self, snapshot: WorkflowSnapshot) -> List[int]:
        if snapshot.state is not WorkflowState.AWAITING_SELECTION:
            return []
        limit = 1 if snapshot.device_available else 2
        if len(snapshot.selected_indexes) >= limit:
            return []
        picked = set(snapshot.selected_indexes)
        return [i for i in range(1, len(snapshot.catalog_items) + 1) if i not in picked]

    def can_capture(self, snapshot: WorkflowSnapshot) -> bool:
        if snapshot.state is not WorkflowState.SHOWING_CAPTURE_PREVIEW:
            return False
        if self.require_single_face:
            return snapshot.faces_on_cam == 1
        return True

    @staticmethod
    def _faces_label(count: int) -> str:
        if count == 0:
            return "No face in view."
        if count == 1:
            return "Ready, take your photo."
        return f"{count} faces in view, only one person please."


__all__ = ["WorkflowVM"]
