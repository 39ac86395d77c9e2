from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

import cv2
import numpy as np

from swapface.domain.entities import ImageHandle
from swapface.domain.ports import CatalogCallback, DispatchFn, SubmitCallback, TransferPort

from .api_errors import TransferNotArmedError


def _placeholder_image(index: int, size: int = 64) -> bytes:
    """Small solid-color PNG so offline catalogs decode like real ones."""
    shade = (index * 40) % 256
    image = np.full((size, size, 3), (shade, 255 - shade, 128), dtype=np.uint8)
    ok, buffer = cv2.imencode(".png", image)
    return buffer.tobytes() if ok else b""


@dataclass
class PendingCall:
    """A recorded operation awaiting manual completion."""

    kind: str
    args: Tuple[Any, ...]
    on_done: Callable[..., None]
    generation: int


@dataclass
class TransferMock(TransferPort):
    """Offline substitute for ``TransferManager`` with deterministic responses.

    With ``auto_complete`` every call completes immediately through
    ``dispatch``; otherwise calls queue up in ``pending`` until a test helper
    completes them. Cancellation follows the real adapter: completions of
    calls issued before ``cancel`` are dropped.
    """

    catalog_size: int = 6
    auto_complete: bool = False
    dispatch: Optional[DispatchFn] = None
    pending: List[PendingCall] = field(default_factory=list)
    calls: List[Tuple[Any, ...]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._generation = 0
        self._armed = True

    # ---------- TransferPort ----------

    def fetch_catalog(self, on_done: CatalogCallback) -> None:
        self._record("fetch_catalog", (), on_done)
        if self.auto_complete:
            self.complete_catalog()

    def submit_by_frame(self, frame: np.ndarray, partner_index: int, on_done: SubmitCallback) -> None:
        self._record("submit_by_frame", (frame.shape, partner_index), on_done)
        if self.auto_complete:
            self.complete_submission(result=cv2.imencode(".jpg", np.ascontiguousarray(frame[:, ::-1]))[1].tobytes())

    def submit_by_index_pair(self, index1: int, index2: int, on_done: SubmitCallback) -> None:
        self._record("submit_by_index_pair", (index1, index2), on_done)
        if self.auto_complete:
            self.complete_submission(result=_placeholder_image(index1 * 10 + index2))

    def cancel(self) -> None:
        self.calls.append(("cancel",))
        self._armed = False
        self._generation += 1

    def rearm(self) -> None:
        self.calls.append(("rearm",))
        self._armed = True

    # ---------- Test helpers ----------

    @property
    def armed(self) -> bool:
        return self._armed

    def call_names(self) -> List[str]:
        return [entry[0] for entry in self.calls]

    def complete_catalog(self, count: Optional[int] = None, *, fail: bool = False) -> None:
        call = self._take("fetch_catalog")
        if call is None:
            return
        if fail:
            self._deliver(call, None)
            return
        total = self.catalog_size if count is None else count
        items = [
            ImageHandle(_placeholder_image(i), "image/png", source=f"catalog#{i}")
            for i in range(1, total + 1)
        ]
        self._deliver(call, items)

    def complete_submission(self, *, result: Optional[bytes] = None, error: Optional[Exception] = None) -> None:
        call = self._take("submit_by_frame", "submit_by_index_pair")
        if call is None:
            return
        if error is not None:
            self._deliver(call, None, error)
            return
        handle = ImageHandle(result or _placeholder_image(99), "image/jpeg", source="result")
        self._deliver(call, handle, None)

    # ---------- Internal helpers ----------

    def _record(self, kind: str, args: Tuple[Any, ...], on_done: Callable[..., None]) -> None:
        if not self._armed:
            raise TransferNotArmedError(f"{kind} issued after cancel() without rearm()")
        self.calls.append((kind,) + args)
        self.pending.append(PendingCall(kind, args, on_done, self._generation))

    def _take(self, *kinds: str) -> Optional[PendingCall]:
        for call in self.pending:
            if call.kind in kinds:
                self.pending.remove(call)
                return call
        return None

    def _deliver(self, call: PendingCall, *result: Any) -> None:
        if call.generation != self._generation:
            for value in result:
                for handle in value if isinstance(value, list) else [value]:
                    if isinstance(handle, ImageHandle):
                        handle.release()
            return

        def _run() -> None:
            call.on_done(*result)

        if self.dispatch is None:
            _run()
        else:
            self.dispatch(_run)


__all__ = ["PendingCall", "TransferMock"]
