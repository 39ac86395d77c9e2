from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from swapface.domain.entities import FrameBuffer


class ManualTimers:
    """Tk-style ``after``/``after_cancel`` host driven by ``advance``."""

    def __init__(self) -> None:
        self.now = 0
        self._seq = 0
        self.pending: Dict[int, Tuple[int, Callable[[], None]]] = {}

    def after(self, delay_ms: int, callback: Callable[[], None]) -> int:
        self._seq += 1
        self.pending[self._seq] = (self.now + int(delay_ms), callback)
        return self._seq

    def after_cancel(self, token: Any) -> None:
        self.pending.pop(token, None)

    def advance(self, ms: int) -> None:
        target = self.now + ms
        while True:
            due = [(when, token) for token, (when, _) in self.pending.items() if when <= target]
            if not due:
                break
            when, token = min(due)
            _, callback = self.pending.pop(token)
            self.now = when
            callback()
        self.now = target


class FakeCapture:
    """In-memory ``CapturePort`` recording every call."""

    def __init__(self, available: bool = True, frame: Optional[np.ndarray] = None) -> None:
        self.available = available
        self.frame = frame if frame is not None else np.zeros((4, 6, 3), dtype=np.uint8)
        self.capture_ok = True
        self.calls: List[str] = []
        self._started = False
        self._paused = False
        self._on_frame: Optional[Callable[[int], None]] = None

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def started(self) -> bool:
        return self._started

    def detect_device(self, on_done: Callable[[bool], None]) -> None:
        self.calls.append("detect_device")
        on_done(self.available)

    def start(self, on_ready: Callable[[], None], on_frame_processed: Callable[[int], None]) -> None:
        self.calls.append("start")
        self._started = True
        self._paused = False
        self._on_frame = on_frame_processed
        on_ready()

    def play(self) -> None:
        self.calls.append("play")
        self._paused = False

    def pause(self) -> None:
        self.calls.append("pause")
        self._paused = True

    def stop(self) -> None:
        self.calls.append("stop")
        self._paused = True

    def capture(self, target: FrameBuffer) -> bool:
        self.calls.append("capture")
        if self.capture_ok:
            target.store(self.frame)
        return self.capture_ok

    def release(self) -> None:
        self.calls.append("release")
        self._started = False

    def emit(self, count: int) -> None:
        assert self._on_frame is not None, "capture loop was never started"
        self._on_frame(count)


class FakeResponse(SimpleNamespace):
    """Minimal ``requests.Response`` stand-in."""

    def __init__(
        self,
        status_code: int = 200,
        *,
        content: bytes = b"",
        text: str = "",
        json_data: Any = None,
        content_type: str = "application/octet-stream",
    ) -> None:
        super().__init__(
            status_code=status_code,
            content=content,
            text=text,
            headers={"Content-Type": content_type},
        )
        self._json = json_data

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json


class FakeSession:
    """Routes requests to canned responses keyed by ``(method, url)``."""

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.routes: Dict[Tuple[str, str], Any] = dict(routes or {})
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.closed = False

    def _handle(self, method: str, url: str, kwargs: Dict[str, Any]) -> Any:
        self.calls.append((method, url, kwargs))
        outcome = self.routes[(method, url)]
        if callable(outcome):
            outcome = outcome()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def get(self, url: str, **kwargs: Any) -> Any:
        return self._handle("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self._handle("POST", url, kwargs)

    def close(self) -> None:
        self.closed = True


class InlineExecutor:
    """Executor running submitted work immediately on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self.submitted += 1
        fn(*args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        pass


class QueuedDispatch:
    """Collects completions so tests decide when they are delivered."""

    def __init__(self) -> None:
        self.queue: List[Callable[[], None]] = []

    def __call__(self, callback: Callable[[], None]) -> None:
        self.queue.append(callback)

    def drain(self) -> int:
        ran = 0
        while self.queue:
            self.queue.pop(0)()
            ran += 1
        return ran


__all__ = [
    "FakeCapture",
    "FakeResponse",
    "FakeSession",
    "InlineExecutor",
    "ManualTimers",
    "QueuedDispatch",
]
