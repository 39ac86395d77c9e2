"""Headless single-thread event loop with a Tk-compatible timer API.

``after``/``after_cancel`` mirror ``tkinter.Misc`` so the scheduler helpers
work unchanged against either host. ``post`` is the only thread-safe entry
point: worker threads hand completions to it and the owner thread runs them
in FIFO order.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

Callback = Callable[[], None]


class EventLoop:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._log = logging.getLogger(__name__)
        self._clock = clock
        self._cond = threading.Condition()
        self._timers: List[Tuple[float, int, str]] = []
        self._callbacks: Dict[str, Callback] = {}
        self._posted: Deque[Callback] = deque()
        self._seq = itertools.count(1)
        self._running = False
        self._stopping = False

    # ---- Tk-style timers (owner thread) ----
    def after(self, delay_ms: int, callback: Callback) -> str:
        seq = next(self._seq)
        token = f"after#{seq}"
        due = self._clock() + max(0, int(delay_ms)) / 1000.0
        with self._cond:
            self._callbacks[token] = callback
            heapq.heappush(self._timers, (due, seq, token))
            self._cond.notify()
        return token

    def after_cancel(self, token: object) -> None:
        with self._cond:
            self._callbacks.pop(str(token), None)

    def pending_timers(self) -> int:
        with self._cond:
            return len(self._callbacks)

    # ---- Cross-thread delivery ----
    def post(self, callback: Callback) -> None:
        with self._cond:
            self._posted.append(callback)
            self._cond.notify()

    # ---- Driving ----
    def run_pending(self) -> int:
        """Run posted callbacks and due timers once; returns how many ran."""
        ran = 0
        for token, callback in self._take_ready():
            if token is not None:
                # A callback earlier in this batch may have canceled the timer.
                with self._cond:
                    callback = self._callbacks.pop(token, None)
                if callback is None:
                    continue
            self._invoke(callback)
            ran += 1
        return ran

    def run(self) -> None:
        """Block and dispatch until ``stop`` is called."""
        with self._cond:
            self._running = True
            self._stopping = False
        try:
            while True:
                with self._cond:
                    while not self._stopping and not self._has_ready():
                        self._cond.wait(timeout=self._wait_timeout())
                    if self._stopping:
                        break
                self.run_pending()
        finally:
            with self._cond:
                self._running = False

    def stop(self) -> None:
        with self._cond:
            self._stopping = True
            self._cond.notify_all()

    @property
    def running(self) -> bool:
        return self._running

    # ---- Internals ----
    def _has_ready(self) -> bool:
        if self._posted:
            return True
        self._drop_cancelled()
        return bool(self._timers) and self._timers[0][0] <= self._clock()

    def _wait_timeout(self) -> Optional[float]:
        self._drop_cancelled()
        if not self._timers:
            return None
        return max(0.0, self._timers[0][0] - self._clock())

    def _drop_cancelled(self) -> None:
        while self._timers and self._timers[0][2] not in self._callbacks:
            heapq.heappop(self._timers)

    def _take_ready(self) -> List[Tuple[Optional[str], Callback]]:
        now = self._clock()
        with self._cond:
            ready: List[Tuple[Optional[str], Callback]] = [(None, cb) for cb in self._posted]
            self._posted.clear()
            while self._timers and self._timers[0][0] <= now:
                _, _, token = heapq.heappop(self._timers)
                callback = self._callbacks.get(token)
                if callback is not None:
                    ready.append((token, callback))
        return ready

    def _invoke(self, callback: Callback) -> None:
        try:
            callback()
        except Exception:
            self._log.exception("Event loop callback failed")


__all__ = ["EventLoop"]
