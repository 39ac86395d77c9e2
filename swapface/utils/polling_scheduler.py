"""Timer helpers on top of a Tk-style ``after``/``after_cancel`` scheduler.

The orchestrator and the capture loop never sleep; they hand callables to a
host scheduler (``EventLoop`` or a Tk root) and keep the returned tokens here
so pending timers can be canceled safely on pause, reset, or teardown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from swapface.domain.ports import CancelFn, ScheduleFn


@dataclass
class TimerHandle:
    """Timer token associated with a single named channel.

    Attributes:
        name: Channel key (for example ``detection_result`` or ``error``).
        token: Scheduler token returned by the host scheduler implementation.
    """
    name: str
    token: object


class PollingScheduler:
    """Manage named one-shot timers using a UI scheduler (for example Tk)."""

    def __init__(self, schedule: ScheduleFn, cancel: CancelFn) -> None:
        """Store schedule/cancel functions and initialize handle registry.

        Args:
            schedule: Function compatible with ``after(delay_ms, callback)``.
            cancel: Function compatible with ``after_cancel(token)``.
        """
        self._log = logging.getLogger(__name__)
        self._schedule = schedule
        self._cancel = cancel
        self._handles: Dict[str, TimerHandle] = {}

    def schedule(self, name: str, delay_ms: int, callback: Callable[[], None]) -> None:
        """Schedule or reschedule the timer for a channel.

        The handle is dropped before ``callback`` runs, so the callback may
        schedule the same channel again.
        """
        delay = max(0, int(delay_ms))
        self.cancel(name)
        handle = TimerHandle(name=name, token=None)

        def _fire() -> None:
            if self._handles.get(name) is handle:
                del self._handles[name]
            callback()

        handle.token = self._schedule(delay, _fire)
        self._handles[name] = handle

    def cancel(self, name: str) -> None:
        """Cancel a pending timer for a channel; unknown channels are ignored."""
        handle = self._handles.pop(name, None)
        if not handle:
            return
        try:
            self._cancel(handle.token)
        except Exception as exc:
            self._log.debug("Cancel of timer %s failed: %s", name, exc)

    def cancel_all(self) -> None:
        """Cancel all pending timers across all channels."""
        for name in list(self._handles.keys()):
            self.cancel(name)

    def is_pending(self, name: str) -> bool:
        return name in self._handles

    def handle_for(self, name: str) -> Optional[TimerHandle]:
        """Return the current handle for a channel, if scheduled."""
        return self._handles.get(name)


class RepeatingTask:
    """Self-rescheduling task with explicit start/stop.

    ``step`` runs once per cycle and returns the delay in milliseconds before
    the next cycle, or ``None`` to halt. At most one cycle is ever pending:
    ``start`` replaces any scheduled cycle instead of adding a second one.
    """

    def __init__(self, scheduler: PollingScheduler, name: str, step: Callable[[], Optional[int]]) -> None:
        self._scheduler = scheduler
        self._name = name
        self._step = step
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self, delay_ms: int = 0) -> None:
        self._running = True
        self._scheduler.schedule(self._name, delay_ms, self._run_once)

    def stop(self) -> None:
        self._running = False
        self._scheduler.cancel(self._name)

    def _run_once(self) -> None:
        if not self._running:
            return
        next_delay = self._step()
        if next_delay is None or not self._running:
            self._running = False
            return
        self._scheduler.schedule(self._name, next_delay, self._run_once)


__all__ = ["PollingScheduler", "RepeatingTask", "TimerHandle"]
