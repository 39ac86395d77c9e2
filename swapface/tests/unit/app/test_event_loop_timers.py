from __future__ import annotations

import threading
from typing import List

from swapface.app.event_loop import EventLoop


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_timers_fire_in_due_order() -> None:
    clock = _Clock()
    loop = EventLoop(clock=clock)
    fired: List[str] = []
    loop.after(200, lambda: fired.append("late"))
    loop.after(100, lambda: fired.append("early"))

    assert loop.run_pending() == 0
    clock.now = 0.25
    loop.run_pending()

    assert fired == ["early", "late"]
    assert loop.pending_timers() == 0


def test_cancelled_timer_never_fires() -> None:
    clock = _Clock()
    loop = EventLoop(clock=clock)
    fired: List[str] = []
    token = loop.after(10, lambda: fired.append("x"))

    loop.after_cancel(token)
    loop.after_cancel("after#999")
    clock.now = 1.0
    loop.run_pending()

    assert fired == []


def test_callback_cancelling_a_due_timer_in_same_batch() -> None:
    clock = _Clock()
    loop = EventLoop(clock=clock)
    fired: List[str] = []
    victim = loop.after(20, lambda: fired.append("victim"))
    loop.after(10, lambda: loop.after_cancel(victim))

    clock.now = 1.0
    loop.run_pending()

    assert fired == []


def test_posted_callbacks_run_before_timers_and_errors_are_contained() -> None:
    clock = _Clock()
    loop = EventLoop(clock=clock)
    fired: List[str] = []
    loop.after(0, lambda: fired.append("timer"))

    def _boom() -> None:
        raise RuntimeError("boom")

    loop.post(_boom)
    loop.post(lambda: fired.append("posted"))
    loop.run_pending()

    assert fired == ["posted", "timer"]


def test_run_processes_posts_from_other_threads_until_stopped() -> None:
    loop = EventLoop()
    seen: List[str] = []

    def _worker() -> None:
        loop.post(lambda: seen.append(threading.current_thread().name))
        loop.post(loop.stop)

    runner = threading.Thread(target=loop.run, name="owner")
    runner.start()
    threading.Thread(target=_worker, name="worker").start()
    runner.join(timeout=5)

    assert not runner.is_alive()
    assert seen == ["owner"]
    assert not loop.running
