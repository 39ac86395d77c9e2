from __future__ import annotations

from typing import List, Optional

from swapface.tests.unit.helpers import ManualTimers
from swapface.utils.polling_scheduler import PollingScheduler, RepeatingTask


def _scheduler():
    timers = ManualTimers()
    return PollingScheduler(timers.after, timers.after_cancel), timers


def test_rescheduling_a_channel_replaces_the_pending_timer() -> None:
    scheduler, timers = _scheduler()
    fired: List[str] = []

    scheduler.schedule("error", 100, lambda: fired.append("first"))
    scheduler.schedule("error", 200, lambda: fired.append("second"))
    timers.advance(500)

    assert fired == ["second"]
    assert not scheduler.is_pending("error")


def test_cancel_all_clears_every_channel() -> None:
    scheduler, timers = _scheduler()
    fired: List[str] = []
    scheduler.schedule("a", 10, lambda: fired.append("a"))
    scheduler.schedule("b", 10, lambda: fired.append("b"))

    scheduler.cancel_all()
    scheduler.cancel("unknown")
    timers.advance(100)

    assert fired == []
    assert timers.pending == {}


def test_callback_may_schedule_its_own_channel() -> None:
    scheduler, timers = _scheduler()
    fired: List[int] = []

    def _tick() -> None:
        fired.append(timers.now)
        if len(fired) < 3:
            scheduler.schedule("tick", 10, _tick)

    scheduler.schedule("tick", 10, _tick)
    timers.advance(100)

    assert fired == [10, 20, 30]


def test_negative_delay_is_clamped() -> None:
    scheduler, timers = _scheduler()
    fired: List[int] = []

    scheduler.schedule("now", -50, lambda: fired.append(timers.now))
    timers.advance(0)

    assert fired == [0]


def test_repeating_task_uses_returned_delay_and_halts_on_none() -> None:
    scheduler, timers = _scheduler()
    delays: List[Optional[int]] = [5, 15, None]
    runs: List[int] = []

    def _step() -> Optional[int]:
        runs.append(timers.now)
        return delays.pop(0)

    task = RepeatingTask(scheduler, "cycle", _step)
    task.start()
    timers.advance(100)

    assert runs == [0, 5, 20]
    assert not task.running


def test_repeating_task_stop_inside_step_prevents_reschedule() -> None:
    scheduler, timers = _scheduler()
    task: RepeatingTask

    def _step() -> Optional[int]:
        task.stop()
        return 10

    task = RepeatingTask(scheduler, "cycle", _step)
    task.start()
    timers.advance(100)

    assert not task.running
    assert timers.pending == {}


def test_repeating_task_start_twice_keeps_one_cycle() -> None:
    scheduler, timers = _scheduler()
    runs: List[int] = []
    task = RepeatingTask(scheduler, "cycle", lambda: runs.append(1) or None)

    task.start(10)
    task.start(10)
    timers.advance(10)

    assert runs == [1]
