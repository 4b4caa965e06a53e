from __future__ import annotations

import threading

from voicenotes.core.scheduler import TaskScheduler


def test_task_fires_once_and_is_removed() -> None:
    scheduler = TaskScheduler()
    fired = threading.Event()
    scheduler.schedule("once", 0.01, fired.set)

    assert fired.wait(1.0)
    assert not scheduler.is_scheduled("once")


def test_cancelled_task_never_fires() -> None:
    scheduler = TaskScheduler()
    calls = []
    scheduler.schedule("later", 0.05, lambda: calls.append("later"))

    assert scheduler.cancel("later")
    assert not scheduler.cancel("later")
    threading.Event().wait(0.15)
    assert calls == []


def test_rescheduling_replaces_pending_task() -> None:
    scheduler = TaskScheduler()
    calls = []
    done = threading.Event()
    scheduler.schedule("task", 0.05, lambda: calls.append("first"))
    scheduler.schedule("task", 0.01, lambda: (calls.append("second"), done.set()))

    assert done.wait(1.0)
    threading.Event().wait(0.1)
    assert calls == ["second"]


def test_repeating_task_runs_until_cancelled() -> None:
    scheduler = TaskScheduler()
    ticks = []
    enough = threading.Event()

    def tick() -> None:
        ticks.append(1)
        if len(ticks) >= 3:
            enough.set()

    scheduler.schedule_repeating("tick", 0.01, tick)
    assert enough.wait(1.0)
    scheduler.cancel_all()
    count = len(ticks)
    threading.Event().wait(0.05)

    assert scheduler.pending() == []
    assert len(ticks) <= count + 1


def test_callback_errors_are_contained() -> None:
    scheduler = TaskScheduler()
    after = threading.Event()

    def broken() -> None:
        raise RuntimeError("boom")

    scheduler.schedule("broken", 0.01, broken)
    scheduler.schedule("after", 0.03, after.set)
    assert after.wait(1.0)
