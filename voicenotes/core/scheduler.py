"""Named, cancellable delayed tasks owned by a session engine."""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

from ..logging import get_logger

LOGGER = get_logger(__name__)

# Task names used by the engine and its components.
WATCHDOG_TASK = "no-speech-watchdog"
RETRY_TASK = "recognition-retry"
PAUSE_CHECK_TASK = "pause-punctuation"
HEALTH_TASK = "microphone-health"


class _Task:
    def __init__(self, name: str, interval: float, callback: Callable[[], None], repeat: bool) -> None:
        self.name = name
        self.interval = interval
        self.callback = callback
        self.repeat = repeat
        self.timer: Optional[threading.Timer] = None


class TaskScheduler:
    """Runs callbacks after a delay on :class:`threading.Timer` threads.

    Scheduling a task under a name that is already pending replaces it. A timer
    that fires after its task was cancelled or replaced does nothing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: Dict[str, _Task] = {}

    def schedule(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        self._arm(_Task(name, delay, callback, repeat=False))

    def schedule_repeating(self, name: str, interval: float, callback: Callable[[], None]) -> None:
        self._arm(_Task(name, interval, callback, repeat=True))

    def cancel(self, name: str) -> bool:
        with self._lock:
            task = self._tasks.pop(name, None)
        if task is None:
            return False
        if task.timer is not None:
            task.timer.cancel()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            if task.timer is not None:
                task.timer.cancel()

    def is_scheduled(self, name: str) -> bool:
        with self._lock:
            return name in self._tasks

    def pending(self) -> List[str]:
        with self._lock:
            return sorted(self._tasks)

    def _arm(self, task: _Task, rearm: bool = False) -> None:
        timer = threading.Timer(task.interval, self._fire, args=(task,))
        timer.daemon = True
        with self._lock:
            if rearm and self._tasks.get(task.name) is not task:
                return
            previous = self._tasks.get(task.name)
            stale = previous.timer if previous is not None and previous is not task else None
            task.timer = timer
            self._tasks[task.name] = task
        if stale is not None:
            stale.cancel()
        timer.start()

    def _fire(self, task: _Task) -> None:
        with self._lock:
            if self._tasks.get(task.name) is not task:
                return
            if not task.repeat:
                del self._tasks[task.name]
        try:
            task.callback()
        except Exception:
            LOGGER.exception("Scheduled task %s raised an exception", task.name)
        if task.repeat:
            self._arm(task, rearm=True)


__all__ = [
    "HEALTH_TASK",
    "PAUSE_CHECK_TASK",
    "RETRY_TASK",
    "TaskScheduler",
    "WATCHDOG_TASK",
]
