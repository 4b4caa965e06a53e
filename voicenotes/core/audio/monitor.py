"""Periodic microphone health checks."""

from __future__ import annotations

from typing import Callable, Optional

from ...logging import get_logger
from ..scheduler import HEALTH_TASK, TaskScheduler
from .base import MediaStream

LOGGER = get_logger(__name__)

SILENT_INPUT_MESSAGE = "No signal from the microphone. Check that it is connected and not muted."


class MicrophoneHealthMonitor:
    """Samples the input energy of the shared media handle while recording.

    Reports through ``on_diagnostic`` only; the session is never touched.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        interval_s: float,
        on_diagnostic: Callable[[str], None],
        silence_threshold: float = 0.0,
    ) -> None:
        self._scheduler = scheduler
        self._interval_s = interval_s
        self._on_diagnostic = on_diagnostic
        self._silence_threshold = silence_threshold
        self._media: Optional[MediaStream] = None

    @property
    def running(self) -> bool:
        return self._media is not None and self._scheduler.is_scheduled(HEALTH_TASK)

    def start(self, media: MediaStream) -> None:
        self._media = media
        self._scheduler.schedule_repeating(HEALTH_TASK, self._interval_s, self._tick)

    def stop(self) -> None:
        self._scheduler.cancel(HEALTH_TASK)
        self._media = None

    def _tick(self) -> None:
        media = self._media
        if media is None or media.closed:
            return
        try:
            level = media.level()
        except Exception:
            LOGGER.warning("Could not read microphone level", exc_info=True)
            return
        if level <= self._silence_threshold:
            LOGGER.warning("Microphone level is %.4f; input appears silent", level)
            self._on_diagnostic(SILENT_INPUT_MESSAGE)


__all__ = ["MicrophoneHealthMonitor", "SILENT_INPUT_MESSAGE"]
