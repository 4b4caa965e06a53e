"""Timesliced recorder over a shared media stream."""

from __future__ import annotations

import threading
from typing import List

import numpy as np

from ...logging import get_logger
from .base import AudioRecorder, MediaStream

LOGGER = get_logger(__name__)


class MediaStreamRecorder(AudioRecorder):
    """Groups incoming frames into chunks of ``timeslice_ms`` worth of samples.

    Chunk boundaries follow the audio clock (sample counts), not wall time, so
    a chunk always holds the same amount of audio.
    """

    def __init__(self, media: MediaStream) -> None:
        super().__init__()
        self.info = media.info
        self._media = media
        self._lock = threading.Lock()
        self._pending: List[np.ndarray] = []
        self._pending_frames = 0
        self._chunk_frames = 0
        self._unsubscribe = None
        self.state = "inactive"

    def start(self, timeslice_ms: int) -> None:
        if self.state != "inactive":
            return
        self._chunk_frames = max(1, int(self.info.sample_rate * timeslice_ms / 1000))
        self._unsubscribe = self._media.subscribe(self._on_frames)
        self.state = "recording"
        LOGGER.debug("Recorder started with %d frames per chunk", self._chunk_frames)

    def pause(self) -> None:
        if self.state == "recording":
            self.state = "paused"

    def resume(self) -> None:
        if self.state == "paused":
            self.state = "recording"

    def stop(self) -> None:
        if self.state == "inactive":
            return
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.state = "inactive"
        with self._lock:
            remainder = self._take_pending()
        if remainder is not None:
            self.emit_chunk(remainder)

    def _on_frames(self, frames: np.ndarray) -> None:
        chunk = None
        with self._lock:
            if self.state != "recording":
                return
            self._pending.append(frames)
            self._pending_frames += len(frames)
            if self._pending_frames >= self._chunk_frames:
                chunk = self._take_pending()
        if chunk is not None:
            self.emit_chunk(chunk)

    def _take_pending(self):
        if not self._pending:
            return None
        chunk = np.concatenate(self._pending, axis=0)
        self._pending = []
        self._pending_frames = 0
        return chunk


__all__ = ["MediaStreamRecorder"]
