"""Raw audio capture mirroring the session lifecycle."""

from __future__ import annotations

import threading
import uuid
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np

from ...logging import get_logger
from ...utils.audio import concatenate_chunks, write_wave
from .base import AudioRecorder, MediaStream, RecorderFactory

LOGGER = get_logger(__name__)


class AudioCaptureController:
    """Records the session's audio next to the recognition stream.

    Chunks arrive on the audio callback thread and are appended to the
    session-owned ``buffer`` under the controller's own lock, never the
    engine lock, since closing the media handle waits for that thread.
    Recognition restarts never touch the recorder; only the session lifecycle
    does. The controller reads from the shared media handle but never closes it.
    """

    def __init__(
        self,
        recorder_factory: RecorderFactory,
        recordings_dir: Path,
    ) -> None:
        self._recorder_factory = recorder_factory
        self.recordings_dir = Path(recordings_dir)
        self._buffer_lock = threading.Lock()
        self._recorder: Optional[AudioRecorder] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._buffer: Optional[List[np.ndarray]] = None
        self._sample_rate = 0
        self._channels = 1

    @property
    def active(self) -> bool:
        return self._recorder is not None

    def start(self, media: MediaStream, buffer: List[np.ndarray], timeslice_ms: int) -> None:
        if self._recorder is not None:
            self.cancel()
        recorder = self._recorder_factory(media)
        with self._buffer_lock:
            self._buffer = buffer
        self._sample_rate = recorder.info.sample_rate
        self._channels = recorder.info.channels
        self._unsubscribe = recorder.subscribe(self._on_chunk)
        self._recorder = recorder
        recorder.start(timeslice_ms)
        LOGGER.info(
            "Audio capture started (%s Hz, %s channel(s), %d ms chunks)",
            self._sample_rate,
            self._channels,
            timeslice_ms,
        )

    def _on_chunk(self, chunk: np.ndarray) -> None:
        with self._buffer_lock:
            if self._buffer is None:
                return
            self._buffer.append(np.asarray(chunk, dtype=np.float32))

    def pause(self) -> None:
        if self._recorder is not None:
            self._recorder.pause()

    def resume(self) -> None:
        if self._recorder is not None:
            self._recorder.resume()

    def stop(self) -> Optional[str]:
        """Stop recording and write the buffered audio; returns the file path."""

        recorder = self._recorder
        if recorder is None:
            return None
        try:
            recorder.stop()
        except Exception:
            LOGGER.warning("Recorder failed to stop cleanly", exc_info=True)
        buffer = self._release()
        if not buffer:
            LOGGER.info("No audio captured; skipping recording file")
            return None

        data = concatenate_chunks(buffer, self._channels)
        buffer.clear()
        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        path = self.recordings_dir / f"{uuid.uuid4().hex}.wav"
        write_wave(path, data, self._sample_rate)
        LOGGER.info("Saved %.1fs of audio to %s", len(data) / float(self._sample_rate or 1), path)
        return str(path)

    def cancel(self) -> None:
        recorder = self._recorder
        if recorder is None:
            return
        buffer = self._release()
        try:
            recorder.stop()
        except Exception:
            LOGGER.warning("Recorder failed to stop cleanly", exc_info=True)
        if buffer is not None:
            buffer.clear()
        LOGGER.info("Audio capture discarded")

    def discard(self, audio_ref: Optional[str]) -> None:
        if not audio_ref:
            return
        path = Path(audio_ref)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            LOGGER.warning("Could not remove recording %s", path, exc_info=True)
        else:
            LOGGER.info("Removed recording %s", path)

    def _release(self) -> Optional[List[np.ndarray]]:
        if self._unsubscribe is not None:
            # Drop the listener after stop() so the final chunk still lands.
            self._unsubscribe()
            self._unsubscribe = None
        self._recorder = None
        with self._buffer_lock:
            buffer, self._buffer = self._buffer, None
        return buffer


__all__ = ["AudioCaptureController"]
