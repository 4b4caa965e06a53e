"""Audio capture abstractions."""

from __future__ import annotations

import abc
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

import numpy as np

from ...logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CaptureInfo:
    """Metadata about a capture stream."""

    name: str
    sample_rate: int
    channels: int
    device: Optional[str] = None


class CaptureError(RuntimeError):
    """Raised when audio capture cannot be initialised."""


class MediaAccessError(CaptureError):
    """Raised when no microphone handle can be opened."""


class ListenerSet(Generic[T]):
    """Thread-safe fan-out of values to registered callbacks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[int, Callable[[T], None]] = {}
        self._next_token = 0

    def add(self, listener: Callable[[T], None]) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = listener

        def _remove() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return _remove

    def notify(self, value: T) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                LOGGER.exception("Audio listener raised an exception")

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


class MediaStream(abc.ABC):
    """Shared microphone handle.

    Several readers may subscribe to the frames; only the owner closes it.
    """

    info: CaptureInfo

    def __init__(self) -> None:
        self._frame_listeners: ListenerSet[np.ndarray] = ListenerSet()

    def subscribe(self, on_frames: Callable[[np.ndarray], None]) -> Callable[[], None]:
        """Register ``on_frames`` and return a callable that unregisters it."""

        return self._frame_listeners.add(on_frames)

    def publish(self, frames: np.ndarray) -> None:
        self._frame_listeners.notify(frames)

    @abc.abstractmethod
    def level(self) -> float:
        """Return the RMS energy of the most recent block of input."""

    @property
    @abc.abstractmethod
    def closed(self) -> bool:
        """Whether the handle has been released."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the underlying device."""


class AudioRecorder(abc.ABC):
    """Chunked recorder reading from a :class:`MediaStream`."""

    info: CaptureInfo

    def __init__(self) -> None:
        self._chunk_listeners: ListenerSet[np.ndarray] = ListenerSet()

    def subscribe(self, on_chunk: Callable[[np.ndarray], None]) -> Callable[[], None]:
        return self._chunk_listeners.add(on_chunk)

    def emit_chunk(self, chunk: np.ndarray) -> None:
        self._chunk_listeners.notify(chunk)

    @abc.abstractmethod
    def start(self, timeslice_ms: int) -> None:
        """Begin capture, emitting one chunk per ``timeslice_ms`` of audio."""

    @abc.abstractmethod
    def pause(self) -> None:
        """Suspend capture; buffered audio is kept."""

    @abc.abstractmethod
    def resume(self) -> None:
        """Continue a paused capture."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Emit any remaining audio as a final chunk and stop."""


MediaFactory = Callable[[Optional[str]], MediaStream]
RecorderFactory = Callable[[MediaStream], AudioRecorder]


__all__ = [
    "AudioRecorder",
    "CaptureError",
    "CaptureInfo",
    "ListenerSet",
    "MediaAccessError",
    "MediaFactory",
    "MediaStream",
    "RecorderFactory",
]
