"""Wake lock and shared microphone handle ownership."""

from __future__ import annotations

import abc
import shutil
import subprocess
from typing import Optional

from ..logging import get_logger
from .audio.base import MediaAccessError, MediaFactory, MediaStream

LOGGER = get_logger(__name__)


class WakeLock(abc.ABC):
    """Keeps the machine from sleeping while a session is recording."""

    @abc.abstractmethod
    def acquire(self) -> None:
        ...

    @abc.abstractmethod
    def release(self) -> None:
        ...


class NullWakeLock(WakeLock):
    def acquire(self) -> None:
        return None

    def release(self) -> None:
        return None


class InhibitorWakeLock(WakeLock):
    """Holds a ``systemd-inhibit`` idle/sleep inhibitor for as long as it is acquired."""

    def __init__(self, why: str = "Recording a voice note") -> None:
        self.why = why
        self._process: Optional[subprocess.Popen] = None

    @staticmethod
    def available() -> bool:
        return shutil.which("systemd-inhibit") is not None

    def acquire(self) -> None:
        if self._process is not None:
            return
        executable = shutil.which("systemd-inhibit")
        if executable is None:
            raise RuntimeError("systemd-inhibit is not available")
        self._process = subprocess.Popen(
            [
                executable,
                "--what=idle:sleep",
                "--who=voicenotes",
                f"--why={self.why}",
                "--mode=block",
                "sleep",
                "infinity",
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def release(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        process.terminate()
        try:
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            process.kill()


def default_wake_lock() -> WakeLock:
    return InhibitorWakeLock() if InhibitorWakeLock.available() else NullWakeLock()


class ResourceGuard:
    """Owns the wake lock and the shared media handle of one engine.

    The handle is opened lazily and stays open across pause and resume; it is
    closed only when the session returns to inactive.
    """

    def __init__(self, media_factory: MediaFactory, wake_lock: Optional[WakeLock] = None) -> None:
        self._media_factory = media_factory
        self._wake_lock = wake_lock or NullWakeLock()
        self._media: Optional[MediaStream] = None
        self._wake_lock_held = False

    @property
    def media(self) -> Optional[MediaStream]:
        return self._media

    @property
    def wake_lock_held(self) -> bool:
        return self._wake_lock_held

    def open_media(self, preferred_device: Optional[str] = None) -> MediaStream:
        if self._media is not None and not self._media.closed:
            return self._media

        attempts = [preferred_device, None] if preferred_device else [None]
        last_error: Optional[Exception] = None
        for device in attempts:
            try:
                self._media = self._media_factory(device)
            except Exception as exc:
                last_error = exc
                if device is not None:
                    LOGGER.warning("Preferred microphone %s unavailable (%s); using default", device, exc)
                continue
            return self._media
        raise MediaAccessError(f"Could not access the microphone: {last_error}") from last_error

    def close_media(self) -> None:
        media, self._media = self._media, None
        if media is None:
            return
        try:
            media.close()
        except Exception:
            LOGGER.warning("Error while closing microphone", exc_info=True)

    def acquire_wake_lock(self) -> None:
        if self._wake_lock_held:
            return
        try:
            self._wake_lock.acquire()
        except Exception:
            LOGGER.warning("Could not acquire wake lock", exc_info=True)
            return
        self._wake_lock_held = True

    def release_wake_lock(self) -> None:
        if not self._wake_lock_held:
            return
        self._wake_lock_held = False
        try:
            self._wake_lock.release()
        except Exception:
            LOGGER.warning("Could not release wake lock", exc_info=True)

    def release_all(self) -> None:
        self.release_wake_lock()
        self.close_media()

    def __enter__(self) -> "ResourceGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_all()


__all__ = [
    "InhibitorWakeLock",
    "NullWakeLock",
    "ResourceGuard",
    "WakeLock",
    "default_wake_lock",
]
