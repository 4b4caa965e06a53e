"""Factories for runtime service selection and engine assembly."""

from __future__ import annotations

from typing import Callable, Optional

from ..config import RecoveryPolicy, SessionConfig, Settings, get_settings
from ..core.audio.recorder import MediaStreamRecorder
from ..core.recognition.base import RecognizerFactory
from ..core.resources import WakeLock, default_wake_lock
from ..core.session.engine import TranscriptionEngine
from ..core.session.finalize import FinalizationPipeline
from ..data.storage import NoteStore, SQLiteNoteStore
from .recognition.dummy import scripted_recognizer_factory
from .tagging.base import TaggingService
from .tagging.keyword import KeywordTaggingService


class ServiceConfigurationError(ValueError):
    """Raised when an unknown backend is requested."""


def _normalise(name: Optional[str]) -> str:
    if not name:
        return "none"
    return name.strip().lower()


def resolve_recognition_backend(name: Optional[str]) -> Optional[RecognizerFactory]:
    backend = _normalise(name)
    if backend in {"", "none", "off"}:
        return None
    if backend == "dummy":
        return scripted_recognizer_factory()
    if backend == "openai":
        from .recognition.openai_window import OpenAIRecognizerFactory

        return OpenAIRecognizerFactory()
    raise ServiceConfigurationError(f"Unknown recognition backend: {name}")


def resolve_tagging_backend(name: Optional[str], max_tags: int = 5) -> Optional[TaggingService]:
    backend = _normalise(name)
    if backend in {"", "none", "off"}:
        return None
    if backend == "keyword":
        return KeywordTaggingService(max_tags=max_tags)
    if backend == "openai":
        from .tagging.openai_tagging import OpenAITaggingService

        return OpenAITaggingService(max_tags=max_tags)
    raise ServiceConfigurationError(f"Unknown tagging backend: {name}")


def open_note_store(settings: Optional[Settings] = None) -> SQLiteNoteStore:
    settings = settings or get_settings()
    store = SQLiteNoteStore(settings.database_path)
    store.initialize()
    return store


def build_engine(
    settings: Optional[Settings] = None,
    store: Optional[NoteStore] = None,
    recognition_backend: Optional[str] = None,
    tagging_backend: Optional[str] = None,
    wake_lock: Optional[WakeLock] = None,
    **listeners: Callable,
) -> TranscriptionEngine:
    """Wire a :class:`TranscriptionEngine` to the configured backends.

    ``listeners`` are forwarded to the engine (``on_transcript_update`` and
    friends).
    """

    from ..core.audio.sounddevice_backend import open_microphone

    settings = settings or get_settings()
    recognizer_factory = resolve_recognition_backend(recognition_backend or settings.recognition_backend)
    tagging = resolve_tagging_backend(tagging_backend or settings.tagging_backend, settings.max_tags)
    finalizer = FinalizationPipeline(store or open_note_store(settings), tagging=tagging)
    return TranscriptionEngine(
        recognizer_factory,
        MediaStreamRecorder,
        open_microphone(settings.sample_rate, settings.channels),
        finalizer,
        settings.recordings_dir,
        config=SessionConfig.from_settings(settings),
        policy=RecoveryPolicy.from_settings(settings),
        wake_lock=wake_lock or default_wake_lock(),
        **listeners,
    )


__all__ = [
    "ServiceConfigurationError",
    "build_engine",
    "open_note_store",
    "resolve_recognition_backend",
    "resolve_tagging_backend",
]
