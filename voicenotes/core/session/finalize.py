"""Turn a stopped session's transcript into a persisted note."""

from __future__ import annotations

import uuid
from typing import Callable, List, Optional

from ...data.models import Note, now_ms
from ...data.storage import NoteStore
from ...logging import get_logger
from ...services.summary import summarize_text
from ...services.tagging.base import TaggingService

LOGGER = get_logger(__name__)

DEFAULT_TITLE = "New Note"
TITLE_LIMIT = 40


def derive_title(text: str) -> str:
    if not text or not text.strip():
        return DEFAULT_TITLE
    first_line = text.split("\n", 1)[0].strip()
    if len(first_line) <= TITLE_LIMIT:
        return first_line or DEFAULT_TITLE
    return first_line[:TITLE_LIMIT] + "..."


class FinalizationPipeline:
    """Builds a :class:`Note` from frozen transcript text and persists it.

    :meth:`prepare` may be slow (tagging can call a remote service) and runs
    without the engine lock; :meth:`persist` is quick and runs under it.
    """

    def __init__(
        self,
        store: NoteStore,
        tagging: Optional[TaggingService] = None,
        summarizer: Optional[Callable[[str], str]] = summarize_text,
        folder: Optional[str] = None,
    ) -> None:
        self.store = store
        self.tagging = tagging
        self.summarizer = summarizer
        self.folder = folder

    def _tags(self, text: str) -> List[str]:
        if self.tagging is None or not text:
            return []
        try:
            return list(self.tagging.tags(text))
        except Exception:
            LOGGER.exception("Tagging failed; saving note without tags")
            return []

    def _summary(self, text: str) -> Optional[str]:
        if self.summarizer is None or not text:
            return None
        try:
            return self.summarizer(text)
        except Exception:
            LOGGER.exception("Summarisation failed; saving note without a summary")
            return None

    def prepare(self, transcript: str, audio_ref: Optional[str] = None) -> Note:
        content = transcript.strip()
        timestamp = now_ms()
        return Note(
            id=str(uuid.uuid4()),
            title=derive_title(content),
            content=content,
            audio_ref=audio_ref,
            tags=self._tags(content),
            created_at=timestamp,
            updated_at=timestamp,
            is_synced=False,
            folder=self.folder,
            summary=self._summary(content),
        )

    def persist(self, note: Note) -> str:
        note_id = self.store.put(note)
        LOGGER.info("Saved note %s (%r, %d tag(s))", note_id, note.title, len(note.tags))
        return note_id


__all__ = ["DEFAULT_TITLE", "FinalizationPipeline", "derive_title"]
