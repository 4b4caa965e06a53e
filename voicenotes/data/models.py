"""Data models used by voicenotes."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

DEFAULT_FOLDER_ID = "default"


def now_ms() -> int:
    return int(time.time() * 1000)


class RecordingState(str, Enum):
    INACTIVE = "inactive"
    RECORDING = "recording"
    PAUSED = "paused"


class Note(BaseModel):
    id: str
    title: str
    content: str
    audio_ref: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    is_synced: bool = False
    folder: Optional[str] = None
    summary: Optional[str] = None


class Folder(BaseModel):
    id: str
    name: str
    color: str = "#7c3aed"
    created_at: int = Field(default_factory=now_ms)


@dataclass
class Session:
    """Mutable state of one recording session.

    Only the engine that owns the session mutates it, and only while holding
    its lock.
    """

    state: RecordingState = RecordingState.INACTIVE
    final_transcript: str = ""
    interim_transcript: str = ""
    composed_transcript: str = ""
    result_cursor: int = 0
    last_speech_timestamp: float = 0.0
    last_processed_length: int = 0
    pending_punctuation: bool = False
    retry_count: int = 0
    audio_chunks: List[Any] = field(default_factory=list)

    def reset(self, now: float = 0.0) -> None:
        self.final_transcript = ""
        self.interim_transcript = ""
        self.composed_transcript = ""
        self.result_cursor = 0
        self.last_speech_timestamp = now
        self.last_processed_length = 0
        self.pending_punctuation = False
        self.retry_count = 0
        self.audio_chunks = []

    @property
    def has_content(self) -> bool:
        return bool(self.final_transcript or self.interim_transcript)


@dataclass
class StopResult:
    id: str = ""
    audio_ref: Optional[str] = None

    @property
    def created(self) -> bool:
        return bool(self.id)


__all__ = [
    "DEFAULT_FOLDER_ID",
    "Folder",
    "Note",
    "RecordingState",
    "Session",
    "StopResult",
    "now_ms",
]
