"""Compose the displayed transcript from confirmed and interim dictation."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ...config import SessionConfig
from ...data.models import Session
from .grammar import correct_transcript_grammar

QUESTION_WORDS = (
    "who", "what", "when", "where", "why", "how",
    "is", "are", "was", "were", "will",
    "do", "does", "did", "can", "could", "would", "should", "may", "might",
)

_QUESTION_START = re.compile(rf"^\s*({'|'.join(QUESTION_WORDS)})\b", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_CAPITALIZE_AFTER = re.compile(r"([.!?])\s*([a-z])")
_LINE_BREAK = re.compile(r"([.!?])\s+")
_ENDS_SENTENCE = re.compile(r"[.!?]$")
_ENDS_CLAUSE = re.compile(r"[.!?,;:]$")


@dataclass(frozen=True)
class ComposeFlags:
    sentence_detection: bool = True
    grammar_correction: bool = False

    @classmethod
    def from_config(cls, config: SessionConfig) -> "ComposeFlags":
        return cls(
            sentence_detection=config.sentence_detection_enabled,
            grammar_correction=config.grammar_correction_enabled,
        )


def _last_sentence(text: str) -> str:
    return _SENTENCE_SPLIT.split(text)[-1]


def is_question(sentence: str) -> bool:
    stripped = sentence.strip()
    return bool(stripped) and not _ENDS_SENTENCE.search(stripped) and bool(_QUESTION_START.match(stripped))


def detect_questions(text: str) -> str:
    """Terminate the trailing sentence with ``?`` when it opens like a question."""

    last = _last_sentence(text)
    if not is_question(last):
        return text
    return text[: len(text) - len(last)] + last.rstrip() + "?"


def add_line_breaks(text: str) -> str:
    return _LINE_BREAK.sub(r"\1\n", text)


def format_transcript(text: str) -> str:
    if not text:
        return ""
    formatted = _CAPITALIZE_AFTER.sub(lambda m: f"{m.group(1)} {m.group(2).upper()}", text)
    if formatted[0].islower():
        formatted = formatted[0].upper() + formatted[1:]
    formatted = detect_questions(formatted)
    return add_line_breaks(formatted)


def render(final: str, interim: str, flags: ComposeFlags) -> str:
    """Pure formatting of ``final + interim`` under ``flags``."""

    text = final + interim
    if flags.sentence_detection:
        text = format_transcript(text)
    if flags.grammar_correction:
        text = correct_transcript_grammar(text)
    return text


class TranscriptComposer:
    """Derives ``Session.composed_transcript`` and tracks dictation pauses.

    When sentence detection is on and the dictation has been quiet for longer
    than ``pause_threshold_s`` the composer terminates the confirmed text, once
    per pause, by committing a period (or a question mark for an interrogative
    sentence) to the end of ``final_transcript``.
    """

    def __init__(
        self,
        pause_threshold_s: float = 1.0,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.pause_threshold_s = pause_threshold_s
        self._clock = clock or time.monotonic

    def now(self) -> float:
        return self._clock()

    def compose(self, session: Session, flags: ComposeFlags, track_pauses: bool = True) -> str:
        if flags.sentence_detection and track_pauses:
            self._track_pause(session)
        text = render(session.final_transcript, session.interim_transcript, flags)
        session.composed_transcript = text
        return text

    def flush(self, session: Session) -> bool:
        """Promote pending interim text to confirmed text."""

        if not session.interim_transcript:
            return False
        session.final_transcript += session.interim_transcript + " "
        session.interim_transcript = ""
        return True

    def _track_pause(self, session: Session) -> None:
        now = self._clock()
        final = session.final_transcript
        interim = session.interim_transcript
        combined = len(final) + len(interim)

        if combined != session.last_processed_length:
            if combined > session.last_processed_length:
                session.last_speech_timestamp = now
                session.pending_punctuation = False
            session.last_processed_length = combined
            return

        if session.pending_punctuation or interim.strip():
            return
        if now - session.last_speech_timestamp <= self.pause_threshold_s:
            return

        session.pending_punctuation = True
        stripped = final.rstrip()
        if not stripped or _ENDS_CLAUSE.search(stripped):
            return
        mark = "?" if is_question(_last_sentence(stripped)) else "."
        session.final_transcript = stripped + mark + final[len(stripped):]
        session.last_processed_length = combined + 1


__all__ = [
    "ComposeFlags",
    "QUESTION_WORDS",
    "TranscriptComposer",
    "add_line_breaks",
    "detect_questions",
    "format_transcript",
    "is_question",
    "render",
]
