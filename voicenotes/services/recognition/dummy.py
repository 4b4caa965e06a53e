"""Scripted speech recognizer for demos, tests and offline usage."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterable, List, Optional

from ...core.recognition.base import (
    Fragment,
    FragmentBatch,
    RecognizerFactory,
    SpeechRecognizer,
    StreamEnded,
    StreamOptions,
)
from ...logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_SCRIPT = (
    "this is a dummy transcript from the offline recognizer",
    "replace it with a real recognition backend",
    "what would you like to note down today",
)


class ScriptedSpeechRecognizer(SpeechRecognizer):
    """Dictates phrases from a shared queue one word at a time.

    Each word is emitted as a growing interim result; a completed phrase turns
    into a final result. Phrases are consumed from ``phrases`` so a fresh
    recognizer built after a restart continues where the last one stopped.
    """

    def __init__(
        self,
        phrases: Deque[str],
        language_code: str = "en-US",
        word_delay_s: float = 0.3,
        phrase_pause_s: float = 1.5,
    ) -> None:
        super().__init__(language_code)
        self._phrases = phrases
        self.word_delay_s = word_delay_s
        self.phrase_pause_s = phrase_pause_s
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._results: List[Fragment] = []

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("A recognizer stream can only be started once")
        self._thread = threading.Thread(target=self._run, name="scripted-recognizer", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                phrase = self._phrases.popleft()
            except IndexError:
                return
            words = phrase.split()
            for count in range(1, len(words) + 1):
                if self._stopped.wait(self.word_delay_s):
                    # Put the unfinished phrase back for the next stream.
                    self._phrases.appendleft(phrase)
                    return
                interim = Fragment(len(self._results), " ".join(words[:count]))
                self.emit(FragmentBatch(tuple(self._results) + (interim,)))
            self._results.append(Fragment(len(self._results), phrase, is_final=True))
            self.emit(FragmentBatch(tuple(self._results)))
            if self._stopped.wait(self.phrase_pause_s):
                return

    def stop(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self.emit(StreamEnded())

    def abort(self) -> None:
        self._stopped.set()


def scripted_recognizer_factory(
    script: Iterable[str] = DEFAULT_SCRIPT,
    word_delay_s: float = 0.3,
    phrase_pause_s: float = 1.5,
) -> RecognizerFactory:
    phrases: Deque[str] = deque(script)

    def _factory(options: StreamOptions) -> ScriptedSpeechRecognizer:
        return ScriptedSpeechRecognizer(
            phrases,
            language_code=options.language_code,
            word_delay_s=word_delay_s,
            phrase_pause_s=phrase_pause_s,
        )

    return _factory


__all__ = ["DEFAULT_SCRIPT", "ScriptedSpeechRecognizer", "scripted_recognizer_factory"]
