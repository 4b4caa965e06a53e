"""In-memory stand-ins for the engine's collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from voicenotes.config import RecoveryPolicy, SessionConfig
from voicenotes.core.audio.base import CaptureInfo, MediaAccessError, MediaStream
from voicenotes.core.audio.recorder import MediaStreamRecorder
from voicenotes.core.errors import FaultCode, SessionError
from voicenotes.core.recognition.base import (
    Fragment,
    FragmentBatch,
    RecognitionFault,
    SpeechRecognizer,
    StreamEnded,
    StreamOptions,
)
from voicenotes.core.resources import WakeLock
from voicenotes.core.session.engine import TranscriptionEngine
from voicenotes.core.session.finalize import FinalizationPipeline
from voicenotes.data.models import Note, RecordingState
from voicenotes.data.storage import NoteStore

SAMPLE_RATE = 16_000


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualScheduler:
    """Records scheduled tasks; tests fire them explicitly."""

    def __init__(self) -> None:
        self.tasks: Dict[str, Tuple[float, Callable[[], None], bool]] = {}
        self.history: List[Tuple[str, float]] = []

    def schedule(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        self.tasks[name] = (delay, callback, False)
        self.history.append((name, delay))

    def schedule_repeating(self, name: str, interval: float, callback: Callable[[], None]) -> None:
        self.tasks[name] = (interval, callback, True)
        self.history.append((name, interval))

    def cancel(self, name: str) -> bool:
        return self.tasks.pop(name, None) is not None

    def cancel_all(self) -> None:
        self.tasks.clear()

    def is_scheduled(self, name: str) -> bool:
        return name in self.tasks

    def pending(self) -> List[str]:
        return sorted(self.tasks)

    def fire(self, name: str) -> None:
        delay, callback, repeat = self.tasks[name]
        if not repeat:
            del self.tasks[name]
        callback()


class FakeRecognizer(SpeechRecognizer):
    def __init__(self, options: StreamOptions) -> None:
        super().__init__(options.language_code)
        self.options = options
        self.started = False
        self.stopped = False
        self.aborted = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def abort(self) -> None:
        self.aborted = True

    # Helpers for tests -------------------------------------------------
    def results(self, *entries: Tuple[str, bool]) -> bool:
        fragments = tuple(Fragment(i, text, final) for i, (text, final) in enumerate(entries))
        return self.emit(FragmentBatch(fragments))

    def fault(self, code: FaultCode) -> bool:
        return self.emit(RecognitionFault(code))

    def end(self) -> bool:
        return self.emit(StreamEnded())


class RecognizerFactoryStub:
    def __init__(self) -> None:
        self.created: List[FakeRecognizer] = []

    def __call__(self, options: StreamOptions) -> FakeRecognizer:
        recognizer = FakeRecognizer(options)
        self.created.append(recognizer)
        return recognizer

    @property
    def latest(self) -> FakeRecognizer:
        return self.created[-1]


class FakeMedia(MediaStream):
    def __init__(self, device: Optional[str] = None, sample_rate: int = SAMPLE_RATE) -> None:
        super().__init__()
        self.info = CaptureInfo(name="microphone", sample_rate=sample_rate, channels=1, device=device)
        self.current_level = 0.1
        self._closed = False

    def level(self) -> float:
        return self.current_level

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def speak(self, seconds: float = 1.0) -> None:
        frames = int(self.info.sample_rate * seconds)
        self.publish(np.full((frames, 1), 0.25, dtype=np.float32))


class MediaFactoryStub:
    def __init__(self, unavailable: Tuple[Optional[str], ...] = ()) -> None:
        self.unavailable = unavailable
        self.opened: List[FakeMedia] = []
        self.requests: List[Optional[str]] = []

    def __call__(self, device: Optional[str]) -> FakeMedia:
        self.requests.append(device)
        if device in self.unavailable:
            raise MediaAccessError(f"device {device!r} unavailable")
        media = FakeMedia(device)
        self.opened.append(media)
        return media

    @property
    def latest(self) -> FakeMedia:
        return self.opened[-1]


class FakeWakeLock(WakeLock):
    def __init__(self) -> None:
        self.held = False
        self.acquisitions = 0

    def acquire(self) -> None:
        self.held = True
        self.acquisitions += 1

    def release(self) -> None:
        self.held = False


class InMemoryNoteStore(NoteStore):
    def __init__(self) -> None:
        self.notes: Dict[str, Note] = {}

    def put(self, note: Note) -> str:
        self.notes[note.id] = note
        return note.id

    def get(self, note_id: str) -> Optional[Note]:
        return self.notes.get(note_id)

    def delete(self, note_id: str) -> None:
        self.notes.pop(note_id, None)

    def list(self, folder: Optional[str] = None) -> List[Note]:
        return [note for note in self.notes.values() if folder is None or note.folder == folder]

    def query_by_tag(self, tag: str) -> List[Note]:
        return [note for note in self.notes.values() if tag in note.tags]


@dataclass
class EngineHarness:
    engine: TranscriptionEngine
    recognizers: RecognizerFactoryStub
    media: MediaFactoryStub
    scheduler: ManualScheduler
    clock: FakeClock
    wake_lock: FakeWakeLock
    store: InMemoryNoteStore
    transcripts: List[str] = field(default_factory=list)
    states: List[RecordingState] = field(default_factory=list)
    errors: List[SessionError] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)

    @property
    def recognizer(self) -> FakeRecognizer:
        return self.recognizers.latest


def make_engine(
    tmp_path: Path,
    config: Optional[SessionConfig] = None,
    tagging=None,
    unavailable_devices: Tuple[Optional[str], ...] = (),
    recognizer_factory: Optional[RecognizerFactoryStub] = None,
    with_recognizer: bool = True,
) -> EngineHarness:
    recognizers = recognizer_factory or RecognizerFactoryStub()
    media = MediaFactoryStub(unavailable_devices)
    scheduler = ManualScheduler()
    clock = FakeClock()
    wake_lock = FakeWakeLock()
    store = InMemoryNoteStore()
    harness_events: Dict[str, list] = {"transcripts": [], "states": [], "errors": [], "diagnostics": []}

    engine = TranscriptionEngine(
        recognizers if with_recognizer else None,
        MediaStreamRecorder,
        media,
        FinalizationPipeline(store, tagging=tagging),
        tmp_path / "recordings",
        config=config or SessionConfig(),
        policy=RecoveryPolicy(),
        wake_lock=wake_lock,
        scheduler=scheduler,
        clock=clock,
        on_transcript_update=harness_events["transcripts"].append,
        on_state_change=harness_events["states"].append,
        on_error=harness_events["errors"].append,
        on_diagnostic=harness_events["diagnostics"].append,
    )
    return EngineHarness(
        engine=engine,
        recognizers=recognizers,
        media=media,
        scheduler=scheduler,
        clock=clock,
        wake_lock=wake_lock,
        store=store,
        transcripts=harness_events["transcripts"],
        states=harness_events["states"],
        errors=harness_events["errors"],
        diagnostics=harness_events["diagnostics"],
    )
