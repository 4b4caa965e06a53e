from __future__ import annotations

import threading
from pathlib import Path

import pytest
from fakes import RecognizerFactoryStub, make_engine

from voicenotes.config import SessionConfig
from voicenotes.core.errors import ErrorCategory, FaultCode
from voicenotes.core.scheduler import HEALTH_TASK, PAUSE_CHECK_TASK, RETRY_TASK, WATCHDOG_TASK
from voicenotes.data.models import RecordingState
from voicenotes.utils.audio import read_wave


def test_start_enters_recording_and_acquires_resources(tmp_path: Path) -> None:
    h = make_engine(tmp_path)

    assert h.engine.start() is True

    assert h.engine.state is RecordingState.RECORDING
    assert h.states == [RecordingState.RECORDING]
    assert h.wake_lock.held
    assert not h.media.latest.closed
    assert h.recognizer.started
    assert h.scheduler.is_scheduled(WATCHDOG_TASK)
    assert h.scheduler.is_scheduled(HEALTH_TASK)


def test_start_is_rejected_unless_inactive(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    assert h.engine.start()
    assert h.engine.start() is False
    assert len(h.recognizers.created) == 1


def test_invalid_transitions_are_ignored(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    assert h.engine.pause() is False
    assert h.engine.resume() is False

    h.engine.start()
    assert h.engine.resume() is False
    assert h.engine.state is RecordingState.RECORDING


def test_final_transcript_never_shrinks_across_pause_and_resume(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    snapshots = []

    h.engine.start()
    h.recognizer.results(("buy milk", True), ("and", False))
    snapshots.append(h.engine.session.final_transcript)

    h.engine.pause()
    snapshots.append(h.engine.session.final_transcript)
    assert h.engine.session.interim_transcript == ""

    h.engine.resume()
    h.recognizer.results(("eggs", True))
    snapshots.append(h.engine.session.final_transcript)

    for earlier, later in zip(snapshots, snapshots[1:]):
        assert later.startswith(earlier)
    assert snapshots[-1] == "buy milk and eggs "
    assert h.engine.session.result_cursor == 2


def test_pause_keeps_media_open_and_releases_wake_lock(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    media = h.media.latest
    recognizer = h.recognizer

    assert h.engine.pause()

    assert recognizer.stopped
    assert not media.closed
    assert not h.wake_lock.held
    assert h.scheduler.pending() == []

    assert h.engine.resume()
    assert h.wake_lock.held
    assert len(h.media.opened) == 1
    assert h.recognizer is not recognizer


def test_resume_resets_retry_budget(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    h.recognizer.fault(FaultCode.NO_SPEECH)
    assert h.engine.session.retry_count == 1

    h.engine.pause()
    h.engine.resume()
    assert h.engine.session.retry_count == 0


def test_stop_from_inactive_creates_nothing(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    result = h.engine.stop()
    assert result.id == ""
    assert not result.created
    assert h.store.notes == {}


def test_stop_persists_note_with_title_tags_and_audio(tmp_path: Path) -> None:
    class Tagger:
        def tags(self, text):
            return ["shopping"]

    h = make_engine(tmp_path, tagging=Tagger())
    h.engine.start()
    h.media.latest.speak(1.0)
    h.recognizer.results(("buy milk", True), ("and eggs", False))

    result = h.engine.stop()

    assert result.created
    note = h.store.get(result.id)
    assert note is not None
    assert note.content == "Buy milk and eggs"
    assert note.title == "Buy milk and eggs"
    assert note.tags == ["shopping"]
    assert note.is_synced is False
    assert note.created_at == note.updated_at
    assert note.audio_ref == result.audio_ref
    assert result.audio_ref is not None and Path(result.audio_ref).exists()
    assert h.engine.state is RecordingState.INACTIVE
    assert not h.wake_lock.held
    assert h.media.latest.closed
    assert h.engine.session.final_transcript == ""


def test_stop_from_paused_creates_note(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    h.recognizer.results(("remember the keys", False))
    h.engine.pause()

    result = h.engine.stop()

    assert h.store.get(result.id).content == "Remember the keys"


@pytest.mark.parametrize("state", ["inactive", "recording", "paused"])
def test_cancel_releases_everything_without_a_note(tmp_path: Path, state: str) -> None:
    h = make_engine(tmp_path)
    if state != "inactive":
        h.engine.start()
        h.media.latest.speak(1.0)
        h.recognizer.results(("secret", True))
    if state == "paused":
        h.engine.pause()

    h.engine.cancel()

    assert h.engine.state is RecordingState.INACTIVE
    assert not h.wake_lock.held
    assert all(media.closed for media in h.media.opened)
    assert h.store.notes == {}
    assert h.scheduler.pending() == []
    assert h.engine.session.final_transcript == ""
    assert not (tmp_path / "recordings").exists() or not any((tmp_path / "recordings").iterdir())


def test_cancel_during_finalization_wins(tmp_path: Path) -> None:
    holder = {}

    class CancellingTagger:
        def tags(self, text):
            holder["engine"].cancel()
            return ["ignored"]

    h = make_engine(tmp_path, tagging=CancellingTagger())
    holder["engine"] = h.engine
    h.engine.start()
    h.media.latest.speak(1.0)
    h.recognizer.results(("almost saved", True))

    result = h.engine.stop()

    assert result.id == ""
    assert h.store.notes == {}
    assert h.engine.state is RecordingState.INACTIVE
    assert not any((tmp_path / "recordings").iterdir())


def test_grammar_toggle_recomposes_once(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    h.recognizer.results(("i do not know", True))
    before = len(h.transcripts)

    h.engine.set_grammar_correction_enabled(True)

    assert len(h.transcripts) == before + 1
    assert h.transcripts[-1].strip() == "I don't know"

    h.engine.set_grammar_correction_enabled(True)
    assert len(h.transcripts) == before + 1


def test_sentence_detection_toggle_shows_raw_text(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    h.recognizer.results(("what time is it", True))
    assert h.engine.transcript == "What time is it?"

    h.engine.set_sentence_detection_enabled(False)
    assert h.engine.transcript == "what time is it "


def test_pause_in_dictation_commits_a_period(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    h.recognizer.results(("hello world", True))
    assert h.scheduler.is_scheduled(PAUSE_CHECK_TASK)

    h.clock.advance(1.2)
    h.scheduler.fire(PAUSE_CHECK_TASK)

    assert h.engine.transcript.strip() == "Hello world."
    assert h.engine.session.final_transcript == "hello world. "
    assert h.engine.session.pending_punctuation


def test_permission_denied_pauses_session(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    h.recognizer.results(("keep this", True))

    h.recognizer.fault(FaultCode.NOT_ALLOWED)

    assert h.errors[-1].category is ErrorCategory.PERMISSION_DENIED
    assert h.errors[-1].fatal
    assert h.engine.state is RecordingState.PAUSED
    assert h.store.notes == {}
    assert h.engine.stop().created


def test_microphone_failure_keeps_session_inactive(tmp_path: Path) -> None:
    h = make_engine(tmp_path, unavailable_devices=(None,))

    assert h.engine.start() is False

    assert h.engine.state is RecordingState.INACTIVE
    assert h.errors[-1].category is ErrorCategory.MICROPHONE_ACCESS
    assert h.recognizers.created == []
    assert not h.wake_lock.held


def test_preferred_microphone_falls_back_to_default(tmp_path: Path) -> None:
    h = make_engine(
        tmp_path,
        config=SessionConfig(preferred_microphone_id="usb-mic"),
        unavailable_devices=("usb-mic",),
    )

    assert h.engine.start()
    assert h.media.requests == ["usb-mic", None]
    assert h.errors == []


def test_missing_recognizer_is_unsupported(tmp_path: Path) -> None:
    h = make_engine(tmp_path, with_recognizer=False)

    assert [error.category for error in h.errors] == [ErrorCategory.UNSUPPORTED]
    assert h.engine.start() is False
    assert len(h.errors) == 1
    assert h.media.opened == []


def test_silent_microphone_reports_diagnostic(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    h.media.latest.current_level = 0.0

    h.scheduler.fire(HEALTH_TASK)

    assert len(h.diagnostics) == 1
    assert h.engine.state is RecordingState.RECORDING


def test_listener_exceptions_do_not_break_engine(tmp_path: Path) -> None:
    h = make_engine(tmp_path)

    def explode(_):
        raise RuntimeError("listener bug")

    h.engine._on_state_change = explode
    assert h.engine.start()
    assert h.engine.state is RecordingState.RECORDING


def test_language_applies_to_next_stream(tmp_path: Path) -> None:
    recognizers = RecognizerFactoryStub()
    h = make_engine(tmp_path, recognizer_factory=recognizers)
    h.engine.start()
    h.engine.set_language("fr-FR")
    assert h.recognizer.options.language_code == "en-US"

    h.engine.pause()
    h.engine.resume()
    assert h.recognizer.options.language_code == "fr-FR"


def test_recognition_restarts_keep_the_same_recording(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    recorder = h.engine._controller._recorder
    h.media.latest.speak(1.0)

    h.recognizer.fault(FaultCode.NO_SPEECH)
    h.scheduler.fire(RETRY_TASK)
    h.recognizer.end()
    assert len(h.recognizers.created) == 3

    h.media.latest.speak(0.5)
    assert h.engine._controller._recorder is recorder

    result = h.engine.stop()

    data, sample_rate = read_wave(Path(result.audio_ref))
    assert sample_rate == 16_000
    assert data.shape[0] == 24_000


def test_audio_chunks_land_while_engine_lock_is_held(tmp_path: Path) -> None:
    h = make_engine(tmp_path)
    h.engine.start()
    media = h.media.latest

    with h.engine._lock:
        callback = threading.Thread(target=media.speak, args=(1.0,))
        callback.start()
        callback.join(2.0)
        assert not callback.is_alive()
        h.engine.cancel()

    assert media.closed
    assert h.engine.state is RecordingState.INACTIVE
