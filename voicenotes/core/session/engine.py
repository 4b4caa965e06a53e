"""Recording session state machine."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Optional

from ...config import RecoveryPolicy, SessionConfig
from ...data.models import RecordingState, Session, StopResult
from ...logging import get_logger
from ..audio.base import MediaAccessError, MediaFactory, MediaStream, RecorderFactory
from ..audio.controller import AudioCaptureController
from ..audio.monitor import MicrophoneHealthMonitor
from ..errors import ErrorCategory, SessionError
from ..recognition.base import RecognizerFactory, RecognizerUnavailableError, StreamOptions
from ..recognition.supervisor import RecognitionSupervisor
from ..resources import ResourceGuard, WakeLock
from ..scheduler import PAUSE_CHECK_TASK, TaskScheduler
from ..transcript.composer import ComposeFlags, TranscriptComposer
from .finalize import FinalizationPipeline

LOGGER = get_logger(__name__)

# Extra wait after the pause threshold before re-checking for a dictation pause.
PAUSE_CHECK_GRACE_S = 0.05


def _unavailable_recognizer(options: StreamOptions):
    raise RecognizerUnavailableError("No speech recognizer is configured")


def _unavailable_recorder(media: MediaStream):
    raise RuntimeError("No audio recorder is configured")


class TranscriptionEngine:
    """Owns one recording session from ``start()`` to ``stop()`` or ``cancel()``.

    Recognizer events, recorder chunks and scheduled tasks all arrive on
    background threads. Every one of them, and every public command, mutates
    the session only while holding the engine's re-entrant lock, so listeners
    may call back into the engine.

    Listeners are plain callables passed to the constructor:

    * ``on_transcript_update(text)``: the composed transcript changed.
    * ``on_state_change(state)``: a :class:`RecordingState` transition.
    * ``on_error(error)``: a :class:`SessionError` the user should see.
    * ``on_diagnostic(message)``: non-fatal hints such as a silent microphone.

    Exceptions raised by listeners are logged and otherwise ignored.
    """

    def __init__(
        self,
        recognizer_factory: Optional[RecognizerFactory],
        recorder_factory: Optional[RecorderFactory],
        media_factory: MediaFactory,
        finalizer: FinalizationPipeline,
        recordings_dir: Path,
        config: Optional[SessionConfig] = None,
        policy: Optional[RecoveryPolicy] = None,
        wake_lock: Optional[WakeLock] = None,
        scheduler: Optional[TaskScheduler] = None,
        clock: Optional[Callable[[], float]] = None,
        on_transcript_update: Optional[Callable[[str], None]] = None,
        on_state_change: Optional[Callable[[RecordingState], None]] = None,
        on_error: Optional[Callable[[SessionError], None]] = None,
        on_diagnostic: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._config = config or SessionConfig()
        self._policy = policy or RecoveryPolicy()
        self._scheduler = scheduler or TaskScheduler()
        self._finalizer = finalizer

        self._on_transcript_update = on_transcript_update
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._on_diagnostic = on_diagnostic

        self._composer = TranscriptComposer(self._policy.pause_threshold_s, clock=clock)
        self._supervisor = RecognitionSupervisor(
            recognizer_factory or _unavailable_recognizer,
            self._scheduler,
            self._lock,
            self._policy,
            on_progress=self._handle_progress,
            on_error=self._handle_session_error,
            clock=self._composer.now,
        )
        self._controller = AudioCaptureController(
            recorder_factory or _unavailable_recorder,
            recordings_dir,
        )
        self._monitor = MicrophoneHealthMonitor(
            self._scheduler,
            self._policy.health_check_interval_s,
            self._handle_diagnostic,
        )
        self._guard = ResourceGuard(media_factory, wake_lock)

        self._session = Session()
        self._epoch = 0
        self._starting = False
        self._finalizing = False

        missing = []
        if recognizer_factory is None:
            missing.append("speech recognition")
        if recorder_factory is None:
            missing.append("audio recording")
        self._unsupported: Optional[SessionError] = None
        if missing:
            self._unsupported = SessionError(
                ErrorCategory.UNSUPPORTED,
                f"{' and '.join(missing).capitalize()} not available on this system.",
                fatal=True,
            )
            self._surface(self._unsupported)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> RecordingState:
        with self._lock:
            return self._session.state

    @property
    def transcript(self) -> str:
        with self._lock:
            return self._session.composed_transcript

    @property
    def session(self) -> Session:
        return self._session

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def supported(self) -> bool:
        return self._unsupported is None

    @property
    def resources(self) -> ResourceGuard:
        return self._guard

    # ------------------------------------------------------------------
    # Lifecycle commands
    # ------------------------------------------------------------------

    def start(self) -> bool:
        with self._lock:
            if self._unsupported is not None:
                LOGGER.warning("Cannot start recording: %s", self._unsupported.message)
                return False
            if self._session.state is not RecordingState.INACTIVE or self._starting or self._finalizing:
                LOGGER.debug("Ignoring start() while %s", self._session.state.value)
                return False
            self._starting = True
            try:
                return self._start_session()
            finally:
                self._starting = False

    def _start_session(self) -> bool:
        config = self._config
        try:
            media = self._guard.open_media(config.preferred_microphone_id)
        except MediaAccessError as exc:
            LOGGER.warning("Could not open the microphone: %s", exc)
            self._guard.release_all()
            self._surface(SessionError(ErrorCategory.MICROPHONE_ACCESS, str(exc)))
            return False

        self._epoch += 1
        session = Session()
        session.reset(now=self._composer.now())
        self._session = session
        self._transition(RecordingState.RECORDING)
        self._supervisor.start(session, StreamOptions(config.language_code, media))
        try:
            self._controller.start(media, session.audio_chunks, self._policy.audio_timeslice_ms)
        except Exception:
            LOGGER.exception("Audio recording failed to start; continuing without audio")
            self._handle_diagnostic("Audio recording is unavailable; only the transcript will be saved.")
        self._monitor.start(media)
        self._guard.acquire_wake_lock()
        self._publish(track_pauses=False)
        return True

    def pause(self) -> bool:
        with self._lock:
            if self._session.state is not RecordingState.RECORDING or self._finalizing:
                LOGGER.debug("Ignoring pause() while %s", self._session.state.value)
                return False
            self._pause_session()
            return True

    def _pause_session(self) -> None:
        session = self._session
        self._supervisor.stop()
        self._controller.pause()
        self._monitor.stop()
        self._composer.flush(session)
        self._transition(RecordingState.PAUSED)
        self._guard.release_wake_lock()
        self._publish(track_pauses=False)

    def resume(self) -> bool:
        with self._lock:
            session = self._session
            if session.state is not RecordingState.PAUSED or self._finalizing:
                LOGGER.debug("Ignoring resume() while %s", session.state.value)
                return False
            config = self._config
            try:
                media = self._guard.open_media(config.preferred_microphone_id)
            except MediaAccessError as exc:
                self._surface(SessionError(ErrorCategory.MICROPHONE_ACCESS, str(exc)))
                return False

            self._transition(RecordingState.RECORDING)
            session.last_speech_timestamp = self._composer.now()
            self._supervisor.start(session, StreamOptions(config.language_code, media))
            self._controller.resume()
            self._monitor.start(media)
            self._guard.acquire_wake_lock()
            self._publish(track_pauses=False)
            return True

    def stop(self) -> StopResult:
        """Finalize the session into a note.

        Tagging runs without the lock; a ``cancel()`` that lands meanwhile
        wins and nothing is saved.
        """

        with self._lock:
            session = self._session
            if session.state is RecordingState.INACTIVE or self._finalizing:
                LOGGER.debug("Ignoring stop() while %s", session.state.value)
                return StopResult()
            self._finalizing = True
            epoch = self._epoch

            self._supervisor.detach()
            self._monitor.stop()
            self._scheduler.cancel_all()
            self._composer.flush(session)
            transcript = self._composer.compose(session, self._flags(), track_pauses=False)
            self._emit(self._on_transcript_update, transcript)
            try:
                audio_ref = self._controller.stop()
            except Exception:
                LOGGER.exception("Failed to save the session recording")
                audio_ref = None
            self._guard.release_wake_lock()

        note = None
        failure: Optional[Exception] = None
        try:
            note = self._finalizer.prepare(transcript, audio_ref)
        except Exception as exc:
            LOGGER.exception("Failed to prepare note")
            failure = exc

        with self._lock:
            if epoch != self._epoch:
                LOGGER.info("Session was cancelled while finalizing; discarding note")
                self._controller.discard(audio_ref)
                return StopResult()
            self._finalizing = False
            note_id = ""
            if note is not None:
                try:
                    note_id = self._finalizer.persist(note)
                except Exception as exc:
                    LOGGER.exception("Failed to save note")
                    failure = exc
            if failure is not None:
                self._surface(SessionError(ErrorCategory.INTERNAL, f"Could not save the note: {failure}"))
            self._enter_inactive()
            return StopResult(id=note_id, audio_ref=audio_ref)

    def cancel(self) -> None:
        with self._lock:
            self._epoch += 1
            if self._finalizing:
                LOGGER.info("Cancelling a stop that is still finalizing")
            self._finalizing = False
            self._supervisor.detach()
            self._monitor.stop()
            self._controller.cancel()
            self._enter_inactive()

    # ------------------------------------------------------------------
    # Live configuration
    # ------------------------------------------------------------------

    def set_sentence_detection_enabled(self, enabled: bool) -> None:
        self._update_formatting(sentence_detection_enabled=bool(enabled))

    def set_grammar_correction_enabled(self, enabled: bool) -> None:
        self._update_formatting(grammar_correction_enabled=bool(enabled))

    def set_language(self, language_code: str) -> None:
        """Applies from the next recognition stream onwards."""

        with self._lock:
            self._config = self._config.model_copy(update={"language_code": language_code})

    def set_preferred_microphone(self, device_id: Optional[str]) -> None:
        """Applies the next time the microphone is opened."""

        with self._lock:
            self._config = self._config.model_copy(update={"preferred_microphone_id": device_id})

    def _update_formatting(self, **changes) -> None:
        with self._lock:
            updated = self._config.model_copy(update=changes)
            if updated == self._config:
                return
            self._config = updated
            if self._session.state is not RecordingState.INACTIVE:
                self._publish(track_pauses=False)

    # ------------------------------------------------------------------
    # Internals (lock held)
    # ------------------------------------------------------------------

    def _flags(self) -> ComposeFlags:
        return ComposeFlags.from_config(self._config)

    def _transition(self, state: RecordingState) -> None:
        self._scheduler.cancel_all()
        previous = self._session.state
        self._session.state = state
        if previous is not state:
            LOGGER.info("Recording state %s -> %s", previous.value, state.value)
            self._emit(self._on_state_change, state)

    def _enter_inactive(self) -> None:
        self._scheduler.cancel_all()
        self._guard.release_all()
        previous = self._session
        self._session = Session()
        if previous.state is not RecordingState.INACTIVE:
            LOGGER.info("Recording state %s -> %s", previous.state.value, RecordingState.INACTIVE.value)
            self._emit(self._on_state_change, RecordingState.INACTIVE)
        if previous.composed_transcript:
            self._emit(self._on_transcript_update, "")

    def _publish(self, track_pauses: bool = True) -> str:
        text = self._composer.compose(self._session, self._flags(), track_pauses=track_pauses)
        self._emit(self._on_transcript_update, text)
        return text

    def _handle_progress(self) -> None:
        session = self._session
        if session.state is not RecordingState.RECORDING:
            return
        self._publish()
        if self._config.sentence_detection_enabled:
            self._scheduler.schedule(
                PAUSE_CHECK_TASK,
                self._policy.pause_threshold_s + PAUSE_CHECK_GRACE_S,
                lambda: self._check_pause(session),
            )

    def _check_pause(self, session: Session) -> None:
        with self._lock:
            if session is not self._session or session.state is not RecordingState.RECORDING:
                return
            previous = session.composed_transcript
            text = self._composer.compose(session, self._flags())
            if text != previous:
                self._emit(self._on_transcript_update, text)

    def _handle_session_error(self, error: SessionError) -> None:
        self._surface(error)
        if (
            error.category is ErrorCategory.PERMISSION_DENIED
            and self._session.state is RecordingState.RECORDING
            and not self._finalizing
        ):
            LOGGER.warning("Speech recognition permission denied; pausing the session")
            self._pause_session()

    def _handle_diagnostic(self, message: str) -> None:
        self._emit(self._on_diagnostic, message)

    def _surface(self, error: SessionError) -> None:
        self._emit(self._on_error, error)

    def _emit(self, callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            LOGGER.exception("Session listener raised an exception")


__all__ = ["PAUSE_CHECK_GRACE_S", "TranscriptionEngine"]
