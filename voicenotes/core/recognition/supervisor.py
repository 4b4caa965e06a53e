"""Supervision of the live speech recognition stream."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from ...config import RecoveryPolicy
from ...data.models import RecordingState, Session
from ...logging import get_logger
from ..errors import RETRYABLE_CATEGORIES, ErrorCategory, FaultCode, SessionError, classify_fault
from ..scheduler import RETRY_TASK, WATCHDOG_TASK, TaskScheduler
from .base import (
    FragmentBatch,
    RecognitionEvent,
    RecognitionFault,
    RecognizerFactory,
    SpeechRecognizer,
    StreamEnded,
    StreamOptions,
    Subscription,
)

LOGGER = get_logger(__name__)


class RecognitionSupervisor:
    """Owns the recognition stream of a session.

    Each stream is a fresh recognizer from ``factory``. Events are tagged with
    the generation of the stream that produced them and events from any older
    generation are dropped. All session mutations happen under ``lock``, which
    is shared with the engine.

    The session's ``result_cursor`` is absolute across restarts: a stream
    remembers the cursor it started at and offsets its result indices by it.
    """

    def __init__(
        self,
        factory: RecognizerFactory,
        scheduler: TaskScheduler,
        lock: threading.RLock,
        policy: RecoveryPolicy,
        on_progress: Callable[[], None],
        on_error: Callable[[SessionError], None],
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._factory = factory
        self._scheduler = scheduler
        self._lock = lock
        self._policy = policy
        self._on_progress = on_progress
        self._on_error = on_error
        self._clock = clock or time.monotonic

        self._session: Optional[Session] = None
        self._options = StreamOptions()
        self._recognizer: Optional[SpeechRecognizer] = None
        self._subscription: Optional[Subscription] = None
        self._generation = 0
        self._stream_base = 0
        self._restarting = False
        self._halted = False
        self._exhausted = False

    @property
    def active(self) -> bool:
        return self._recognizer is not None

    @property
    def restarting(self) -> bool:
        return self._restarting

    @property
    def halted(self) -> bool:
        return self._halted

    # ------------------------------------------------------------------
    # Commands (caller holds the lock)
    # ------------------------------------------------------------------

    def start(self, session: Session, options: StreamOptions) -> None:
        """Subscribe a fresh stream for ``session`` and arm the watchdog."""

        self._session = session
        self._options = options
        session.retry_count = 0
        self._restarting = False
        self._halted = False
        self._exhausted = False
        self._scheduler.cancel(RETRY_TASK)
        self._open_stream()
        self._arm_watchdog(session)

    def stop(self) -> None:
        self._quiesce()
        self._close_stream(abort=False)

    def abort(self) -> None:
        self._quiesce()
        self._close_stream(abort=True)

    def detach(self) -> None:
        self.abort()
        self._session = None

    # ------------------------------------------------------------------
    # Stream management
    # ------------------------------------------------------------------

    def _quiesce(self) -> None:
        self._restarting = False
        self._scheduler.cancel(RETRY_TASK)
        self._scheduler.cancel(WATCHDOG_TASK)

    def _open_stream(self) -> None:
        session = self._session
        if session is None:
            return
        self._close_stream(abort=True)
        generation = self._generation
        self._stream_base = session.result_cursor
        try:
            recognizer = self._factory(self._options)
            self._recognizer = recognizer
            self._subscription = recognizer.subscribe(
                lambda event, gen=generation: self._handle_event(gen, event)
            )
            recognizer.start()
        except Exception as exc:
            LOGGER.exception("Failed to start speech recognition stream")
            self._close_stream(abort=True)
            self._halted = True
            self._surface(
                SessionError(ErrorCategory.INTERNAL, f"Could not start speech recognition: {exc}")
            )
            return
        LOGGER.debug("Recognition stream %d started at cursor %d", generation, self._stream_base)

    def _close_stream(self, abort: bool) -> None:
        subscription, recognizer = self._subscription, self._recognizer
        self._subscription = None
        self._recognizer = None
        self._generation += 1
        if subscription is not None:
            subscription.cancel()
        if recognizer is None:
            return
        try:
            if abort:
                recognizer.abort()
            else:
                recognizer.stop()
        except Exception:
            LOGGER.warning("Error while closing recognition stream", exc_info=True)

    def _halt(self) -> None:
        self._halted = True
        self._restarting = False
        self._scheduler.cancel(RETRY_TASK)
        self._close_stream(abort=True)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _handle_event(self, generation: int, event: RecognitionEvent) -> None:
        with self._lock:
            if generation != self._generation or self._session is None:
                LOGGER.debug("Dropping %s from superseded stream %d", type(event).__name__, generation)
                return
            if isinstance(event, FragmentBatch):
                self._consume(self._session, event)
            elif isinstance(event, RecognitionFault):
                self.handle_fault(event)
            elif isinstance(event, StreamEnded):
                self._handle_end(self._session)

    def _consume(self, session: Session, batch: FragmentBatch) -> None:
        appended = False
        interim_parts = []
        for fragment in batch.results:
            position = self._stream_base + fragment.index
            if position < session.result_cursor:
                continue
            if fragment.is_final:
                session.final_transcript += fragment.text + " "
                session.result_cursor = position + 1
                appended = True
            else:
                interim_parts.append(fragment.text)

        interim = "".join(interim_parts)
        progressed = appended or (bool(interim) and interim != session.interim_transcript)
        session.interim_transcript = interim
        session.last_speech_timestamp = self._clock()
        if progressed:
            session.retry_count = 0
            self._exhausted = False
            self._scheduler.cancel(WATCHDOG_TASK)
        self._on_progress()

    def handle_fault(self, fault: RecognitionFault) -> None:
        """Apply the retry policy to ``fault``; the caller holds the lock."""

        session = self._session
        if session is None:
            return
        category = classify_fault(fault.code)
        LOGGER.info("Recognition fault %s (%s)", fault.code.value, fault.message or "no detail")

        if category in RETRYABLE_CATEGORIES:
            if session.state is not RecordingState.RECORDING:
                return
            if session.retry_count < self._policy.max_retries:
                session.retry_count += 1
            elif not self._exhausted:
                # Advise once per exhaustion; the stream keeps restarting.
                self._exhausted = True
                self._surface(SessionError(category, fatal=True))
            self._schedule_retry(session, category)
            return

        self._halt()
        self._surface(SessionError(category, fatal=category is ErrorCategory.PERMISSION_DENIED))

    def _schedule_retry(self, session: Session, category: ErrorCategory) -> None:
        self._restarting = True
        self._close_stream(abort=True)
        if category is ErrorCategory.NETWORK_TRANSIENT:
            delay = self._policy.network_backoff_s
        else:
            delay = self._policy.no_speech_backoff_s
        LOGGER.warning(
            "%s; retrying speech recognition (%d/%d) in %.1fs",
            category.value,
            session.retry_count,
            self._policy.max_retries,
            delay,
        )
        self._scheduler.schedule(RETRY_TASK, delay, lambda: self._retry(session))

    def _retry(self, session: Session) -> None:
        with self._lock:
            if session is not self._session or not self._restarting:
                return
            if session.state is not RecordingState.RECORDING:
                return
            self._restarting = False
            self._open_stream()

    def _handle_end(self, session: Session) -> None:
        # The stream already ended; only the subscription needs releasing.
        self._recognizer = None
        self._close_stream(abort=False)
        if session.state is not RecordingState.RECORDING or self._restarting or self._halted:
            return
        LOGGER.debug("Recognition stream ended while recording; restarting")
        self._open_stream()

    def _arm_watchdog(self, session: Session) -> None:
        self._scheduler.schedule(
            WATCHDOG_TASK,
            self._policy.no_speech_timeout_s,
            lambda: self._watchdog_fired(session),
        )

    def _watchdog_fired(self, session: Session) -> None:
        with self._lock:
            if session is not self._session or session.state is not RecordingState.RECORDING:
                return
            if session.has_content:
                return
            LOGGER.info("No speech within %.1fs", self._policy.no_speech_timeout_s)
            self.handle_fault(RecognitionFault(FaultCode.NO_SPEECH, "watchdog timeout"))

    def _surface(self, error: SessionError) -> None:
        LOGGER.warning("Surfacing %s error: %s", error.category.value, error.message)
        self._on_error(error)


__all__ = ["RecognitionSupervisor"]
