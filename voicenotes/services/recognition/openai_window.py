"""Near-live recognition by transcribing fixed windows of microphone audio with OpenAI."""

from __future__ import annotations

import io
import queue
import threading
from typing import Any, Callable, List, Optional

import numpy as np

from ...config import get_settings
from ...core.audio.base import MediaStream
from ...core.errors import FaultCode
from ...core.recognition.base import (
    Fragment,
    FragmentBatch,
    RecognitionFault,
    RecognizerUnavailableError,
    SpeechRecognizer,
    StreamEnded,
    StreamOptions,
)
from ...logging import get_logger
from ...utils.audio import concatenate_chunks, ensure_mono, rms_level, write_wave

LOGGER = get_logger(__name__)

SILENCE_LEVEL = 0.005

_END = object()


def fault_code_for(exc: Exception) -> FaultCode:
    """Map an ``openai`` client exception onto a recognizer fault code."""

    try:
        import openai  # type: ignore
    except ImportError:  # pragma: no cover - runtime dependency guard
        return FaultCode.UNKNOWN
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return FaultCode.NOT_ALLOWED
    if isinstance(exc, (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)):
        return FaultCode.NETWORK
    return FaultCode.UNKNOWN


def _language(language_code: str) -> Optional[str]:
    # The transcription API takes ISO-639-1 codes ("en"), not locales ("en-US").
    primary = language_code.split("-", 1)[0].lower()
    return primary or None


def encode_window(frames: List[np.ndarray], sample_rate: int) -> bytes:
    buffer = io.BytesIO()
    write_wave(buffer, ensure_mono(concatenate_chunks(frames)), sample_rate)
    return buffer.getvalue()


class OpenAIWindowRecognizer(SpeechRecognizer):
    """Buffers ``window_s`` seconds of audio and transcribes each window.

    Transcription runs on a worker thread; each window becomes one final
    result. Silent windows are skipped so the no-speech watchdog can fire.
    """

    def __init__(
        self,
        client: Any,
        model: str,
        media: MediaStream,
        language_code: str = "en-US",
        window_s: float = 4.0,
        fault_mapper: Callable[[Exception], FaultCode] = fault_code_for,
    ) -> None:
        super().__init__(language_code)
        self._client = client
        self._model = model
        self._media = media
        self._sample_rate = media.info.sample_rate
        self._window_frames = max(1, int(window_s * self._sample_rate))
        self._fault_mapper = fault_mapper

        self._lock = threading.Lock()
        self._frames: List[np.ndarray] = []
        self._frame_count = 0
        self._windows: "queue.Queue[object]" = queue.Queue()
        self._results: List[Fragment] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._worker: Optional[threading.Thread] = None
        self._aborted = threading.Event()

    def start(self) -> None:
        if self._worker is not None:
            raise RuntimeError("A recognizer stream can only be started once")
        self._worker = threading.Thread(target=self._run, name="openai-recognizer", daemon=True)
        self._worker.start()
        self._unsubscribe = self._media.subscribe(self._on_frames)
        LOGGER.debug("OpenAI recognizer listening in %.1fs windows", self._window_frames / self._sample_rate)

    def _on_frames(self, frames: np.ndarray) -> None:
        with self._lock:
            self._frames.append(frames)
            self._frame_count += len(frames)
            if self._frame_count < self._window_frames:
                return
            window = self._take_window()
        self._windows.put(window)

    def _take_window(self) -> List[np.ndarray]:
        window, self._frames = self._frames, []
        self._frame_count = 0
        return window

    def _detach(self) -> List[np.ndarray]:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            return self._take_window()

    def stop(self) -> None:
        remainder = self._detach()
        if remainder:
            self._windows.put(remainder)
        self._windows.put(_END)

    def abort(self) -> None:
        self._aborted.set()
        self._detach()
        self._windows.put(_END)

    def _run(self) -> None:
        while True:
            window = self._windows.get()
            if window is _END:
                if not self._aborted.is_set():
                    self.emit(StreamEnded())
                return
            if self._aborted.is_set():
                continue
            try:
                self._transcribe(window)  # type: ignore[arg-type]
            except Exception as exc:
                code = self._fault_mapper(exc)
                LOGGER.warning("OpenAI transcription failed (%s): %s", code.value, exc)
                self._aborted.set()
                self.emit(RecognitionFault(code, str(exc)))

    def _transcribe(self, window: List[np.ndarray]) -> None:
        data = concatenate_chunks(window)
        if rms_level(data) < SILENCE_LEVEL:
            LOGGER.debug("Skipping silent audio window")
            return
        payload = encode_window(window, self._sample_rate)
        kwargs = {"model": self._model, "file": ("window.wav", payload)}
        language = _language(self.language_code)
        if language:
            kwargs["language"] = language
        response = self._client.audio.transcriptions.create(**kwargs)
        text = str(getattr(response, "text", "") or "").strip()
        if not text or self._aborted.is_set():
            return
        self._results.append(Fragment(len(self._results), text, is_final=True))
        self.emit(FragmentBatch(tuple(self._results)))


class OpenAIRecognizerFactory:
    """Builds one :class:`OpenAIWindowRecognizer` per stream over a shared client."""

    def __init__(self, model: Optional[str] = None, window_s: Optional[float] = None) -> None:
        settings = get_settings()
        self.model = model or settings.openai_transcription_model
        self.window_s = window_s or settings.recognition_window_s
        try:
            from openai import OpenAI, OpenAIError  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise RuntimeError("openai package is required for OpenAIRecognizerFactory") from exc
        client_kwargs = {}
        if settings.openai_api_key:
            client_kwargs["api_key"] = settings.openai_api_key

        try:
            self.client = OpenAI(**client_kwargs)
        except OpenAIError as exc:
            message = str(exc)
            if "api_key" in message.lower():
                raise RuntimeError(
                    "OpenAI API key not configured. Set the OPENAI_API_KEY environment variable "
                    "or run `voicenotes settings set openai_api_key <key>`."
                ) from exc
            raise RuntimeError(f"Failed to initialise OpenAI transcription client: {message}") from exc

    def __call__(self, options: StreamOptions) -> OpenAIWindowRecognizer:
        if options.media is None:
            raise RecognizerUnavailableError("OpenAI recognition needs an open microphone")
        return OpenAIWindowRecognizer(
            self.client,
            self.model,
            options.media,
            language_code=options.language_code,
            window_s=self.window_s,
        )


__all__ = [
    "OpenAIRecognizerFactory",
    "OpenAIWindowRecognizer",
    "encode_window",
    "fault_code_for",
]
