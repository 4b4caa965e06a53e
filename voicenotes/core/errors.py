"""Error categories surfaced by the transcription engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    UNSUPPORTED = "unsupported"
    PERMISSION_DENIED = "permission-denied"
    NO_SPEECH = "no-speech"
    NETWORK_TRANSIENT = "network-transient"
    MICROPHONE_ACCESS = "microphone-access"
    INTERNAL = "internal"


class FaultCode(str, Enum):
    """Fault codes reported by a speech recognizer stream."""

    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    NOT_ALLOWED = "not-allowed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "FaultCode":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


ERROR_MESSAGES = {
    ErrorCategory.UNSUPPORTED: "Speech recognition or audio recording is not available.",
    ErrorCategory.PERMISSION_DENIED: "Permission to use speech recognition was denied.",
    ErrorCategory.NO_SPEECH: "No speech detected. Speak louder, check the microphone or reduce background noise.",
    ErrorCategory.NETWORK_TRANSIENT: "Speech recognition unavailable. Please check your network connection.",
    ErrorCategory.MICROPHONE_ACCESS: "Could not access the microphone.",
    ErrorCategory.INTERNAL: "Unexpected transcription error.",
}

FAULT_CATEGORIES = {
    FaultCode.NO_SPEECH: ErrorCategory.NO_SPEECH,
    FaultCode.NETWORK: ErrorCategory.NETWORK_TRANSIENT,
    FaultCode.NOT_ALLOWED: ErrorCategory.PERMISSION_DENIED,
    FaultCode.AUDIO_CAPTURE: ErrorCategory.MICROPHONE_ACCESS,
    FaultCode.UNKNOWN: ErrorCategory.INTERNAL,
}

RETRYABLE_CATEGORIES = frozenset({ErrorCategory.NO_SPEECH, ErrorCategory.NETWORK_TRANSIENT})


class SessionError(RuntimeError):
    """Categorised error delivered to ``on_error`` listeners."""

    def __init__(
        self,
        category: ErrorCategory,
        message: Optional[str] = None,
        *,
        fatal: bool = False,
    ) -> None:
        self.category = category
        self.message = message or ERROR_MESSAGES[category]
        self.fatal = fatal
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.category in RETRYABLE_CATEGORIES

    def __repr__(self) -> str:
        return f"SessionError({self.category.value!r}, {self.message!r}, fatal={self.fatal})"


def classify_fault(code: FaultCode) -> ErrorCategory:
    return FAULT_CATEGORIES.get(code, ErrorCategory.INTERNAL)


__all__ = [
    "ERROR_MESSAGES",
    "ErrorCategory",
    "FaultCode",
    "SessionError",
    "classify_fault",
]
