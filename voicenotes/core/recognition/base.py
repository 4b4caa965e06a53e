"""Speech recognizer capability and its event channel."""

from __future__ import annotations

import abc
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Tuple, Union

from ..errors import FaultCode

if TYPE_CHECKING:
    from ..audio.base import MediaStream


@dataclass(frozen=True)
class Fragment:
    """One recognition result; ``index`` is its position within the stream."""

    index: int
    text: str
    is_final: bool = False


@dataclass(frozen=True)
class FragmentBatch:
    """All results the stream has produced so far, in order."""

    results: Tuple[Fragment, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RecognitionFault:
    code: FaultCode
    message: str = ""


@dataclass(frozen=True)
class StreamEnded:
    pass


RecognitionEvent = Union[FragmentBatch, RecognitionFault, StreamEnded]
RecognitionListener = Callable[[RecognitionEvent], None]


class Subscription:
    """Handle for the listener attached to an :class:`EventChannel`."""

    def __init__(self, channel: "EventChannel", listener: RecognitionListener) -> None:
        self._channel = channel
        self.listener = listener

    @property
    def active(self) -> bool:
        return self._channel.current is self

    def cancel(self) -> None:
        self._channel.detach(self)


class EventChannel:
    """Delivers events to exactly one listener.

    Subscribing swaps the listener atomically; the previous subscription stops
    receiving events as soon as the new one is installed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[Subscription] = None

    @property
    def current(self) -> Optional[Subscription]:
        return self._current

    def subscribe(self, listener: RecognitionListener) -> Subscription:
        subscription = Subscription(self, listener)
        with self._lock:
            self._current = subscription
        return subscription

    def detach(self, subscription: Subscription) -> None:
        with self._lock:
            if self._current is subscription:
                self._current = None

    def publish(self, event: RecognitionEvent) -> bool:
        with self._lock:
            subscription = self._current
        if subscription is None:
            return False
        subscription.listener(event)
        return True


class SpeechRecognizer(abc.ABC):
    """A continuous, interim-enabled dictation stream.

    One instance represents one stream; a stopped recognizer is never started
    again, callers build a fresh one instead.
    """

    def __init__(self, language_code: str = "en-US") -> None:
        self.language_code = language_code
        self._channel = EventChannel()

    def subscribe(self, listener: RecognitionListener) -> Subscription:
        return self._channel.subscribe(listener)

    def emit(self, event: RecognitionEvent) -> bool:
        return self._channel.publish(event)

    @abc.abstractmethod
    def start(self) -> None:
        """Begin producing events."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop listening; pending results are delivered, then :class:`StreamEnded`."""

    @abc.abstractmethod
    def abort(self) -> None:
        """Stop immediately and drop pending results."""


@dataclass
class StreamOptions:
    language_code: str = "en-US"
    media: Optional["MediaStream"] = None


RecognizerFactory = Callable[[StreamOptions], SpeechRecognizer]


class RecognizerUnavailableError(RuntimeError):
    """Raised by a recognizer factory when no recognizer can be created."""


__all__ = [
    "EventChannel",
    "Fragment",
    "FragmentBatch",
    "RecognitionEvent",
    "RecognitionFault",
    "RecognitionListener",
    "RecognizerFactory",
    "RecognizerUnavailableError",
    "SpeechRecognizer",
    "StreamEnded",
    "StreamOptions",
    "Subscription",
]
