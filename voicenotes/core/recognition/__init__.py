"""Speech recognition capability and stream supervision."""

from .base import (
    Fragment,
    FragmentBatch,
    RecognitionEvent,
    RecognitionFault,
    RecognizerFactory,
    SpeechRecognizer,
    StreamEnded,
    StreamOptions,
    Subscription,
)
from .supervisor import RecognitionSupervisor

__all__ = [
    "Fragment",
    "FragmentBatch",
    "RecognitionEvent",
    "RecognitionFault",
    "RecognitionSupervisor",
    "RecognizerFactory",
    "SpeechRecognizer",
    "StreamEnded",
    "StreamOptions",
    "Subscription",
]
