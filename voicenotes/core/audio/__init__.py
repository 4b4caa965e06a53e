"""Audio capture package."""

from .base import AudioRecorder, CaptureError, CaptureInfo, MediaAccessError, MediaStream
from .controller import AudioCaptureController
from .monitor import MicrophoneHealthMonitor
from .recorder import MediaStreamRecorder

__all__ = [
    "AudioCaptureController",
    "AudioRecorder",
    "CaptureError",
    "CaptureInfo",
    "MediaAccessError",
    "MediaStream",
    "MediaStreamRecorder",
    "MicrophoneHealthMonitor",
]
