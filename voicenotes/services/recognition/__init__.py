"""Speech recognizer backends."""

from .dummy import ScriptedSpeechRecognizer, scripted_recognizer_factory

__all__ = ["ScriptedSpeechRecognizer", "scripted_recognizer_factory"]
