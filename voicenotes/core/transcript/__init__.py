"""Transcript composition and correction."""

from .composer import ComposeFlags, TranscriptComposer, format_transcript, render
from .grammar import correct_grammar, correct_transcript_grammar

__all__ = [
    "ComposeFlags",
    "TranscriptComposer",
    "correct_grammar",
    "correct_transcript_grammar",
    "format_transcript",
    "render",
]
