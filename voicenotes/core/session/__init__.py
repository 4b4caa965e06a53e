"""Recording session engine and note finalization."""

from .engine import TranscriptionEngine
from .finalize import FinalizationPipeline, derive_title

__all__ = ["FinalizationPipeline", "TranscriptionEngine", "derive_title"]
