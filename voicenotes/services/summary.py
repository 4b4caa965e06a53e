"""Extractive summaries for stored notes."""

from __future__ import annotations

import re
from collections import Counter
from typing import List

MIN_SUMMARY_INPUT = 100
MIN_SENTENCE_LENGTH = 10

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "is", "are", "was", "were",
        "in", "on", "at", "to", "for", "with", "by", "about", "as", "of",
        "that", "this", "these", "those", "it", "its", "i", "my", "me",
        "you", "your", "we", "our", "they", "their", "he", "his", "she", "her",
    }
)

_SENTENCE_END = re.compile(r"(?<=[.!?])(?:\s+|$)")
_WORD = re.compile(r"\b\w+\b")


def split_sentences(text: str) -> List[str]:
    sentences = [part.strip() for part in _SENTENCE_END.split(text)]
    return [sentence for sentence in sentences if len(sentence) > MIN_SENTENCE_LENGTH]


def _words(text: str) -> List[str]:
    return _WORD.findall(text.lower())


def summarize_text(text: str, max_sentences: int = 3) -> str:
    """Pick the ``max_sentences`` highest scoring sentences, in original order.

    Sentences are scored by the average corpus frequency of their words, with
    stop words ignored. Short texts are returned unchanged.
    """

    if not text or len(text) < MIN_SUMMARY_INPUT:
        return text
    sentences = split_sentences(text)
    if len(sentences) <= max_sentences:
        return text

    frequency = Counter(word for word in _words(text) if word not in STOP_WORDS and len(word) > 1)

    def score(sentence: str) -> float:
        words = _words(sentence)
        return sum(frequency.get(word, 0) for word in words) / max(1, len(words))

    ranked = sorted(range(len(sentences)), key=lambda index: score(sentences[index]), reverse=True)
    chosen = sorted(ranked[:max_sentences])
    return " ".join(sentences[index] for index in chosen)


__all__ = ["summarize_text", "split_sentences"]
