"""Tagging service abstractions."""

from __future__ import annotations

import abc
from typing import Iterable, List


class TaggingService(abc.ABC):
    @abc.abstractmethod
    def tags(self, text: str) -> List[str]:
        """Return ordered, unique, lower-case tags describing ``text``."""
        raise NotImplementedError


def unique_tags(candidates: Iterable[str], limit: int) -> List[str]:
    seen: List[str] = []
    for candidate in candidates:
        tag = candidate.strip().lower().lstrip("#")
        if tag and tag not in seen:
            seen.append(tag)
        if len(seen) >= limit:
            break
    return seen


__all__ = ["TaggingService", "unique_tags"]
