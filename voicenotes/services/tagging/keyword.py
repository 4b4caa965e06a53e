"""Rule-based tagging from keyword catalogues."""

from __future__ import annotations

import re
from typing import Dict, List, Sequence

from .base import TaggingService, unique_tags

CATEGORIES: Dict[str, Sequence[str]] = {
    "work": (
        "meeting", "project", "deadline", "client", "presentation", "report", "email", "task",
        "work", "job", "office", "business", "colleague", "manager", "team", "boss",
    ),
    "shopping": (
        "buy", "purchase", "shopping", "store", "grocery", "groceries", "list", "item", "items",
        "shop", "mall", "market", "price", "discount", "sale",
    ),
    "health": (
        "doctor", "appointment", "medicine", "exercise", "workout", "fitness", "diet", "nutrition",
        "health", "medical", "hospital", "symptom", "pain", "therapy",
    ),
    "travel": (
        "trip", "travel", "vacation", "flight", "hotel", "booking", "reservation", "journey",
        "destination", "tourist", "passport", "visa", "airport",
    ),
    "education": (
        "study", "learn", "course", "class", "school", "university", "college", "education",
        "homework", "assignment", "exam", "test", "lecture", "professor", "student",
    ),
    "finance": (
        "money", "budget", "expense", "payment", "bill", "invoice", "cost", "price", "financial",
        "bank", "credit", "debit", "loan", "invest", "tax",
    ),
    "personal": (
        "family", "friend", "home", "personal", "private", "life", "relationship", "birthday",
        "anniversary", "celebration",
    ),
    "idea": ("idea", "concept", "thought", "thinking", "brainstorm", "creative", "innovation", "plan", "strategy"),
    "todo": ("todo", "to-do", "task", "complete", "finish", "done", "checklist", "pending", "reminder", "schedule"),
    "technology": (
        "computer", "software", "hardware", "app", "application", "website", "internet", "tech",
        "technology", "digital", "device", "mobile", "phone",
    ),
}

ACTION_VERBS = (
    "call", "email", "write", "send", "buy", "purchase", "make", "create", "finish", "complete",
    "schedule", "plan", "organize", "arrange", "prepare", "review", "check", "update", "contact",
)

TIME_REFERENCES = (
    "today", "tomorrow", "tonight", "yesterday", "morning", "afternoon", "evening",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "next week", "next month", "o'clock",
)

URGENT_WORDS = ("urgent", "immediately", "asap", "emergency", "right away")

POSITIVE_WORDS = (
    "good", "great", "excellent", "amazing", "wonderful", "fantastic", "awesome", "happy", "love",
    "like", "best",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "horrible", "poor", "worst", "hate", "dislike", "disappointed",
    "disappointing", "sad", "angry",
)

QUESTION_OPENERS = (
    "who", "what", "when", "where", "why", "how", "is", "are", "can", "could", "should",
    "would", "will", "do", "does", "did",
)

_HASHTAG = re.compile(r"#(\w+)")
_CLOCK_TIME = re.compile(r"\b\d{1,2}(:\d{2})\s*(am|pm)?\b|\b\d{1,2}\s*(am|pm)\b", re.IGNORECASE)
_SENTENCES = re.compile(r"[^.!?\n]+[.!?]?")


def _contains(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def _count(text: str, words: Sequence[str]) -> int:
    return sum(1 for word in words if _contains(text, word))


def _has_question(text: str) -> bool:
    for sentence in _SENTENCES.findall(text):
        stripped = sentence.strip()
        if not stripped:
            continue
        if stripped.endswith("?"):
            return True
        first = stripped.split(None, 1)[0].lower()
        if first in QUESTION_OPENERS and not stripped.endswith((".", "!")):
            return True
    return False


class KeywordTaggingService(TaggingService):
    """Tags notes from category catalogues and a handful of cue-word rules."""

    def __init__(self, max_tags: int = 5, min_length: int = 10) -> None:
        self.max_tags = max_tags
        self.min_length = min_length

    def tags(self, text: str) -> List[str]:
        if not text or len(text.strip()) < self.min_length:
            return []
        lowered = text.lower()
        candidates: List[str] = [
            category
            for category, keywords in CATEGORIES.items()
            if any(_contains(lowered, keyword) for keyword in keywords)
        ]

        has_action = any(_contains(lowered, verb) for verb in ACTION_VERBS)
        has_time = bool(_CLOCK_TIME.search(text)) or any(
            _contains(lowered, word) for word in TIME_REFERENCES
        )
        if has_action:
            candidates.append("action")
        if has_time:
            candidates.append("schedule")
        if has_action and has_time:
            candidates.append("todo")
        if _has_question(text):
            candidates.append("question")

        candidates.extend(match.lower() for match in _HASHTAG.findall(text))

        if any(_contains(lowered, word) for word in URGENT_WORDS):
            candidates.append("urgent")

        positive = _count(lowered, POSITIVE_WORDS)
        negative = _count(lowered, NEGATIVE_WORDS)
        if positive > negative and positive > 1:
            candidates.append("positive")
        elif negative > positive and negative > 1:
            candidates.append("negative")

        return unique_tags(candidates, self.max_tags)


__all__ = ["ACTION_VERBS", "CATEGORIES", "KeywordTaggingService"]
