"""Rule-based grammar correction for dictated text.

The rules run in a fixed order; later rules assume the earlier ones already
normalised the text. The whole pass repeats until the text stops changing, so
``correct_grammar(correct_grammar(x)) == correct_grammar(x)``.
"""

from __future__ import annotations

import re
from typing import Callable, List, Tuple, Union

Replacement = Union[str, Callable[["re.Match[str]"], str]]

# Upper bound on rule passes; real text converges in two or three.
MAX_PASSES = 8


def _keep_case(replacement: str) -> Callable[["re.Match[str]"], str]:
    def _replace(match: "re.Match[str]") -> str:
        if match.group(0)[:1].isupper():
            return replacement[:1].upper() + replacement[1:]
        return replacement

    return _replace


def _phrase(words: str) -> "re.Pattern[str]":
    head, rest = words[0], words[1:]
    return re.compile(rf"\b[{head.upper()}{head}]{re.escape(rest)}\b")


NEGATIVE_CONTRACTIONS = {
    "can not": "cannot",
    "will not": "won't",
    "shall not": "shan't",
    "is not": "isn't",
    "are not": "aren't",
    "do not": "don't",
    "does not": "doesn't",
    "did not": "didn't",
    "has not": "hasn't",
    "have not": "haven't",
    "had not": "hadn't",
    "could not": "couldn't",
    "would not": "wouldn't",
    "should not": "shouldn't",
}

MISSPELLINGS = {
    "alot": "a lot",
    "seperate": "separate",
    "definately": "definitely",
    "recieve": "receive",
    "untill": "until",
    "occured": "occurred",
    "tommorrow": "tomorrow",
    "tommorow": "tomorrow",
    "accomodate": "accommodate",
}

SUBJECT_VERB_AGREEMENT = {
    "they is": "they are",
    "we is": "we are",
    "you is": "you are",
    "he are": "he is",
    "she are": "she is",
    "it are": "it is",
}


def _capitalize_after_punctuation(match: "re.Match[str]") -> str:
    return match.group(1) + match.group(2).upper()


def _article(match: "re.Match[str]") -> str:
    article = "An" if match.group(1) == "A" else "an"
    return f"{article} {match.group(2)}"


def _build_rules() -> List[Tuple["re.Pattern[str]", Replacement]]:
    rules: List[Tuple["re.Pattern[str]", Replacement]] = [
        (re.compile(r"([.!?]\s+)([a-z])"), _capitalize_after_punctuation),
        (re.compile(r"\s{2,}"), " "),
    ]
    for catalogue in (NEGATIVE_CONTRACTIONS, MISSPELLINGS, SUBJECT_VERB_AGREEMENT):
        for wrong, right in catalogue.items():
            rules.append((_phrase(wrong), _keep_case(right)))
    rules.extend(
        [
            (re.compile(r"\b([Tt]here) is (\w+ and \w+)\b"), r"\1 are \2"),
            (re.compile(r"\b([Aa]) ([aeiouAEIOU]\w*)"), _article),
            (re.compile(r"\b(\w+)(\s+\1\b)+", re.IGNORECASE), r"\1"),
            (re.compile(r"([.!?,;:])([A-Za-z])"), r"\1 \2"),
            (re.compile(r"\s+([.!?,;:])"), r"\1"),
        ]
    )
    return rules


GRAMMAR_RULES = _build_rules()


def _apply_rules(text: str) -> str:
    for pattern, replacement in GRAMMAR_RULES:
        text = pattern.sub(replacement, text)
    if text and text[0].islower():
        text = text[0].upper() + text[1:]
    return text


def correct_grammar(text: str) -> str:
    """Apply the rule table to a single line of text."""

    if not text:
        return text
    corrected = text
    for _ in range(MAX_PASSES):
        updated = _apply_rules(corrected)
        if updated == corrected:
            break
        corrected = updated
    return corrected


def correct_transcript_grammar(transcript: str) -> str:
    """Correct each line separately so line breaks survive."""

    if not transcript:
        return transcript
    return "\n".join(correct_grammar(line) for line in transcript.split("\n"))


__all__ = [
    "GRAMMAR_RULES",
    "MISSPELLINGS",
    "NEGATIVE_CONTRACTIONS",
    "SUBJECT_VERB_AGREEMENT",
    "correct_grammar",
    "correct_transcript_grammar",
]
