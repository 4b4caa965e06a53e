"""OpenAI-powered note tagging."""

from __future__ import annotations

import json
from typing import List, Optional

from ...config import get_settings
from ...logging import get_logger
from .base import TaggingService, unique_tags

LOGGER = get_logger(__name__)

TAGGING_PROMPT = (
    "You label personal voice notes. Reply with a JSON array of at most {limit} short, "
    "lower-case, single-word topic tags for the note. Reply with the array only."
)


def parse_tag_response(raw: str, limit: int) -> List[str]:
    """Read tags from a JSON array reply, falling back to comma separated text."""

    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        payload = json.loads(text)
    except ValueError:
        payload = [part for part in text.replace("\n", ",").split(",")]
    if not isinstance(payload, list):
        return []
    return unique_tags((str(item) for item in payload), limit)


class OpenAITaggingService(TaggingService):
    def __init__(self, model: Optional[str] = None, max_tags: Optional[int] = None) -> None:
        settings = get_settings()
        self.model = model or settings.openai_tagging_model
        self.max_tags = max_tags or settings.max_tags
        try:
            from openai import OpenAI, OpenAIError  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise RuntimeError("openai package is required for OpenAITaggingService") from exc
        client_kwargs = {}
        if settings.openai_api_key:
            client_kwargs["api_key"] = settings.openai_api_key

        try:
            self.client = OpenAI(**client_kwargs)
        except OpenAIError as exc:
            message = str(exc)
            if "api_key" in message.lower():
                raise RuntimeError(
                    "OpenAI API key not configured. Set the OPENAI_API_KEY environment variable "
                    "or run `voicenotes settings set openai_api_key <key>`."
                ) from exc
            raise RuntimeError(f"Failed to initialise OpenAI tagging client: {message}") from exc

    def tags(self, text: str) -> List[str]:
        if not text.strip():
            return []
        LOGGER.info("Requesting OpenAI tags for a %d character note", len(text))
        response = self.client.responses.create(
            model=self.model,
            input=[
                {"role": "system", "content": TAGGING_PROMPT.format(limit=self.max_tags)},
                {"role": "user", "content": text},
            ],
        )
        return parse_tag_response(response.output_text, self.max_tags)


__all__ = ["OpenAITaggingService", "parse_tag_response"]
