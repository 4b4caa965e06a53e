"""Logging helpers for voicenotes."""

from __future__ import annotations

import logging
from typing import Optional, Union

_LOGGER_CONFIGURED = False

# Third-party loggers that are chatty at INFO while a session is running.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Union[int, str, None] = None) -> None:
    """Configure root logging once for the application.

    ``level`` accepts either a numeric level or a level name such as ``"debug"``.
    """

    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED:
        if level is not None:
            logging.getLogger().setLevel(_resolve_level(level))
        return

    logging.basicConfig(
        level=_resolve_level(level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOGGER_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or "voicenotes")


__all__ = ["configure_logging", "get_logger"]
