"""Global configuration using Pydantic settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application wide settings loaded from ``VOICENOTES_*`` environment variables."""

    database_path: Path = Field(default_factory=lambda: Path("voicenotes.db"))
    recordings_dir: Path = Field(default_factory=lambda: Path("recordings"))
    log_level: str = "INFO"

    # Capture
    sample_rate: int = 16_000
    channels: int = 1
    audio_timeslice_ms: int = 1000
    preferred_microphone_id: Optional[str] = None

    # Transcript formatting
    language_code: str = "en-US"
    sentence_detection_enabled: bool = True
    grammar_correction_enabled: bool = False
    pause_threshold_ms: int = 1000

    # Recognition recovery
    no_speech_timeout_s: float = 5.0
    max_recognition_retries: int = 3
    no_speech_retry_delay_s: float = 1.0
    network_retry_delay_s: float = 1.5
    health_check_interval_s: float = 2.0

    # Backends
    recognition_backend: str = "dummy"
    recognition_window_s: float = 4.0
    tagging_backend: str = "keyword"
    max_tags: int = 5
    openai_transcription_model: str = "gpt-4o-mini-transcribe"
    openai_tagging_model: str = "gpt-4o-mini"
    openai_api_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="VOICENOTES_",
        env_file=".env",
        case_sensitive=False,
    )


class SessionConfig(BaseModel):
    """Live-mutable options of a transcription session.

    Defaults mirror :class:`Settings`; an engine keeps its own copy so callers
    may flip formatting flags while recording.
    """

    language_code: str = "en-US"
    sentence_detection_enabled: bool = True
    grammar_correction_enabled: bool = False
    preferred_microphone_id: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SessionConfig":
        settings = settings or get_settings()
        return cls(
            language_code=settings.language_code,
            sentence_detection_enabled=settings.sentence_detection_enabled,
            grammar_correction_enabled=settings.grammar_correction_enabled,
            preferred_microphone_id=settings.preferred_microphone_id,
        )


class RecoveryPolicy(BaseModel):
    """Timing and retry budget used by the session engine."""

    max_retries: int = 3
    no_speech_backoff_s: float = 1.0
    network_backoff_s: float = 1.5
    no_speech_timeout_s: float = 5.0
    pause_threshold_s: float = 1.0
    health_check_interval_s: float = 2.0
    audio_timeslice_ms: int = 1000

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RecoveryPolicy":
        settings = settings or get_settings()
        return cls(
            max_retries=settings.max_recognition_retries,
            no_speech_backoff_s=settings.no_speech_retry_delay_s,
            network_backoff_s=settings.network_retry_delay_s,
            no_speech_timeout_s=settings.no_speech_timeout_s,
            pause_threshold_s=settings.pause_threshold_ms / 1000.0,
            health_check_interval_s=settings.health_check_interval_s,
            audio_timeslice_ms=settings.audio_timeslice_ms,
        )


_settings: Optional[Settings] = None


_MODEL_CONFIG: Dict[str, Any] = dict(Settings.model_config or {})
_ENV_PREFIX: str = (_MODEL_CONFIG.get("env_prefix") or "").upper()
_CASE_SENSITIVE: bool = bool(_MODEL_CONFIG.get("case_sensitive", True))
_ENV_FILE = _MODEL_CONFIG.get("env_file") or ".env"
_ENV_PATH = Path(_ENV_FILE)


@dataclass
class EnvironmentSetting:
    """A configuration option backed by an environment variable."""

    field: str
    env_name: str
    value: Any
    default: Any


class EnvironmentSettingError(RuntimeError):
    """Raised when an environment-backed configuration update is rejected."""


def _env_key(field: str) -> str:
    key = f"{_ENV_PREFIX}{field}" if _ENV_PREFIX else field
    return key if _CASE_SENSITIVE else key.upper()


def _field_default(field_info) -> Any:
    if field_info.default is not None:
        return field_info.default
    if field_info.default_factory is not None:  # type: ignore[truthy-function]
        return field_info.default_factory()
    return None


def _read_env_lines() -> Iterable[str]:
    if not _ENV_PATH.exists():
        return []
    return _ENV_PATH.read_text().splitlines()


def _write_env_value(env_name: str, value: Optional[str]) -> None:
    kept = []
    replaced = False
    for line in _read_env_lines():
        key = line.split("=", 1)[0].strip() if "=" in line else None
        if key != env_name or line.lstrip().startswith("#"):
            kept.append(line)
            continue
        replaced = True
        if value is not None:
            kept.append(f"{env_name}={value}")
    if not replaced and value is not None:
        kept.append(f"{env_name}={value}")

    _replace_env_lines(kept)


def _replace_env_lines(lines: List[str]) -> None:
    if lines:
        _ENV_PATH.write_text("\n".join(lines) + "\n")
    elif _ENV_PATH.exists():
        _ENV_PATH.unlink()


def list_environment_settings(settings: Optional[Settings] = None) -> Iterable[EnvironmentSetting]:
    """Yield every setting together with its environment variable name."""

    settings = settings or get_settings()
    for name, field in Settings.model_fields.items():
        yield EnvironmentSetting(
            field=name,
            env_name=_env_key(name),
            value=getattr(settings, name),
            default=_field_default(field),
        )


def _apply_setting_update(field: str, raw_value: Optional[str]) -> Settings:
    if field not in Settings.model_fields:
        raise EnvironmentSettingError(f"Unknown setting: {field}")

    env_name = _env_key(field)
    previous = os.environ.get(env_name)
    previous_lines = list(_read_env_lines())

    if raw_value is None:
        os.environ.pop(env_name, None)
    else:
        os.environ[env_name] = raw_value
    # Settings() also reads the .env file.
    _write_env_value(env_name, raw_value)

    try:
        new_settings = Settings()
    except ValidationError as exc:
        if previous is None:
            os.environ.pop(env_name, None)
        else:
            os.environ[env_name] = previous
        _replace_env_lines(previous_lines)
        raise EnvironmentSettingError(str(exc)) from exc

    global _settings
    _settings = new_settings
    return new_settings


def update_environment_setting(field: str, raw_value: str) -> Settings:
    """Override ``field`` through its environment variable and reload settings."""

    return _apply_setting_update(field, raw_value)


def clear_environment_setting(field: str) -> Settings:
    """Drop the environment override for ``field`` and reload settings."""

    return _apply_setting_update(field, None)


def get_settings() -> Settings:
    """Return a singleton instance of the application settings."""

    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


__all__ = [
    "EnvironmentSetting",
    "EnvironmentSettingError",
    "RecoveryPolicy",
    "SessionConfig",
    "Settings",
    "clear_environment_setting",
    "get_settings",
    "list_environment_settings",
    "update_environment_setting",
]
