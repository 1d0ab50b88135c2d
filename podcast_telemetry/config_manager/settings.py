"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from podcast_telemetry import logging_manager

from .constants import (
    DEFAULT_FALLBACK_STORE_KEY,
    DEFAULT_FALLBACK_STORE_PATH,
    DEFAULT_FLUSH_INTERVAL_SECONDS,
    DEFAULT_MAX_SAMPLE_GAP_SECONDS,
    DEFAULT_TOP_MINUTES_LIMIT,
    DEFAULT_TOP_VIEWS_LIMIT,
    DEFAULT_VIEW_THRESHOLD_SECONDS,
)

logger = logging_manager.get_logger()


class TelemetrySettings(BaseModel):
    """Typed representation of the telemetry configuration."""

    model_config = ConfigDict(extra="allow")

    flush_interval_seconds: float = Field(default=DEFAULT_FLUSH_INTERVAL_SECONDS, gt=0)
    view_threshold_seconds: float = Field(default=DEFAULT_VIEW_THRESHOLD_SECONDS, ge=0)
    max_sample_gap_seconds: float = Field(default=DEFAULT_MAX_SAMPLE_GAP_SECONDS, gt=0)
    fallback_store_path: str = str(DEFAULT_FALLBACK_STORE_PATH)
    fallback_store_key: str = DEFAULT_FALLBACK_STORE_KEY
    top_views_limit: int = Field(default=DEFAULT_TOP_VIEWS_LIMIT, ge=1)
    top_minutes_limit: int = Field(default=DEFAULT_TOP_MINUTES_LIMIT, ge=1)
    database_url: Optional[SecretStr] = None
    debug: bool = False


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    flush_interval_seconds: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("PODCAST_FLUSH_INTERVAL_SECONDS", "PODCAST_FLUSH_INTERVAL"),
    )
    view_threshold_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("PODCAST_VIEW_THRESHOLD_SECONDS")
    )
    max_sample_gap_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("PODCAST_MAX_SAMPLE_GAP_SECONDS")
    )
    fallback_store_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("PODCAST_FALLBACK_PATH")
    )
    fallback_store_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("PODCAST_FALLBACK_KEY")
    )
    top_views_limit: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("PODCAST_TOP_VIEWS_LIMIT")
    )
    top_minutes_limit: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("PODCAST_TOP_MINUTES_LIMIT")
    )
    database_url: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("DATABASE_URL", "PODCAST_DATABASE_URL")
    )
    debug: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("PODCAST_DEBUG")
    )


def load_environment_overrides() -> Dict[str, Any]:
    """Return configuration overrides sourced from environment variables."""

    try:
        overrides = EnvironmentOverrides()
    except ValidationError as exc:
        logger.warning(
            "Invalid environment configuration detected; using defaults.",
            extra={"event": "config.env.validation_error", "error": str(exc)},
        )
        return {}
    return overrides.model_dump(exclude_none=True)


def apply_settings_updates(
    settings: TelemetrySettings, updates: Dict[str, Any]
) -> TelemetrySettings:
    """Return a copy of ``settings`` updated with ``updates`` if any values exist."""

    if not updates:
        return settings
    return settings.model_copy(update=updates)


__all__ = [
    "EnvironmentOverrides",
    "TelemetrySettings",
    "apply_settings_updates",
    "load_environment_overrides",
]
