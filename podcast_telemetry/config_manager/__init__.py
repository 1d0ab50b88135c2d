"""High-level configuration management for podcast-telemetry."""
from __future__ import annotations

from .constants import (
    CONF_DIR,
    DEFAULT_CONFIG_PATH,
    DEFAULT_FALLBACK_STORE_KEY,
    DEFAULT_FALLBACK_STORE_PATH,
    DEFAULT_FLUSH_INTERVAL_SECONDS,
    DEFAULT_LOCAL_CONFIG_PATH,
    DEFAULT_MAX_SAMPLE_GAP_SECONDS,
    DEFAULT_TOP_MINUTES_LIMIT,
    DEFAULT_TOP_VIEWS_LIMIT,
    DEFAULT_VIEW_THRESHOLD_SECONDS,
)
from .loader import get_settings, load_configuration, reset_settings
from .settings import EnvironmentOverrides, TelemetrySettings, apply_settings_updates

__all__ = [
    "CONF_DIR",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_FALLBACK_STORE_KEY",
    "DEFAULT_FALLBACK_STORE_PATH",
    "DEFAULT_FLUSH_INTERVAL_SECONDS",
    "DEFAULT_LOCAL_CONFIG_PATH",
    "DEFAULT_MAX_SAMPLE_GAP_SECONDS",
    "DEFAULT_TOP_MINUTES_LIMIT",
    "DEFAULT_TOP_VIEWS_LIMIT",
    "DEFAULT_VIEW_THRESHOLD_SECONDS",
    "EnvironmentOverrides",
    "TelemetrySettings",
    "apply_settings_updates",
    "get_settings",
    "load_configuration",
    "reset_settings",
]
