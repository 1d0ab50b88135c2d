"""Shared constants for the configuration manager package."""
from __future__ import annotations

from pathlib import Path

MODULE_DIR = Path(__file__).resolve().parent
SCRIPT_DIR = MODULE_DIR.parent.parent.resolve()
CONF_DIR = SCRIPT_DIR / "conf"
DEFAULT_CONFIG_PATH = CONF_DIR / "config.json"
DEFAULT_LOCAL_CONFIG_PATH = CONF_DIR / "config.local.json"

DEFAULT_FLUSH_INTERVAL_SECONDS = 15.0
DEFAULT_VIEW_THRESHOLD_SECONDS = 5.0
DEFAULT_MAX_SAMPLE_GAP_SECONDS = 5.0
DEFAULT_FALLBACK_STORE_KEY = "podcast_episode_views"
DEFAULT_FALLBACK_STORE_PATH = Path("storage") / f"{DEFAULT_FALLBACK_STORE_KEY}.json"
DEFAULT_TOP_VIEWS_LIMIT = 10
DEFAULT_TOP_MINUTES_LIMIT = 5

SENSITIVE_CONFIG_KEYS = {"database_url"}

__all__ = [
    "MODULE_DIR",
    "SCRIPT_DIR",
    "CONF_DIR",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_LOCAL_CONFIG_PATH",
    "DEFAULT_FLUSH_INTERVAL_SECONDS",
    "DEFAULT_VIEW_THRESHOLD_SECONDS",
    "DEFAULT_MAX_SAMPLE_GAP_SECONDS",
    "DEFAULT_FALLBACK_STORE_KEY",
    "DEFAULT_FALLBACK_STORE_PATH",
    "DEFAULT_TOP_VIEWS_LIMIT",
    "DEFAULT_TOP_MINUTES_LIMIT",
    "SENSITIVE_CONFIG_KEYS",
]
