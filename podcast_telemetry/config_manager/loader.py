"""Configuration loading utilities."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from podcast_telemetry import logging_manager

from .constants import DEFAULT_CONFIG_PATH, DEFAULT_LOCAL_CONFIG_PATH, SENSITIVE_CONFIG_KEYS
from .settings import TelemetrySettings, load_environment_overrides

logger = logging_manager.get_logger().getChild("config")


_ACTIVE_SETTINGS: Optional[TelemetrySettings] = None


def _read_config_json(path: Optional[Path], label: str = "configuration") -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("No %s found at %s.", label, path)
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(
            "Error loading %s from %s: %s. Proceeding without it.",
            label,
            path,
            exc,
            extra={"event": "config.file.invalid"},
        )
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s at %s; expected a JSON object.", label, path)
        return {}
    logger.debug("Loaded %s from %s", label, path)
    return data


def load_configuration(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Load the layered configuration and return a dictionary view.

    Layers, lowest precedence first: model defaults, ``conf/config.json``,
    ``conf/config.local.json`` (or ``config_file``), environment variables.
    """

    global _ACTIVE_SETTINGS

    payload: Dict[str, Any] = {}
    payload.update(_read_config_json(DEFAULT_CONFIG_PATH, label="default configuration"))

    if config_file:
        override_path = Path(config_file).expanduser()
        if not override_path.is_absolute():
            override_path = (Path.cwd() / override_path).resolve()
    else:
        override_path = DEFAULT_LOCAL_CONFIG_PATH
    payload.update(_read_config_json(override_path, label="local configuration"))
    payload.update(load_environment_overrides())

    try:
        settings = TelemetrySettings.model_validate(payload)
    except ValidationError as exc:
        raise RuntimeError("Invalid configuration detected") from exc

    _ACTIVE_SETTINGS = settings
    logging_manager.configure_logging_level(debug_enabled=settings.debug)
    return settings.model_dump(mode="python", exclude=SENSITIVE_CONFIG_KEYS)


def get_settings() -> TelemetrySettings:
    """Return the currently loaded :class:`TelemetrySettings` instance."""

    global _ACTIVE_SETTINGS
    if _ACTIVE_SETTINGS is None:
        load_configuration()
    assert _ACTIVE_SETTINGS is not None
    return _ACTIVE_SETTINGS


def reset_settings() -> None:
    """Forget the cached settings so the next access reloads them."""

    global _ACTIVE_SETTINGS
    _ACTIVE_SETTINGS = None


__all__ = ["get_settings", "load_configuration", "reset_settings"]
