import os
import tempfile
from pathlib import Path

import pytest

# Must be set before podcast_telemetry.logging_manager is imported.
os.environ.setdefault(
    "PODCAST_LOG_DIR", str(Path(tempfile.gettempdir()) / "podcast-telemetry-tests")
)

from podcast_telemetry.config_manager import loader as cfg_loader  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Start every test from freshly loaded settings."""

    for name in (
        "PODCAST_FLUSH_INTERVAL_SECONDS",
        "PODCAST_FLUSH_INTERVAL",
        "PODCAST_VIEW_THRESHOLD_SECONDS",
        "PODCAST_MAX_SAMPLE_GAP_SECONDS",
        "PODCAST_FALLBACK_PATH",
        "PODCAST_FALLBACK_KEY",
        "PODCAST_TOP_VIEWS_LIMIT",
        "PODCAST_TOP_MINUTES_LIMIT",
        "PODCAST_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cfg_loader, "_ACTIVE_SETTINGS", None)
    yield
    cfg_loader.reset_settings()
