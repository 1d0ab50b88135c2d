"""Playback telemetry for the podcast player: views, minutes played, stats."""

from .environment import load_environment

# Load environment variables from .env-style files as soon as the package is
# imported so library consumers and the FastAPI app see the same settings.
load_environment()

__all__ = ["load_environment"]
