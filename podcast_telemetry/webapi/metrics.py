"""Prometheus exporter wiring for the telemetry API.

Usage:
    from .metrics import setup_metrics
    setup_metrics(app)  # call once in create_app()

The telemetry counters themselves live in :mod:`podcast_telemetry.metrics`.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Gauge, Info, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator

logger = logging.getLogger(__name__)

APP_INFO = Info(
    "podcast_telemetry",
    "podcast-telemetry application information",
)

UP_GAUGE = Gauge(
    "podcast_telemetry_up",
    "Whether the telemetry backend is up (1=up, 0=down)",
)

_setup_done = False


def setup_metrics(app: FastAPI) -> None:
    """Instrument ``app`` and expose ``/metrics``.

    Idempotent: HTTP instrumentation is registered once per process, and
    every app instance (test clients included) gets a ``/metrics`` route.
    """
    global _setup_done

    try:
        APP_INFO.info({
            "version": getattr(app, "version", "unknown"),
            "title": getattr(app, "title", "podcast-telemetry"),
        })
    except ValueError:
        pass  # Already set
    UP_GAUGE.set(1)

    if not _setup_done:
        try:
            instrumentator = Instrumentator(
                should_group_status_codes=False,
                should_ignore_untemplated=True,
                should_respect_env_var=False,
                excluded_handlers=["/metrics", "/_health"],
            )
            instrumentator.instrument(app)
            instrumentator.expose(app, endpoint="/metrics", include_in_schema=False)
        except ValueError:
            # Collectors already registered in the global registry.
            logger.debug("HTTP instrumentation already registered")
        _setup_done = True

    if not any(getattr(route, "path", None) == "/metrics" for route in app.routes):
        @app.get("/metrics", include_in_schema=False)
        async def _metrics_fallback() -> Response:
            return Response(
                content=generate_latest(REGISTRY),
                media_type=CONTENT_TYPE_LATEST,
            )


__all__ = ["setup_metrics"]
