"""Application factory for the FastAPI backend."""

from __future__ import annotations

import logging
import os
import re

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from podcast_telemetry import config_manager as cfg
from podcast_telemetry import load_environment
from podcast_telemetry.database import dispose_engine

from .metrics import setup_metrics
from .routers.views import router as views_router

load_environment()

LOGGER = logging.getLogger(__name__)

DEFAULT_DEVSERVER_ORIGINS = (
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
)


def _parse_cors_origins(raw_value: str | None) -> tuple[list[str], bool]:
    """Return the allowed origins and whether credentials are supported."""

    if raw_value is None:
        return list(DEFAULT_DEVSERVER_ORIGINS), True

    tokens = [token.strip() for token in re.split(r"[\s,]+", raw_value) if token.strip()]
    if not tokens:
        return [], False
    if "*" in tokens:
        return ["*"], False
    return tokens, True


def _configure_cors(app: FastAPI) -> None:
    allowed_origins, allow_credentials = _parse_cors_origins(
        os.environ.get("PODCAST_API_CORS_ORIGINS")
    )
    if not allowed_origins:
        LOGGER.info("CORS middleware disabled; no allowed origins configured.")
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    app = FastAPI(title="podcast-telemetry API", version="0.1.0")

    @app.on_event("startup")
    async def _prepare_runtime() -> None:
        try:
            cfg.load_configuration()
        except Exception:  # pragma: no cover
            LOGGER.exception("Failed to load telemetry configuration; using defaults")

    @app.on_event("shutdown")
    async def _release_database() -> None:
        dispose_engine()

    _configure_cors(app)
    setup_metrics(app)

    @app.get("/_health", tags=["health"])
    def healthcheck() -> dict[str, str]:
        """Simple healthcheck endpoint for smoke-testing the server."""

        return {"status": "ok"}

    app.include_router(views_router)
    return app


__all__ = ["create_app"]
