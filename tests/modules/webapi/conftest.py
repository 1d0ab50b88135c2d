"""Shared fixtures for WebAPI route tests."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Tuple

import pytest
from fastapi.testclient import TestClient

from podcast_telemetry.services.fallback_store import LocalFallbackStore
from podcast_telemetry.webapi.application import create_app
from podcast_telemetry.webapi.dependencies import get_fallback_store, get_view_store
from tests.helpers.view_store_fakes import InMemoryViewStore


@pytest.fixture
def view_store() -> InMemoryViewStore:
    return InMemoryViewStore()


@pytest.fixture
def api_client(
    tmp_path: Path, view_store: InMemoryViewStore
) -> Iterator[Tuple[TestClient, InMemoryViewStore, LocalFallbackStore]]:
    """TestClient wired to an in-memory view store and a fallback file in *tmp_path*."""
    fallback = LocalFallbackStore(tmp_path / "views.json")

    app = create_app()
    app.dependency_overrides[get_view_store] = lambda: view_store
    app.dependency_overrides[get_fallback_store] = lambda: fallback

    with TestClient(app) as client:
        yield client, view_store, fallback

    app.dependency_overrides.clear()
