from podcast_telemetry.webapi.application import _parse_cors_origins, create_app
from podcast_telemetry.webapi.routers.views import router

import pytest

pytestmark = pytest.mark.webapi


def test_views_router_includes_expected_paths() -> None:
    paths = {route.path for route in router.routes if getattr(route, "methods", None)}

    assert "/api/views" in paths
    assert "/api/views/playback" in paths
    assert "/api/views/stats" in paths
    assert "/api/views/overview" in paths


def test_app_registers_health_and_metrics() -> None:
    paths = {getattr(route, "path", None) for route in create_app().routes}

    assert "/_health" in paths
    assert "/metrics" in paths
    assert "/api/views" in paths


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("", ([], False)),
        ("*", (["*"], False)),
        ("https://a.example, https://b.example", (["https://a.example", "https://b.example"], True)),
    ],
)
def test_parse_cors_origins(raw, expected) -> None:
    origins, credentials = _parse_cors_origins(raw)
    if expected is None:
        assert "http://localhost:5173" in origins
        assert credentials is True
    else:
        assert (origins, credentials) == expected
