"""Tests for the local fallback view counters."""

from __future__ import annotations

import json

import pytest

from podcast_telemetry.services.fallback_store import LocalFallbackStore

pytestmark = pytest.mark.analytics


def test_increment_persists_under_single_key(tmp_path) -> None:
    path = tmp_path / "nested" / "views.json"
    store = LocalFallbackStore(path)

    assert store.increment("ep-1") == 1
    assert store.increment("ep-1") == 2
    assert store.increment("ep-2") == 1

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document == {"podcast_episode_views": {"ep-1": 2, "ep-2": 1}}
    assert not path.with_suffix(".json.tmp").exists()


def test_counts_survive_new_instance(tmp_path) -> None:
    path = tmp_path / "views.json"
    LocalFallbackStore(path).increment("ep-1")

    assert LocalFallbackStore(path).read_all() == {"ep-1": 1}


def test_missing_file_reads_empty(tmp_path) -> None:
    store = LocalFallbackStore(tmp_path / "absent.json")
    assert store.read_all() == {}
    assert store.get("ep-1") == 0


def test_corrupt_file_reads_empty_and_recovers(tmp_path) -> None:
    path = tmp_path / "views.json"
    path.write_text("{not json", encoding="utf-8")
    store = LocalFallbackStore(path)

    assert store.read_all() == {}
    assert store.increment("ep-1") == 1


def test_invalid_entries_are_ignored_and_other_keys_kept(tmp_path) -> None:
    path = tmp_path / "views.json"
    path.write_text(
        json.dumps(
            {
                "podcast_episode_views": {"ep-1": "3", "ep-2": "lots", "ep-3": -1},
                "theme": "dark",
            }
        ),
        encoding="utf-8",
    )
    store = LocalFallbackStore(path)

    assert store.read_all() == {"ep-1": 3}
    store.increment("ep-1")
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["theme"] == "dark"
    assert document["podcast_episode_views"] == {"ep-1": 4}


def test_custom_key(tmp_path) -> None:
    path = tmp_path / "views.json"
    store = LocalFallbackStore(path, key="views_v2")
    store.increment("ep-1")

    assert json.loads(path.read_text(encoding="utf-8")) == {"views_v2": {"ep-1": 1}}
    assert LocalFallbackStore(path).read_all() == {}
