"""Tests for the view and playback recorder."""

from __future__ import annotations

import asyncio
import os
import time
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from podcast_telemetry.services.fallback_store import LocalFallbackStore
from podcast_telemetry.services.view_recorder import RecordResult, ViewRecorder, local_day_bounds
from tests.helpers.view_store_fakes import FailingViewStore, FixedClock, InMemoryViewStore, utc

pytestmark = pytest.mark.analytics


@pytest.fixture
def fallback(tmp_path) -> LocalFallbackStore:
    return LocalFallbackStore(tmp_path / "views.json")


def _recorder(store, fallback, *, now=None, tz=timezone.utc, **kwargs) -> ViewRecorder:
    clock = FixedClock(now or utc(2026, 3, 14, 9, 30))
    return ViewRecorder(store, fallback, clock=clock, tz=tz, **kwargs)


class TestRegisterView:

    def test_inserts_row_with_zero_minutes(self, fallback) -> None:
        store = InMemoryViewStore()
        recorder = _recorder(store, fallback, actor=lambda: "user-7")

        result = asyncio.run(recorder.register_view("ep-1"))

        assert result == RecordResult(success=True)
        [row] = store.tables["episode_views"]
        assert row["episode_id"] == "ep-1"
        assert row["minutes_played"] == 0.0
        assert row["user_id"] == "user-7"
        assert row["viewed_at"] == utc(2026, 3, 14, 9, 30)
        assert fallback.read_all() == {}

    def test_failed_insert_counts_locally(self, fallback) -> None:
        store = FailingViewStore(fail={"insert"})
        notices = []
        recorder = _recorder(store, fallback, notifier=lambda title, _desc: notices.append(title))

        before = fallback.get("ep-1")
        result = asyncio.run(recorder.register_view("ep-1"))

        assert result.success is True
        assert result.local_storage_fallback is True
        assert fallback.get("ep-1") == before + 1
        assert result.to_payload() == {"success": True, "localStorageFallback": True}
        assert notices == ["View saved on this device"]

    def test_unwritable_fallback_reports_failure(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        fallback = LocalFallbackStore(blocker / "views.json")
        recorder = _recorder(FailingViewStore(fail={"insert"}), fallback)

        result = asyncio.run(recorder.register_view("ep-1"))

        assert result.success is False
        assert result.error


class TestRegisterPlayback:

    def test_zero_length_segment_is_skipped(self, fallback) -> None:
        store = InMemoryViewStore()
        recorder = _recorder(store, fallback)

        result = asyncio.run(recorder.register_playback("ep-1", 5, 5))

        assert result == RecordResult(success=True, skipped=True)
        assert result.to_payload() == {"success": True, "skipped": True}
        assert store.calls == []

    def test_inverted_segment_is_skipped(self, fallback) -> None:
        store = InMemoryViewStore()
        result = asyncio.run(_recorder(store, fallback).register_playback("ep-1", 40, 10))
        assert result.skipped
        assert store.calls == []

    def test_same_day_segments_accumulate_on_one_row(self, fallback) -> None:
        store = InMemoryViewStore()
        recorder = _recorder(store, fallback)

        async def scenario():
            first = await recorder.register_playback("ep-1", 10, 40)
            rows_after_first = [dict(row) for row in store.tables["episode_views"]]
            second = await recorder.register_playback("ep-1", 10, 40)
            return first, rows_after_first, second

        first, rows_after_first, second = asyncio.run(scenario())

        assert first.success and second.success
        assert rows_after_first[0]["minutes_played"] == pytest.approx(0.5)
        [row] = store.tables["episode_views"]
        assert row["minutes_played"] == pytest.approx(1.0)
        assert "increment" in store.calls

    def test_minutes_land_on_earliest_row_of_the_day(self, fallback) -> None:
        store = InMemoryViewStore()
        clock_recorder = _recorder(store, fallback)

        async def scenario():
            await clock_recorder.register_view("ep-1")
            clock_recorder._clock.now = utc(2026, 3, 14, 11, 0)
            await clock_recorder.register_view("ep-1")
            await clock_recorder.register_playback("ep-1", 0, 90)

        asyncio.run(scenario())

        first, second = store.tables["episode_views"]
        assert first["minutes_played"] == pytest.approx(1.5)
        assert second["minutes_played"] == 0.0

    def test_read_then_write_when_increment_unsupported(self, fallback) -> None:
        store = InMemoryViewStore(atomic=False)
        recorder = _recorder(store, fallback)

        async def scenario():
            await recorder.register_playback("ep-1", 0, 60)
            await recorder.register_playback("ep-1", 0, 30)

        asyncio.run(scenario())

        [row] = store.tables["episode_views"]
        assert row["minutes_played"] == pytest.approx(1.5)
        assert "update" in store.calls
        assert "increment" not in store.calls

    def test_new_local_day_starts_new_row(self, fallback) -> None:
        store = InMemoryViewStore()
        recorder = _recorder(store, fallback, now=utc(2026, 3, 14, 23, 50))

        async def scenario():
            await recorder.register_playback("ep-1", 0, 60)
            recorder._clock.now = utc(2026, 3, 15, 0, 10)
            await recorder.register_playback("ep-1", 0, 60)

        asyncio.run(scenario())

        rows = store.tables["episode_views"]
        assert len(rows) == 2
        assert [row["minutes_played"] for row in rows] == [pytest.approx(1.0), pytest.approx(1.0)]

    def test_day_follows_observer_timezone(self, fallback) -> None:
        store = InMemoryViewStore()
        plus_two = timezone(timedelta(hours=2))
        # 23:00 and 23:30 UTC are both on 15 March in UTC+2.
        recorder = _recorder(store, fallback, now=utc(2026, 3, 14, 23, 0), tz=plus_two)

        async def scenario():
            await recorder.register_playback("ep-1", 0, 60)
            recorder._clock.now = utc(2026, 3, 14, 23, 30)
            await recorder.register_playback("ep-1", 0, 60)
            recorder._clock.now = utc(2026, 3, 14, 21, 30)
            await recorder.register_playback("ep-1", 0, 60)

        asyncio.run(scenario())

        rows = store.tables["episode_views"]
        assert len(rows) == 2
        assert rows[0]["minutes_played"] == pytest.approx(2.0)

    def test_store_failure_is_reported_not_raised(self, fallback) -> None:
        store = FailingViewStore(fail={"query"})
        result = asyncio.run(_recorder(store, fallback).register_playback("ep-1", 0, 30))

        assert result.success is False
        assert result.error == "query failed"
        assert fallback.read_all() == {}


def test_local_day_bounds_are_utc() -> None:
    plus_two = timezone(timedelta(hours=2))
    start, end = local_day_bounds(datetime(2026, 3, 15, 1, 0, tzinfo=plus_two), plus_two)

    assert start == utc(2026, 3, 14, 22, 0)
    assert end == utc(2026, 3, 15, 22, 0)
    assert start.tzinfo == timezone.utc


def test_is_loading_tracks_pending_calls(fallback) -> None:
    store = InMemoryViewStore()
    recorder = _recorder(store, fallback)
    seen = []

    original_insert = store.insert

    async def _spy(table, row):
        seen.append(recorder.is_loading)
        return await original_insert(table, row)

    store.insert = _spy
    asyncio.run(recorder.register_view("ep-1"))

    assert seen == [True]
    assert recorder.is_loading is False


NEW_YORK = ZoneInfo("America/New_York")


@pytest.fixture
def new_york_system_zone():
    """Run the test with America/New_York as the process' local zone."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is unavailable on this platform")
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()


class TestLocalDay:

    def test_spring_forward_day_starts_at_local_midnight(self, new_york_system_zone) -> None:
        start, end = local_day_bounds(datetime(2026, 3, 8, 10, 0).astimezone())

        assert start == utc(2026, 3, 8, 5, 0)
        assert end == utc(2026, 3, 9, 4, 0)

    def test_fall_back_day_is_twenty_five_hours(self, new_york_system_zone) -> None:
        start, end = local_day_bounds(utc(2026, 11, 1, 17, 0))

        assert start == utc(2026, 11, 1, 4, 0)
        assert end == utc(2026, 11, 2, 5, 0)

    def test_zoneinfo_rules_apply_without_system_zone(self) -> None:
        start, end = local_day_bounds(utc(2026, 3, 8, 14, 0), NEW_YORK)

        assert start == utc(2026, 3, 8, 5, 0)
        assert end == utc(2026, 3, 9, 4, 0)

    def test_previous_evening_row_is_not_todays_row_after_spring_forward(
        self, fallback, new_york_system_zone
    ) -> None:
        store = InMemoryViewStore()
        # 23:30 EST on 7 March
        store.tables["episode_views"].append(
            {"id": 100, "episode_id": "ep-1", "viewed_at": utc(2026, 3, 8, 4, 30), "minutes_played": 2.0}
        )
        # 10:00 EDT on 8 March, no explicit zone: the system zone decides the day
        recorder = _recorder(store, fallback, now=utc(2026, 3, 8, 14, 0), tz=None)

        result = asyncio.run(recorder.register_playback("ep-1", 0, 60))

        assert result.success
        evening, morning = store.tables["episode_views"]
        assert evening["minutes_played"] == 2.0
        assert morning["minutes_played"] == pytest.approx(1.0)
        assert morning["viewed_at"] == utc(2026, 3, 8, 14, 0)

    def test_naive_clock_is_read_in_recorder_zone(self, fallback) -> None:
        store = InMemoryViewStore()
        plus_ten = timezone(timedelta(hours=10))
        recorder = _recorder(store, fallback, now=datetime(2026, 3, 14, 23, 0), tz=plus_ten)

        async def scenario():
            await recorder.register_playback("ep-1", 10, 40)
            await recorder.register_playback("ep-1", 10, 40)

        asyncio.run(scenario())

        [row] = store.tables["episode_views"]
        assert row["minutes_played"] == pytest.approx(1.0)
        assert row["viewed_at"] == utc(2026, 3, 14, 13, 0)

    def test_naive_clock_view_stamp_uses_recorder_zone(self, fallback) -> None:
        store = InMemoryViewStore()
        plus_ten = timezone(timedelta(hours=10))
        recorder = _recorder(store, fallback, now=datetime(2026, 3, 14, 23, 0), tz=plus_ten)

        asyncio.run(recorder.register_view("ep-1"))

        [row] = store.tables["episode_views"]
        assert row["viewed_at"] == utc(2026, 3, 14, 13, 0)

    def test_call_time_and_zone_override_recorder_clock(self, fallback) -> None:
        store = InMemoryViewStore()
        recorder = _recorder(store, fallback, now=utc(2026, 3, 14, 12, 0), tz=timezone.utc)
        plus_ten = timezone(timedelta(hours=10))

        async def scenario():
            # 14 March 23:30 and 15 March 00:30 for the client
            await recorder.register_playback(
                "ep-1", 0, 60, at=datetime(2026, 3, 14, 23, 30, tzinfo=plus_ten), tz=plus_ten
            )
            await recorder.register_playback(
                "ep-1", 0, 60, at=datetime(2026, 3, 15, 0, 30, tzinfo=plus_ten), tz=plus_ten
            )

        asyncio.run(scenario())

        rows = store.tables["episode_views"]
        assert [row["viewed_at"] for row in rows] == [
            utc(2026, 3, 14, 13, 30),
            utc(2026, 3, 14, 14, 30),
        ]
        assert [row["minutes_played"] for row in rows] == [pytest.approx(1.0), pytest.approx(1.0)]
