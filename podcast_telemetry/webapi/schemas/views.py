"""Schemas for view and playback telemetry endpoints."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AwareDatetime, BaseModel, Field, field_validator

from ...services.stats_service import StatSummary, StatsOverview, format_minutes
from ...services.view_recorder import RecordResult


class ClientClockPayload(BaseModel):
    """The observing client's wall clock.

    ``client_time`` carries the client's current UTC offset. ``client_time_zone``
    is an IANA zone name; when present it decides where the client's day starts
    and ends, including on daylight-saving change days. Without either field
    the server's clock and zone are used.
    """

    client_time: Optional[AwareDatetime] = None
    client_time_zone: Optional[str] = Field(default=None, max_length=64)

    @field_validator("client_time_zone")
    @classmethod
    def _known_zone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
            raise ValueError(f"Unknown time zone '{value}'") from exc
        return value

    def observer_zone(self) -> Optional[tzinfo]:
        if self.client_time_zone:
            return ZoneInfo(self.client_time_zone)
        if self.client_time is not None:
            return self.client_time.tzinfo
        return None


class RegisterViewPayload(ClientClockPayload):
    """Client notice that an episode started playing."""

    episode_id: str = Field(min_length=1, max_length=255)


class RegisterPlaybackPayload(ClientClockPayload):
    """A flushed play segment, positions in seconds."""

    episode_id: str = Field(min_length=1, max_length=255)
    start_position: float = Field(ge=0)
    end_position: float = Field(ge=0)


class RecordResultResponse(BaseModel):
    success: bool
    local_storage_fallback: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: RecordResult) -> "RecordResultResponse":
        return cls(
            success=result.success,
            local_storage_fallback=result.local_storage_fallback,
            skipped=result.skipped,
            error=result.error,
        )


class StatSummaryResponse(BaseModel):
    content_id: str
    title: str
    views: int
    minutes_played: float
    minutes_played_label: str
    published_at: Optional[datetime] = None

    @classmethod
    def from_summary(cls, summary: StatSummary) -> "StatSummaryResponse":
        return cls(
            content_id=summary.content_id,
            title=summary.title,
            views=summary.views,
            minutes_played=round(summary.minutes_played, 3),
            minutes_played_label=format_minutes(summary.minutes_played),
            published_at=summary.published_at,
        )


class StatsOverviewResponse(BaseModel):
    items: List[StatSummaryResponse]
    total_views: int
    total_minutes_played: float
    top_by_views: List[StatSummaryResponse]
    top_by_minutes: List[StatSummaryResponse]

    @classmethod
    def from_overview(cls, overview: StatsOverview) -> "StatsOverviewResponse":
        return cls(
            items=[StatSummaryResponse.from_summary(item) for item in overview.items],
            total_views=overview.total_views,
            total_minutes_played=round(overview.total_minutes_played, 3),
            top_by_views=[StatSummaryResponse.from_summary(item) for item in overview.top_by_views],
            top_by_minutes=[
                StatSummaryResponse.from_summary(item) for item in overview.top_by_minutes
            ],
        )
