"""Routes for episode views, playback minutes and view statistics."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ... import config_manager as cfg
from ...services.stats_service import StatisticsAggregator
from ...services.view_recorder import ViewRecorder
from ..dependencies import (
    RequestUserContext,
    get_request_user,
    get_stats_aggregator,
    get_view_recorder,
)
from ..schemas.views import (
    RecordResultResponse,
    RegisterPlaybackPayload,
    RegisterViewPayload,
    StatSummaryResponse,
    StatsOverviewResponse,
)

router = APIRouter(prefix="/api/views", tags=["views"])


def _require_user(request_user: RequestUserContext) -> str:
    if not request_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session token",
        )
    return request_user.user_id


@router.post("", response_model=RecordResultResponse)
async def register_view(
    payload: RegisterViewPayload,
    request_user: RequestUserContext = Depends(get_request_user),
    recorder: ViewRecorder = Depends(get_view_recorder),
) -> RecordResultResponse:
    """Record that an episode started playing."""
    _require_user(request_user)
    result = await recorder.register_view(
        payload.episode_id, at=payload.client_time, tz=payload.observer_zone()
    )
    return RecordResultResponse.from_result(result)


@router.post("/playback", response_model=RecordResultResponse)
async def register_playback(
    payload: RegisterPlaybackPayload,
    request_user: RequestUserContext = Depends(get_request_user),
    recorder: ViewRecorder = Depends(get_view_recorder),
) -> RecordResultResponse:
    """Add the minutes of a flushed play segment to the client's day row."""
    _require_user(request_user)
    result = await recorder.register_playback(
        payload.episode_id,
        payload.start_position,
        payload.end_position,
        at=payload.client_time,
        tz=payload.observer_zone(),
    )
    return RecordResultResponse.from_result(result)


@router.get("/stats", response_model=List[StatSummaryResponse])
async def list_view_stats(
    aggregator: StatisticsAggregator = Depends(get_stats_aggregator),
) -> List[StatSummaryResponse]:
    """Return per-episode totals; empty when the aggregate could not be read."""
    stats = await aggregator.get_stats_by_content()
    return [StatSummaryResponse.from_summary(item) for item in stats]


@router.get("/overview", response_model=StatsOverviewResponse)
async def view_stats_overview(
    top_views: Optional[int] = Query(default=None, ge=1, le=100),
    top_minutes: Optional[int] = Query(default=None, ge=1, le=100),
    aggregator: StatisticsAggregator = Depends(get_stats_aggregator),
) -> StatsOverviewResponse:
    settings = cfg.get_settings()
    overview = await aggregator.get_overview(
        top_views=top_views or settings.top_views_limit,
        top_minutes=top_minutes or settings.top_minutes_limit,
    )
    return StatsOverviewResponse.from_overview(overview)
