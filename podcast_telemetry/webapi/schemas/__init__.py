"""Pydantic schemas for the FastAPI web backend."""

from .views import (
    RecordResultResponse,
    RegisterPlaybackPayload,
    RegisterViewPayload,
    StatSummaryResponse,
    StatsOverviewResponse,
)

__all__ = [
    "RecordResultResponse",
    "RegisterPlaybackPayload",
    "RegisterViewPayload",
    "StatSummaryResponse",
    "StatsOverviewResponse",
]
