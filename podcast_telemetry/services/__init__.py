"""Persistence-facing services: the view store, recorder and statistics."""

from .fallback_store import LocalFallbackStore
from .stats_service import StatSummary, StatisticsAggregator, StatsOverview
from .view_recorder import RecordResult, ViewRecorder
from .view_store import RowFilter, SqlAlchemyViewStore, ViewStore

__all__ = [
    "LocalFallbackStore",
    "RecordResult",
    "RowFilter",
    "SqlAlchemyViewStore",
    "StatSummary",
    "StatisticsAggregator",
    "StatsOverview",
    "ViewRecorder",
    "ViewStore",
]
