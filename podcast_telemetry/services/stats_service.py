"""Per-episode view statistics merged from the durable store and local counters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..config_manager import DEFAULT_TOP_MINUTES_LIMIT, DEFAULT_TOP_VIEWS_LIMIT
from ..metrics import STATS_QUERY_FAILURES
from .fallback_store import LocalFallbackStore
from .view_store import EPISODE_VIEW_STATS_PROCEDURE, EPISODES_TABLE, RowFilter, ViewStore

logger = logging.getLogger(__name__).getChild("stats_service")

_TITLE_PREVIEW_LENGTH = 20


@dataclass(frozen=True)
class StatSummary:
    """Totals for one episode, recomputed on every read."""

    content_id: str
    title: str
    views: int
    minutes_played: float
    published_at: Optional[datetime] = None


@dataclass(frozen=True)
class StatsOverview:
    """Dashboard bundle: totals plus the top-N rankings."""

    items: List[StatSummary]
    total_views: int
    total_minutes_played: float
    top_by_views: List[StatSummary] = field(default_factory=list)
    top_by_minutes: List[StatSummary] = field(default_factory=list)


class StatisticsAggregator:
    """Build :class:`StatSummary` rows for every viewed episode.

    The durable aggregate is the source of truth. Local fallback counters are
    added on top of it and never replace it: when the aggregate call fails the
    result is empty rather than a fallback-only partial view.
    """

    def __init__(self, store: ViewStore, fallback_store: LocalFallbackStore) -> None:
        self._store = store
        self._fallback_store = fallback_store

    async def get_stats_by_content(self) -> List[StatSummary]:
        try:
            rows = await self._store.call(EPISODE_VIEW_STATS_PROCEDURE)
        except Exception as exc:
            STATS_QUERY_FAILURES.inc()
            logger.warning(
                "Failed to load episode view statistics: %s",
                exc,
                extra={"event": "stats.query_failed"},
            )
            return []

        summaries: Dict[str, StatSummary] = {}
        for row in rows:
            summary = self._summary_from_row(row)
            if summary is None:
                continue
            existing = summaries.get(summary.content_id)
            if existing is not None:
                summary = replace(
                    existing,
                    views=existing.views + summary.views,
                    minutes_played=existing.minutes_played + summary.minutes_played,
                )
            summaries[summary.content_id] = summary

        for content_id, count in self._fallback_store.read_all().items():
            existing = summaries.get(content_id)
            if existing is not None:
                summaries[content_id] = replace(existing, views=existing.views + count)
            else:
                summaries[content_id] = await self._fallback_only_summary(content_id, count)

        return list(summaries.values())

    async def get_overview(
        self,
        *,
        top_views: int = DEFAULT_TOP_VIEWS_LIMIT,
        top_minutes: int = DEFAULT_TOP_MINUTES_LIMIT,
    ) -> StatsOverview:
        return build_overview(
            await self.get_stats_by_content(),
            top_views=top_views,
            top_minutes=top_minutes,
        )

    async def _fallback_only_summary(self, content_id: str, count: int) -> StatSummary:
        title = content_id
        published_at: Optional[datetime] = None
        try:
            rows = await self._store.query(
                EPISODES_TABLE, RowFilter(equals={"id": content_id}), limit=1
            )
        except Exception as exc:
            logger.debug("Episode lookup for %s failed: %s", content_id, exc)
        else:
            if rows:
                title = str(rows[0].get("title") or content_id)
                published_at = _coerce_datetime(rows[0].get("published_at"))
        return StatSummary(
            content_id=content_id,
            title=title,
            views=count,
            minutes_played=0.0,
            published_at=published_at,
        )

    @staticmethod
    def _summary_from_row(row: Mapping[str, Any]) -> Optional[StatSummary]:
        content_id = row.get("episode_id") or row.get("id")
        if not content_id:
            return None
        content_id = str(content_id)
        return StatSummary(
            content_id=content_id,
            title=str(row.get("title") or content_id),
            views=_coerce_int(row.get("total_views")),
            minutes_played=_coerce_float(row.get("total_minutes_played")),
            published_at=_coerce_datetime(row.get("published_at")),
        )


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------


def rank_by_views(stats: Iterable[StatSummary], limit: int = DEFAULT_TOP_VIEWS_LIMIT) -> List[StatSummary]:
    return sorted(stats, key=lambda item: item.views, reverse=True)[:limit]


def rank_by_minutes(
    stats: Iterable[StatSummary], limit: int = DEFAULT_TOP_MINUTES_LIMIT
) -> List[StatSummary]:
    return sorted(stats, key=lambda item: item.minutes_played, reverse=True)[:limit]


def total_views(stats: Iterable[StatSummary]) -> int:
    return sum(item.views for item in stats)


def total_minutes_played(stats: Iterable[StatSummary]) -> float:
    return sum(item.minutes_played for item in stats)


def build_overview(
    stats: List[StatSummary],
    *,
    top_views: int = DEFAULT_TOP_VIEWS_LIMIT,
    top_minutes: int = DEFAULT_TOP_MINUTES_LIMIT,
) -> StatsOverview:
    return StatsOverview(
        items=list(stats),
        total_views=total_views(stats),
        total_minutes_played=total_minutes_played(stats),
        top_by_views=rank_by_views(stats, top_views),
        top_by_minutes=rank_by_minutes(stats, top_minutes),
    )


def format_minutes(minutes: float) -> str:
    """Render a minutes total as ``1h 05min``, ``12min 30s`` or ``45s``."""

    total_seconds = max(0, int(round(float(minutes) * 60)))
    hours, remainder = divmod(total_seconds, 3600)
    mins, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h {mins:02d}min"
    if mins:
        return f"{mins}min {seconds:02d}s"
    return f"{seconds}s"


def shorten_title(title: str, length: int = _TITLE_PREVIEW_LENGTH) -> str:
    """Trim chart labels to ``length`` characters followed by an ellipsis."""

    return f"{title[:length]}..." if len(title) > length else title


def _coerce_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _coerce_float(value: Any) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    return numeric if numeric >= 0 else 0.0


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


__all__ = [
    "StatSummary",
    "StatisticsAggregator",
    "StatsOverview",
    "build_overview",
    "format_minutes",
    "rank_by_minutes",
    "rank_by_views",
    "shorten_title",
    "total_minutes_played",
    "total_views",
]
