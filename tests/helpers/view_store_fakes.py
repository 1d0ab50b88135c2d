"""In-memory test doubles for the view store and recorder."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from podcast_telemetry.errors import QueryError, TransientStoreError
from podcast_telemetry.services.view_recorder import RecordResult
from podcast_telemetry.services.view_store import RowFilter


class InMemoryViewStore:
    """Dict-backed store honouring the ``ViewStore`` protocol."""

    def __init__(self, *, atomic: bool = True) -> None:
        self.supports_atomic_increment = atomic
        self.tables: Dict[str, List[Dict[str, Any]]] = {"episode_views": [], "episodes": []}
        self.stats_rows: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self._ids = itertools.count(1)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Any:
        self.calls.append("insert")
        record = dict(row)
        record.setdefault("id", next(self._ids))
        self.tables.setdefault(table, []).append(record)
        return record["id"]

    async def update(self, table: str, match: Mapping[str, Any], patch: Mapping[str, Any]) -> int:
        self.calls.append("update")
        rows = self._matching(table, RowFilter(equals=match))
        for row in rows:
            row.update(patch)
        return len(rows)

    async def increment(
        self, table: str, match: Mapping[str, Any], column: str, delta: float
    ) -> int:
        self.calls.append("increment")
        rows = self._matching(table, RowFilter(equals=match))
        for row in rows:
            row[column] = (row.get(column) or 0) + delta
        return len(rows)

    async def query(
        self,
        table: str,
        row_filter: Optional[RowFilter] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        self.calls.append("query")
        rows = self._matching(table, row_filter or RowFilter())
        if order_by:
            rows.sort(key=lambda row: row[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [dict(row) for row in rows]

    async def call(self, procedure: str) -> List[Dict[str, Any]]:
        self.calls.append(procedure)
        return [dict(row) for row in self.stats_rows]

    def _matching(self, table: str, row_filter: RowFilter) -> List[Dict[str, Any]]:
        matched = []
        for row in self.tables.get(table, []):
            if any(row.get(k) != v for k, v in row_filter.equals.items()):
                continue
            if any(row.get(k) < v for k, v in row_filter.at_least.items()):
                continue
            if any(row.get(k) >= v for k, v in row_filter.before.items()):
                continue
            matched.append(row)
        return matched


class FailingViewStore(InMemoryViewStore):
    """Store whose selected operations raise the store's error types."""

    def __init__(self, *, fail: set[str], atomic: bool = True) -> None:
        super().__init__(atomic=atomic)
        self.fail = fail

    async def insert(self, table, row):
        if "insert" in self.fail:
            raise TransientStoreError("insert rejected")
        return await super().insert(table, row)

    async def query(self, table, row_filter=None, **kwargs):
        if "query" in self.fail:
            raise QueryError("query failed")
        return await super().query(table, row_filter, **kwargs)

    async def call(self, procedure):
        if "call" in self.fail:
            raise QueryError("aggregate unavailable")
        return await super().call(procedure)


class FixedClock:
    """Callable clock returning a settable aware datetime."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class RecordingRecorder:
    """Recorder double capturing the calls a player session issues."""

    def __init__(self) -> None:
        self.views: List[str] = []
        self.playbacks: List[tuple[str, float, float]] = []

    async def register_view(self, content_id: str) -> RecordResult:
        self.views.append(content_id)
        return RecordResult(success=True)

    async def register_playback(
        self, content_id: str, start_position: float, end_position: float
    ) -> RecordResult:
        self.playbacks.append((content_id, start_position, end_position))
        return RecordResult(success=True)
