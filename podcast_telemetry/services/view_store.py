"""Durable view store: the table/procedure interface the recorder writes through."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..database.base import Base
from ..database.engine import get_db_session, session_scope
from ..database.models.episode import EpisodeModel
from ..database.models.views import EpisodeViewModel
from ..errors import QueryError, StoreError, TransientStoreError

logger = logging.getLogger(__name__).getChild("view_store")

VIEWS_TABLE = "episode_views"
EPISODES_TABLE = "episodes"
EPISODE_VIEW_STATS_PROCEDURE = "get_episode_views_stats"

_T = TypeVar("_T")


@dataclass(frozen=True)
class RowFilter:
    """Column predicates combined with AND.

    ``equals`` matches exactly, ``at_least`` is an inclusive lower bound and
    ``before`` an exclusive upper bound.
    """

    equals: Mapping[str, Any] = field(default_factory=dict)
    at_least: Mapping[str, Any] = field(default_factory=dict)
    before: Mapping[str, Any] = field(default_factory=dict)


class ViewStore(Protocol):
    """Operations the telemetry core needs from the durable store.

    Write failures raise :class:`TransientStoreError`; read and aggregate
    failures raise :class:`QueryError`.
    """

    supports_atomic_increment: bool

    async def insert(self, table: str, row: Mapping[str, Any]) -> Any: ...

    async def update(
        self, table: str, match: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> int: ...

    async def increment(
        self, table: str, match: Mapping[str, Any], column: str, delta: float
    ) -> int: ...

    async def query(
        self,
        table: str,
        row_filter: Optional[RowFilter] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    async def call(self, procedure: str) -> List[Dict[str, Any]]: ...


_TABLES: Dict[str, type[Base]] = {
    VIEWS_TABLE: EpisodeViewModel,
    EPISODES_TABLE: EpisodeModel,
}


def _episode_view_stats(session: Session) -> List[Dict[str, Any]]:
    stmt = (
        select(
            EpisodeViewModel.episode_id.label("episode_id"),
            EpisodeModel.title.label("title"),
            EpisodeModel.published_at.label("published_at"),
            func.count(EpisodeViewModel.id).label("total_views"),
            func.coalesce(func.sum(EpisodeViewModel.minutes_played), 0.0).label(
                "total_minutes_played"
            ),
        )
        .select_from(EpisodeViewModel)
        .outerjoin(EpisodeModel, EpisodeModel.id == EpisodeViewModel.episode_id)
        .group_by(
            EpisodeViewModel.episode_id,
            EpisodeModel.title,
            EpisodeModel.published_at,
        )
    )
    return [dict(row._mapping) for row in session.execute(stmt)]


_PROCEDURES: Dict[str, Callable[[Session], List[Dict[str, Any]]]] = {
    EPISODE_VIEW_STATS_PROCEDURE: _episode_view_stats,
}


class SqlAlchemyViewStore:
    """:class:`ViewStore` backed by the SQLAlchemy models.

    Blocking session work runs in a worker thread so callers on the event loop
    are never stalled by the database.
    """

    supports_atomic_increment = True

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Public coroutine API
    # ------------------------------------------------------------------

    async def insert(self, table: str, row: Mapping[str, Any]) -> Any:
        return await self._run(TransientStoreError, self._insert_sync, table, dict(row))

    async def update(
        self, table: str, match: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> int:
        return await self._run(
            TransientStoreError, self._update_sync, table, dict(match), dict(patch)
        )

    async def increment(
        self, table: str, match: Mapping[str, Any], column: str, delta: float
    ) -> int:
        return await self._run(
            TransientStoreError, self._increment_sync, table, dict(match), column, delta
        )

    async def query(
        self,
        table: str,
        row_filter: Optional[RowFilter] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await self._run(
            QueryError,
            self._query_sync,
            table,
            row_filter or RowFilter(),
            order_by,
            descending,
            limit,
        )

    async def call(self, procedure: str) -> List[Dict[str, Any]]:
        return await self._run(QueryError, self._call_sync, procedure)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run(
        self, error_cls: type[StoreError], fn: Callable[..., _T], *args: Any
    ) -> _T:
        try:
            return await asyncio.to_thread(fn, *args)
        except StoreError as exc:
            if isinstance(exc, error_cls):
                raise
            raise error_cls(str(exc)) from exc
        except SQLAlchemyError as exc:
            logger.debug("Store operation %s failed", fn.__name__, exc_info=True)
            raise error_cls(f"{fn.__name__.strip('_')}: {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._session_factory is None:
            with get_db_session() as session:
                yield session
        else:
            with session_scope(self._session_factory) as session:
                yield session

    @staticmethod
    def _model_for(table: str) -> type[Base]:
        model = _TABLES.get(table)
        if model is None:
            raise StoreError(f"Unknown table '{table}'")
        return model

    @staticmethod
    def _column(model: type[Base], name: str) -> Any:
        if name not in model.__table__.columns:
            raise StoreError(f"Unknown column '{name}' on table '{model.__tablename__}'")
        return getattr(model, name)

    def _conditions(self, model: type[Base], row_filter: RowFilter) -> List[Any]:
        conditions: List[Any] = []
        for name, value in row_filter.equals.items():
            conditions.append(self._column(model, name) == value)
        for name, value in row_filter.at_least.items():
            conditions.append(self._column(model, name) >= value)
        for name, value in row_filter.before.items():
            conditions.append(self._column(model, name) < value)
        return conditions

    @staticmethod
    def _to_row(instance: Base) -> Dict[str, Any]:
        return {
            attr.key: getattr(instance, attr.key)
            for attr in instance.__mapper__.column_attrs
        }

    def _insert_sync(self, table: str, row: Dict[str, Any]) -> Any:
        model = self._model_for(table)
        for name in row:
            self._column(model, name)
        with self._session() as session:
            instance = model(**row)
            session.add(instance)
            session.flush()
            primary_key = model.__mapper__.primary_key[0].key
            return getattr(instance, primary_key)

    def _update_sync(self, table: str, match: Dict[str, Any], patch: Dict[str, Any]) -> int:
        model = self._model_for(table)
        values = {self._column(model, name).key: value for name, value in patch.items()}
        stmt = (
            update(model)
            .where(*self._conditions(model, RowFilter(equals=match)))
            .values(values)
        )
        with self._session() as session:
            return session.execute(stmt).rowcount

    def _increment_sync(
        self, table: str, match: Dict[str, Any], column: str, delta: float
    ) -> int:
        model = self._model_for(table)
        target = self._column(model, column)
        stmt = (
            update(model)
            .where(*self._conditions(model, RowFilter(equals=match)))
            .values({target.key: target + delta})
        )
        with self._session() as session:
            return session.execute(stmt).rowcount

    def _query_sync(
        self,
        table: str,
        row_filter: RowFilter,
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        model = self._model_for(table)
        stmt = select(model).where(*self._conditions(model, row_filter))
        if order_by:
            column = self._column(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as session:
            return [self._to_row(instance) for instance in session.execute(stmt).scalars()]

    def _call_sync(self, procedure: str) -> List[Dict[str, Any]]:
        handler = _PROCEDURES.get(procedure)
        if handler is None:
            raise StoreError(f"Unknown procedure '{procedure}'")
        with self._session() as session:
            return handler(session)


__all__ = [
    "EPISODES_TABLE",
    "EPISODE_VIEW_STATS_PROCEDURE",
    "RowFilter",
    "SqlAlchemyViewStore",
    "VIEWS_TABLE",
    "ViewStore",
]
