"""View and playback recorder: persists views and minutes played."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple

from .. import logging_manager
from ..metrics import MINUTES_RECORDED, PLAYBACK_REGISTRATIONS, VIEWS_REGISTERED
from .fallback_store import LocalFallbackStore
from .view_store import VIEWS_TABLE, RowFilter, ViewStore

logger = logging_manager.get_logger().getChild("view_recorder")

Clock = Callable[[], datetime]
ActorProvider = Callable[[], Optional[str]]
Notifier = Callable[[str, str], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RecordResult:
    """Outcome of a recorder operation as reported to the UI."""

    success: bool
    local_storage_fallback: bool = False
    skipped: bool = False
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Return the result using the key names the player UI expects."""
        payload: Dict[str, Any] = {"success": self.success}
        if self.local_storage_fallback:
            payload["localStorageFallback"] = True
        if self.skipped:
            payload["skipped"] = True
        if self.error is not None:
            payload["error"] = self.error
        return payload


def localize(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Return ``moment`` as an aware wall-clock time of the observer.

    ``tz`` is the observer's zone; without it the system local zone is used.
    Naive values are read as wall-clock times in that zone.
    """

    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz) if tz is not None else moment.astimezone()
    return moment.astimezone(tz) if tz is not None else moment.astimezone()


def _midnight_utc(day: date, tz: Optional[tzinfo]) -> datetime:
    midnight = datetime.combine(day, time.min)
    if tz is None:
        # naive astimezone() applies the system zone's rules for that date
        return midnight.astimezone(timezone.utc)
    return midnight.replace(tzinfo=tz).astimezone(timezone.utc)


def local_day_bounds(moment: datetime, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """Return the ``[start, end)`` UTC bounds of the local day holding ``moment``.

    Both bounds are local midnights resolved with the zone's rules for their
    own date, so days around a daylight-saving change are 23 or 25 hours long.
    Pass a :class:`zoneinfo.ZoneInfo` as ``tz`` to get those rules for a zone
    other than the system one; a fixed-offset ``timezone`` has none.
    """

    day = localize(moment, tz).date()
    return _midnight_utc(day, tz), _midnight_utc(day + timedelta(days=1), tz)


class ViewRecorder:
    """Turn views and play segments into durable ``episode_views`` rows.

    Every method is safe to call in fire-and-forget fashion: store failures
    become unsuccessful :class:`RecordResult` values (or a fallback counter
    increment for views) and are never raised to the caller.

    Minutes are added to the earliest row of the observer's local day. The
    store's atomic increment is used when available. Stores without one get a
    read-then-write update, which can lose an update when two flushes for the
    same episode and day are in flight at once.
    """

    def __init__(
        self,
        store: ViewStore,
        fallback_store: LocalFallbackStore,
        *,
        clock: Optional[Clock] = None,
        tz: Optional[tzinfo] = None,
        actor: Optional[ActorProvider] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._store = store
        self._fallback_store = fallback_store
        self._clock = clock or _utc_now
        self._tz = tz
        self._actor = actor
        self._notifier = notifier
        self._pending = 0

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def register_view(
        self,
        content_id: str,
        *,
        at: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
    ) -> RecordResult:
        """Record that ``content_id`` started playing now (or at ``at``)."""

        with self._tracking(), logging_manager.log_context(content_id=content_id):
            moment, _ = self._observed(at, tz)
            row = {
                "episode_id": content_id,
                "viewed_at": moment.astimezone(timezone.utc),
                "minutes_played": 0.0,
                "user_id": self._actor_id(),
            }
            try:
                await self._store.insert(VIEWS_TABLE, row)
            except Exception as exc:
                return self._register_fallback_view(content_id, exc)

            VIEWS_REGISTERED.labels(path="remote").inc()
            logger.info(
                "Registered view for episode %s",
                content_id,
                extra={"event": "views.registered", "status": "remote"},
            )
            return RecordResult(success=True)

    def _register_fallback_view(self, content_id: str, cause: Exception) -> RecordResult:
        logger.warning(
            "View store unavailable for episode %s; counting locally: %s",
            content_id,
            cause,
            extra={"event": "views.fallback", "status": "fallback"},
        )
        try:
            count = self._fallback_store.increment(content_id)
        except OSError as exc:
            VIEWS_REGISTERED.labels(path="failed").inc()
            logger.error(
                "Failed to record view for episode %s locally: %s",
                content_id,
                exc,
                extra={"event": "views.failed", "status": "failed"},
            )
            self._notify("Could not register view", str(exc))
            return RecordResult(success=False, error=str(exc))

        VIEWS_REGISTERED.labels(path="fallback").inc()
        logger.debug("Local view count for %s is now %d", content_id, count)
        self._notify("View saved on this device", "The view will be included in local totals.")
        return RecordResult(success=True, local_storage_fallback=True)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    async def register_playback(
        self,
        content_id: str,
        start_position: float,
        end_position: float,
        *,
        at: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
    ) -> RecordResult:
        """Add ``(end_position - start_position) / 60`` minutes to the observer's day.

        ``at`` and ``tz`` override the recorder's clock and zone for this call,
        for observers whose local day differs from the recorder's.
        """

        minutes = max(0.0, (float(end_position) - float(start_position)) / 60.0)
        if minutes <= 0:
            PLAYBACK_REGISTRATIONS.labels(outcome="skipped").inc()
            return RecordResult(success=True, skipped=True)

        with self._tracking(), logging_manager.log_context(content_id=content_id):
            moment, zone = self._observed(at, tz)
            day_start, day_end = local_day_bounds(moment, zone)
            try:
                rows = await self._store.query(
                    VIEWS_TABLE,
                    RowFilter(
                        equals={"episode_id": content_id},
                        at_least={"viewed_at": day_start},
                        before={"viewed_at": day_end},
                    ),
                    order_by="viewed_at",
                    limit=1,
                )
                if rows:
                    await self._add_minutes(rows[0], minutes)
                    outcome = "incremented"
                else:
                    await self._store.insert(
                        VIEWS_TABLE,
                        {
                            "episode_id": content_id,
                            "viewed_at": moment.astimezone(timezone.utc),
                            "minutes_played": minutes,
                            "user_id": self._actor_id(),
                        },
                    )
                    outcome = "inserted"
            except Exception as exc:
                PLAYBACK_REGISTRATIONS.labels(outcome="failed").inc()
                logger.warning(
                    "Failed to record %.3f minutes for episode %s: %s",
                    minutes,
                    content_id,
                    exc,
                    extra={"event": "playback.failed", "status": "failed"},
                )
                return RecordResult(success=False, error=str(exc))

            PLAYBACK_REGISTRATIONS.labels(outcome=outcome).inc()
            MINUTES_RECORDED.inc(minutes)
            logger.debug(
                "Recorded %.3f minutes for episode %s (%s)",
                minutes,
                content_id,
                outcome,
                extra={"event": "playback.recorded", "status": outcome},
            )
            return RecordResult(success=True)

    async def _add_minutes(self, row: Mapping[str, Any], minutes: float) -> None:
        match = {"id": row["id"]}
        if getattr(self._store, "supports_atomic_increment", False):
            updated = await self._store.increment(VIEWS_TABLE, match, "minutes_played", minutes)
        else:
            current = float(row.get("minutes_played") or 0.0)
            updated = await self._store.update(
                VIEWS_TABLE, match, {"minutes_played": current + minutes}
            )
        if not updated:
            logger.warning("View row %s disappeared before minutes were added", row["id"])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _tracking(self) -> Iterator[None]:
        self._pending += 1
        try:
            yield
        finally:
            self._pending -= 1

    def _observed(
        self, at: Optional[datetime], tz: Optional[tzinfo]
    ) -> Tuple[datetime, Optional[tzinfo]]:
        zone = tz if tz is not None else self._tz
        return localize(at if at is not None else self._clock(), zone), zone

    def _actor_id(self) -> Optional[str]:
        if self._actor is None:
            return None
        return self._actor()

    def _notify(self, title: str, description: str) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(title, description)
        except Exception:
            logger.debug("Notifier raised while reporting %r", title, exc_info=True)


__all__ = ["RecordResult", "ViewRecorder", "local_day_bounds", "localize"]
