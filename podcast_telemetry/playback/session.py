"""Per-player telemetry session: accumulator, flush timer and recorder dispatch."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Optional, Set

from .. import logging_manager
from ..config_manager import TelemetrySettings, get_settings
from ..metrics import SEGMENT_SECONDS, SEGMENTS_DROPPED
from ..services.view_recorder import RecordResult, ViewRecorder
from .observer import PlayheadEvent, PlayheadEventKind, PlayheadObserver
from .segments import FlushReason, PlaybackSegment, SegmentAccumulator

logger = logging_manager.get_logger().getChild("playback_session")


class PlayerTelemetrySession:
    """Telemetry state owned by one player instance for its whole lifetime.

    Build it when the player mounts, :meth:`attach` it to the player's
    :class:`PlayheadObserver`, and :meth:`close` it on unmount. Recorder calls
    are scheduled as tasks on the running loop and never awaited by the
    event handlers; :meth:`drain` waits for the ones still in flight.

    Usage::

        async with PlayerTelemetrySession(recorder) as session:
            session.attach(observer)
            ...
    """

    def __init__(
        self,
        recorder: ViewRecorder,
        *,
        settings: Optional[TelemetrySettings] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        player_id: Optional[str] = None,
    ) -> None:
        settings = settings or get_settings()
        self._recorder = recorder
        self._flush_interval = settings.flush_interval_seconds
        self._accumulator = SegmentAccumulator(
            view_threshold_seconds=settings.view_threshold_seconds,
            max_sample_gap_seconds=settings.max_sample_gap_seconds,
        )
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False
        self.player_id = player_id or uuid.uuid4().hex[:12]

    @property
    def accumulator(self) -> SegmentAccumulator:
        return self._accumulator

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, observer: PlayheadObserver) -> None:
        """Subscribe to ``observer`` and adopt its current source."""

        self._detach()
        self._unsubscribe = observer.subscribe(self.handle_event)
        if observer.content_id is not None:
            self.change_source(observer.content_id)

    def close(self) -> None:
        """Cancel the timer and fire one final flush."""

        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        self.flush(FlushReason.TEARDOWN)
        self._detach()

    async def drain(self) -> None:
        """Wait until every recorder call issued so far has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def __aenter__(self) -> "PlayerTelemetrySession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
        await self.drain()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle_event(self, event: PlayheadEvent) -> None:
        if self._closed:
            return
        with logging_manager.log_context(player_id=self.player_id, content_id=event.content_id):
            if event.kind is PlayheadEventKind.SOURCE_CHANGE:
                self.change_source(event.content_id)
            elif event.kind is PlayheadEventKind.TIME_UPDATE:
                self.observe_position(event.position)
            elif event.kind is PlayheadEventKind.PAUSE:
                self.flush(FlushReason.PAUSE)
            elif event.kind is PlayheadEventKind.ENDED:
                self.flush(FlushReason.ENDED)
            elif event.kind is PlayheadEventKind.LOADED_METADATA:
                logger.debug("Metadata loaded; duration=%s", event.duration)

    def change_source(self, content_id: Optional[str]) -> None:
        """Flush the previous episode and start fresh for ``content_id``."""

        self._cancel_timer()
        segment = self._accumulator.load(content_id)
        if self._accumulator.dropped_empty_span:
            SEGMENTS_DROPPED.inc()
        self._dispatch_segment(segment, FlushReason.SOURCE_CHANGE)

    def observe_position(self, position: float) -> None:
        outcome = self._accumulator.observe(position)
        if self._accumulator.dropped_empty_span:
            SEGMENTS_DROPPED.inc()
        if outcome.segment is not None:
            self._dispatch_segment(outcome.segment, FlushReason.SEEK)
        if outcome.view_due and self._accumulator.content_id is not None:
            self._spawn(
                self._recorder.register_view(self._accumulator.content_id),
                label="register_view",
            )
        if self._accumulator.is_open:
            self._ensure_timer()

    def flush(self, reason: FlushReason) -> Optional[PlaybackSegment]:
        segment = self._accumulator.flush(reason)
        if reason is not FlushReason.TIMER or not self._accumulator.is_open:
            self._cancel_timer()
        if self._accumulator.dropped_empty_span:
            SEGMENTS_DROPPED.inc()
        self._dispatch_segment(segment, reason)
        return segment

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _dispatch_segment(self, segment: Optional[PlaybackSegment], reason: FlushReason) -> None:
        if segment is None:
            return
        SEGMENT_SECONDS.observe(segment.duration_seconds)
        logger.debug(
            "Flushing %.2fs of %s (%s)",
            segment.duration_seconds,
            segment.content_id,
            reason.value,
            extra={"event": "playback.flush"},
        )
        self._spawn(
            self._recorder.register_playback(
                segment.content_id, segment.start_position, segment.end_position
            ),
            label="register_playback",
        )

    def _spawn(self, coro: Awaitable[RecordResult], *, label: str) -> None:
        task = self._get_loop().create_task(coro)  # type: ignore[arg-type]
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._on_task_done(done, label))

    def _on_task_done(self, task: "asyncio.Task[Any]", label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s raised unexpectedly", label, exc_info=exc)
            return
        result = task.result()
        if isinstance(result, RecordResult) and not result.success:
            logger.warning(
                "%s did not persist: %s",
                label,
                result.error,
                extra={"event": f"playback.{label}.failed"},
            )

    def _ensure_timer(self) -> None:
        if self._timer is not None or self._closed:
            return
        self._timer = self._get_loop().call_later(self._flush_interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        with logging_manager.log_context(
            player_id=self.player_id, content_id=self._accumulator.content_id
        ):
            self.flush(FlushReason.TIMER)
        if self._accumulator.is_open:
            self._ensure_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop


__all__ = ["PlayerTelemetrySession"]
