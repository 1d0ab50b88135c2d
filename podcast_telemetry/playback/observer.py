"""Playhead observer: relays a player's native events to telemetry listeners."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple


logger = logging.getLogger(__name__).getChild("observer")


class PlayheadEventKind(str, Enum):
    SOURCE_CHANGE = "sourcechange"
    LOADED_METADATA = "loadedmetadata"
    TIME_UPDATE = "timeupdate"
    PAUSE = "pause"
    ENDED = "ended"


@dataclass(frozen=True)
class PlayheadEvent:
    """Structured message emitted by :class:`PlayheadObserver`."""

    kind: PlayheadEventKind
    content_id: Optional[str]
    position: float
    duration: Optional[float] = None
    delta: float = 0.0


PlayheadListener = Callable[[PlayheadEvent], None]


class PlayheadObserver:
    """Track one audio element's playhead and notify subscribers.

    The playback runtime calls :meth:`load`, :meth:`play`, :meth:`pause`,
    :meth:`time_update`, :meth:`loaded_metadata`, :meth:`seek` and
    :meth:`ended` from its own event handlers. Time updates are relayed only
    while playing; each carries the non-negative advance since the previous
    relayed position.
    """

    def __init__(self) -> None:
        self._listeners: Tuple[PlayheadListener, ...] = ()
        self._content_id: Optional[str] = None
        self._position = 0.0
        self._duration: Optional[float] = None
        self._playing = False
        self._last_reported: Optional[float] = None

    @property
    def content_id(self) -> Optional[str]:
        return self._content_id

    @property
    def position(self) -> float:
        return self._position

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    @property
    def is_playing(self) -> bool:
        return self._playing

    def subscribe(self, listener: PlayheadListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners = self._listeners + (listener,)

        def _unsubscribe() -> None:
            listeners: List[PlayheadListener] = list(self._listeners)
            try:
                listeners.remove(listener)
            except ValueError:
                return
            self._listeners = tuple(listeners)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Runtime event handlers
    # ------------------------------------------------------------------

    def load(self, content_id: Optional[str], *, duration: Optional[float] = None) -> None:
        """Attach a new source; playback stops until :meth:`play` is called."""

        self._content_id = content_id
        self._position = 0.0
        self._duration = duration
        self._playing = False
        self._last_reported = None
        self._emit(PlayheadEventKind.SOURCE_CHANGE)

    def loaded_metadata(self, duration: float) -> None:
        self._duration = float(duration)
        self._emit(PlayheadEventKind.LOADED_METADATA)

    def play(self) -> None:
        if self._content_id is None:
            return
        self._playing = True

    def pause(self) -> None:
        if not self._playing:
            return
        self._playing = False
        self._emit(PlayheadEventKind.PAUSE)

    def seek(self, position: float) -> None:
        self._position = max(0.0, float(position))
        if self._playing:
            self._emit_time_update()

    def time_update(self, position: float) -> None:
        self._position = max(0.0, float(position))
        if self._playing:
            self._emit_time_update()

    def ended(self) -> None:
        self._playing = False
        self._emit(PlayheadEventKind.ENDED)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _emit_time_update(self) -> None:
        previous = self._last_reported
        delta = 0.0 if previous is None else max(0.0, self._position - previous)
        self._last_reported = self._position
        self._emit(PlayheadEventKind.TIME_UPDATE, delta=delta)

    def _emit(self, kind: PlayheadEventKind, *, delta: float = 0.0) -> None:
        if self._content_id is None and kind is not PlayheadEventKind.SOURCE_CHANGE:
            return
        event = PlayheadEvent(
            kind=kind,
            content_id=self._content_id,
            position=self._position,
            duration=self._duration,
            delta=delta,
        )
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Playhead listener failed on %s", kind.value)


__all__ = ["PlayheadEvent", "PlayheadEventKind", "PlayheadListener", "PlayheadObserver"]
