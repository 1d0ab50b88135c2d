"""Segment accumulator: turns playhead samples into play segments."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config_manager import DEFAULT_MAX_SAMPLE_GAP_SECONDS, DEFAULT_VIEW_THRESHOLD_SECONDS


class AccumulatorState(str, Enum):
    IDLE = "idle"
    OPEN = "open"


class FlushReason(str, Enum):
    TIMER = "timer"
    PAUSE = "pause"
    ENDED = "ended"
    TEARDOWN = "teardown"
    SOURCE_CHANGE = "source_change"
    SEEK = "seek"


@dataclass(frozen=True)
class PlaybackSegment:
    """A contiguous span of listened positions for one episode, in seconds."""

    content_id: str
    start_position: float
    end_position: float

    def __post_init__(self) -> None:
        if self.end_position < self.start_position:
            raise ValueError(
                f"Segment end {self.end_position} precedes start {self.start_position}"
            )

    @property
    def duration_seconds(self) -> float:
        return self.end_position - self.start_position

    @property
    def minutes(self) -> float:
        return self.duration_seconds / 60.0


@dataclass(frozen=True)
class SampleOutcome:
    """What the caller must do after feeding one sample."""

    segment: Optional[PlaybackSegment] = None
    view_due: bool = False


class SegmentAccumulator:
    """State machine for one player instance and its currently loaded episode.

    Only positions beyond the furthest point reached since the episode was
    loaded are counted. A segment opens when a sample passes that point and
    its end follows it; the start never moves while the segment is open.
    Samples at or behind the furthest point (backward seeks and re-listening)
    change nothing but the reference position, whether or not a flush
    happened in between. A forward jump wider than ``max_sample_gap_seconds``
    is a seek: the open segment is closed and a new one starts at the jump
    target.

    The accumulator performs no I/O; the owning session hands emitted
    segments to the recorder and drives the flush timer.
    """

    def __init__(
        self,
        content_id: Optional[str] = None,
        *,
        view_threshold_seconds: float = DEFAULT_VIEW_THRESHOLD_SECONDS,
        max_sample_gap_seconds: float = DEFAULT_MAX_SAMPLE_GAP_SECONDS,
    ) -> None:
        self._view_threshold = float(view_threshold_seconds)
        self._max_gap = float(max_sample_gap_seconds)
        self._content_id = content_id
        self._state = AccumulatorState.IDLE
        self._start = 0.0
        self._end = 0.0
        self._fresh = False
        self._last_position: Optional[float] = None
        self._furthest: Optional[float] = None
        self._advanced = 0.0
        self._view_registered = False
        self._dropped_empty_span = False

    @property
    def content_id(self) -> Optional[str]:
        return self._content_id

    @property
    def state(self) -> AccumulatorState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is AccumulatorState.OPEN

    @property
    def start_position(self) -> Optional[float]:
        return self._start if self.is_open else None

    @property
    def end_position(self) -> Optional[float]:
        return self._end if self.is_open else None

    @property
    def furthest_position(self) -> Optional[float]:
        return self._furthest

    @property
    def view_registered(self) -> bool:
        return self._view_registered

    @property
    def dropped_empty_span(self) -> bool:
        """Whether the last flush discarded a newly opened span of zero length."""
        return self._dropped_empty_span

    def load(self, content_id: Optional[str]) -> Optional[PlaybackSegment]:
        """Switch to ``content_id`` and return the flushed segment of the old one."""

        segment = self.flush(FlushReason.SOURCE_CHANGE)
        self._content_id = content_id
        self._last_position = None
        self._furthest = None
        self._advanced = 0.0
        self._view_registered = False
        return segment

    def observe(self, position: float) -> SampleOutcome:
        """Feed one playhead sample."""

        if self._content_id is None:
            return SampleOutcome()
        self._dropped_empty_span = False
        position = max(0.0, float(position))
        previous = self._last_position
        self._last_position = position
        if previous is None:
            if self._furthest is None:
                self._furthest = position
            return SampleOutcome()
        if position <= previous:
            return SampleOutcome()

        step = position - previous
        if step > self._max_gap:
            segment = self.flush(FlushReason.SEEK)
            if self._furthest is None or position > self._furthest:
                self._open(position)
            return SampleOutcome(segment=segment)

        self._advanced += step
        furthest = previous if self._furthest is None else self._furthest
        if position > furthest:
            if self._state is AccumulatorState.IDLE:
                self._open(max(previous, furthest))
            self._end = position
            self._furthest = position
        view_due = self._advanced >= self._view_threshold and self.claim_view()
        return SampleOutcome(view_due=view_due)

    def claim_view(self) -> bool:
        """Return True exactly once per loaded episode."""

        if self._view_registered or self._content_id is None:
            return False
        self._view_registered = True
        return True

    def flush(self, reason: FlushReason) -> Optional[PlaybackSegment]:
        """Close the open span and return it when it has positive length.

        A timer flush re-opens at the flushed end, or goes idle when nothing
        advanced since the previous flush. Every other reason goes idle.
        """

        self._dropped_empty_span = False
        if self._state is AccumulatorState.IDLE or self._content_id is None:
            return None
        if self._end <= self._start:
            self._dropped_empty_span = self._fresh
            self._close()
            return None

        segment = PlaybackSegment(self._content_id, self._start, self._end)
        if reason is FlushReason.TIMER:
            self._start = self._end
            self._fresh = False
        else:
            self._close()
        return segment

    def _open(self, position: float) -> None:
        self._state = AccumulatorState.OPEN
        self._start = position
        self._end = position
        self._fresh = True
        if self._furthest is None or position > self._furthest:
            self._furthest = position

    def _close(self) -> None:
        self._state = AccumulatorState.IDLE
        self._start = 0.0
        self._end = 0.0
        self._fresh = False


__all__ = [
    "AccumulatorState",
    "FlushReason",
    "PlaybackSegment",
    "SampleOutcome",
    "SegmentAccumulator",
]
