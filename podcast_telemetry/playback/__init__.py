"""Client-side playback telemetry: playhead observation and segment accumulation."""

from .observer import PlayheadEvent, PlayheadEventKind, PlayheadObserver
from .segments import AccumulatorState, FlushReason, PlaybackSegment, SegmentAccumulator
from .session import PlayerTelemetrySession

__all__ = [
    "AccumulatorState",
    "FlushReason",
    "PlaybackSegment",
    "PlayerTelemetrySession",
    "PlayheadEvent",
    "PlayheadEventKind",
    "PlayheadObserver",
    "SegmentAccumulator",
]
