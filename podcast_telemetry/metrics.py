"""Prometheus counters for playback telemetry.

The counters are module level so every recorder and player session in the
process reports into the same registry. The HTTP app exposes them on
``/metrics`` (see :mod:`podcast_telemetry.webapi.metrics`).
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------
VIEWS_REGISTERED = Counter(
    "podcast_views_registered_total",
    "View registrations by the path that stored them",
    ["path"],  # remote | fallback | failed
)

# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------
PLAYBACK_REGISTRATIONS = Counter(
    "podcast_playback_registrations_total",
    "Playback registrations by outcome",
    ["outcome"],  # inserted | incremented | skipped | failed
)

MINUTES_RECORDED = Counter(
    "podcast_playback_minutes_recorded_total",
    "Minutes of listening persisted to the durable store",
)

SEGMENT_SECONDS = Histogram(
    "podcast_playback_segment_seconds",
    "Length of flushed playback segments in seconds",
    buckets=[1, 5, 10, 15, 30, 60, 120, 300],
)

SEGMENTS_DROPPED = Counter(
    "podcast_playback_segments_dropped_total",
    "Flushes discarded because the segment had no positive length",
)

# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
STATS_QUERY_FAILURES = Counter(
    "podcast_stats_query_failures_total",
    "Aggregate statistics reads that failed and returned no rows",
)

__all__ = [
    "MINUTES_RECORDED",
    "PLAYBACK_REGISTRATIONS",
    "SEGMENTS_DROPPED",
    "SEGMENT_SECONDS",
    "STATS_QUERY_FAILURES",
    "VIEWS_REGISTERED",
]
