"""Exceptions raised by the telemetry store layer."""

from __future__ import annotations


class TelemetryError(RuntimeError):
    """Base class for playback telemetry failures."""


class StoreError(TelemetryError):
    """Raised when the durable view store cannot complete an operation."""


class TransientStoreError(StoreError):
    """Raised when a write to the durable store is rejected or unreachable."""


class QueryError(StoreError):
    """Raised when a read or aggregate call against the durable store fails."""


__all__ = ["QueryError", "StoreError", "TelemetryError", "TransientStoreError"]
