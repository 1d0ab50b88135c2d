"""Client-local view counters used when the durable store rejects a write."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .. import logging_manager
from ..config_manager import DEFAULT_FALLBACK_STORE_KEY


logger = logging_manager.get_logger().getChild("fallback_store")


def _atomic_write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
    tmp_path.replace(path)


class LocalFallbackStore:
    """Durable ``content_id -> view count`` map stored as one JSON document.

    The document mirrors a browser key-value slot: the counters live under a
    single key (``podcast_episode_views`` by default). Every increment is a
    full read-modify-write of the document, so concurrent writers in separate
    processes are last-writer-wins. Writers in this process are serialised.
    """

    def __init__(self, path: Path | str, *, key: str = DEFAULT_FALLBACK_STORE_KEY) -> None:
        self._path = Path(path)
        self._key = key
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def increment(self, content_id: str) -> int:
        """Add one view for ``content_id`` and return the new count."""

        with self._lock:
            document = self._load_document()
            counters = self._normalize_counters(document.get(self._key))
            counters[content_id] = counters.get(content_id, 0) + 1
            document[self._key] = counters
            _atomic_write_json(self._path, document)
            return counters[content_id]

    def read_all(self) -> Dict[str, int]:
        with self._lock:
            return self._normalize_counters(self._load_document().get(self._key))

    def get(self, content_id: str) -> int:
        return self.read_all().get(content_id, 0)

    def _load_document(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(
                "Failed to load fallback counters from %s: %s",
                self._path,
                exc,
                extra={"event": "fallback.load_failed"},
            )
            return {}
        if not isinstance(payload, dict):
            return {}
        return payload

    @staticmethod
    def _normalize_counters(raw: Optional[Any]) -> Dict[str, int]:
        if not isinstance(raw, dict):
            return {}
        counters: Dict[str, int] = {}
        for key, value in raw.items():
            try:
                count = int(value)
            except (TypeError, ValueError):
                continue
            if count > 0:
                counters[str(key)] = count
        return counters


__all__ = ["LocalFallbackStore"]
