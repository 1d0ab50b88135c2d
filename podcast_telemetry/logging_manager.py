"""Structured JSON logging shared by every telemetry component.

All records go through the ``podcast_telemetry`` logger, which writes JSON
lines to a rotating file under ``PODCAST_LOG_DIR`` (default ``<project>/log``)
and to stderr. Values bound with :func:`log_context` are copied onto every
record emitted while the context is active, including records from child
loggers and from tasks spawned inside the context.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterator, List, Optional

LOGGER_NAME = "podcast_telemetry"
LOG_DIR_ENV = "PODCAST_LOG_DIR"
PROJECT_ROOT = Path(__file__).resolve().parents[1]
LOG_DIR = Path(os.environ.get(LOG_DIR_ENV) or PROJECT_ROOT / "log")
LOG_FILE = LOG_DIR / "telemetry.log"
DEFAULT_LOG_LEVEL = logging.INFO
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

_logger: Optional[logging.Logger] = None
_context: contextvars.ContextVar[Dict[str, object]] = contextvars.ContextVar(
    "podcast_telemetry_log_context", default={}
)

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class JSONLogFormatter(logging.Formatter):
    """One JSON object per record."""

    CONTEXT_FIELDS: tuple[str, ...] = (
        "correlation_id",
        "player_id",
        "content_id",
        "event",
        "status",
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pid": record.process,
            "thread": record.threadName,
        }
        extra: Dict[str, object] = {}
        for key, value in record.__dict__.items():
            if key in self.CONTEXT_FIELDS:
                if value is not None:
                    payload[key] = value
            elif key not in _STANDARD_ATTRS:
                extra[key] = value
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class LogContextFilter(logging.Filter):
    """Copy the active :func:`log_context` values onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for key, value in _context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def _build_handlers() -> List[logging.Handler]:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handlers: List[logging.Handler] = [
        RotatingFileHandler(LOG_FILE, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS),
        logging.StreamHandler(),
    ]
    formatter = JSONLogFormatter()
    context_filter = LogContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        # Handler level filters also see records propagated from child loggers.
        handler.addFilter(context_filter)
    return handlers


def setup_logging(log_level: int = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Attach the JSON handlers to the package logger once."""
    global _logger

    if _logger is None:
        logger = logging.getLogger(LOGGER_NAME)
        logger.propagate = False
        for handler in _build_handlers():
            logger.addHandler(handler)
        _logger = logger
    configure_logging_level(log_level=log_level)
    return _logger


def get_logger() -> logging.Logger:
    """Return the package logger, configuring it on first use."""
    if _logger is None:
        return setup_logging()
    return _logger


def configure_logging_level(debug_enabled: bool = False, log_level: Optional[int] = None) -> int:
    """Set the logger and handler level; ``debug_enabled`` selects DEBUG."""
    if log_level is None:
        log_level = logging.DEBUG if debug_enabled else DEFAULT_LOG_LEVEL
    logger = get_logger()
    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)
    return log_level


def get_log_context() -> Dict[str, object]:
    return dict(_context.get())


def push_log_context(**values: object) -> contextvars.Token[Dict[str, object]]:
    """Bind ``values`` (``None`` entries are skipped) and return a reset token."""

    merged = dict(_context.get())
    merged.update((key, value) for key, value in values.items() if value is not None)
    return _context.set(merged)


def pop_log_context(token: contextvars.Token[Dict[str, object]]) -> None:
    _context.reset(token)


@contextlib.contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Bind ``values`` for the duration of the ``with`` block."""

    token = push_log_context(**values)
    try:
        yield
    finally:
        pop_log_context(token)


def clear_log_context() -> None:
    _context.set({})


logger = get_logger()
