"""SQLAlchemy database layer for podcast-telemetry.

Provides the shared engine, session factory, and declarative base used by
the durable view store.
"""

from .base import Base
from .engine import build_engine, dispose_engine, get_db_session, get_engine, session_scope

__all__ = ["Base", "build_engine", "get_engine", "get_db_session", "dispose_engine", "session_scope"]
