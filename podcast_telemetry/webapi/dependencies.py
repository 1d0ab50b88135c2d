"""Dependency wiring for the FastAPI application."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, Header

from .. import config_manager as cfg
from ..services.fallback_store import LocalFallbackStore
from ..services.stats_service import StatisticsAggregator
from ..services.view_recorder import ViewRecorder
from ..services.view_store import SqlAlchemyViewStore, ViewStore

TokenResolver = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class RequestUserContext:
    """Identity extracted from forwarded headers or a session token."""

    user_id: str | None
    user_role: str | None


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip() or None
    return authorization.strip() or None


def get_token_resolver() -> TokenResolver:
    """Return the session lookup used for bearer tokens.

    Sessions belong to the authentication service; the default resolver knows
    no tokens. Deployments override this dependency with their session lookup.
    """

    return lambda _token: None


def get_request_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    header_user_id: str | None = Header(default=None, alias="X-User-Id"),
    header_user_role: str | None = Header(default=None, alias="X-User-Role"),
    resolve_token: TokenResolver = Depends(get_token_resolver),
) -> RequestUserContext:
    """Resolve the request user identity from forwarded headers or session token."""

    if header_user_id:
        user_id = header_user_id.strip() or None
        role_value = (header_user_role or "").strip()
        return RequestUserContext(user_id=user_id, user_role=role_value.lower() or None)

    token = _extract_bearer_token(authorization)
    if not token:
        return RequestUserContext(user_id=None, user_role=None)
    return RequestUserContext(user_id=resolve_token(token), user_role=None)


@lru_cache
def get_view_store() -> ViewStore:
    return SqlAlchemyViewStore()


@lru_cache
def get_fallback_store() -> LocalFallbackStore:
    settings = cfg.get_settings()
    return LocalFallbackStore(settings.fallback_store_path, key=settings.fallback_store_key)


def get_view_recorder(
    store: ViewStore = Depends(get_view_store),
    fallback_store: LocalFallbackStore = Depends(get_fallback_store),
    request_user: RequestUserContext = Depends(get_request_user),
) -> ViewRecorder:
    return ViewRecorder(store, fallback_store, actor=lambda: request_user.user_id)


def get_stats_aggregator(
    store: ViewStore = Depends(get_view_store),
    fallback_store: LocalFallbackStore = Depends(get_fallback_store),
) -> StatisticsAggregator:
    return StatisticsAggregator(store, fallback_store)


__all__ = [
    "RequestUserContext",
    "get_fallback_store",
    "get_request_user",
    "get_stats_aggregator",
    "get_token_resolver",
    "get_view_recorder",
    "get_view_store",
]
