"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from fastapi import Depends, HTTPException, Query, Request

from walk_requests.application.services import WalkRequestService
from walk_requests.bootstrap import build_walk_request_service
from walk_requests.config import Settings
from walk_requests.domain.queries import Pagination


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_walk_request_service() -> WalkRequestService:
    """Return singleton service graph."""

    return build_walk_request_service(get_settings())


def get_current_user_id(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str:
    """Caller identity, established upstream and forwarded in a header."""

    user_id = request.headers.get(settings.user_id_header, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=401,
            detail=f"Missing caller identity header '{settings.user_id_header}'.",
        )
    return user_id


def get_pagination(
    page: int = Query(default=1, ge=1),
    size: int | None = Query(default=None, ge=1),
    settings: Settings = Depends(get_settings),
) -> Pagination:
    """Page parameters with the configured default and cap."""

    page_size = settings.default_page_size if size is None else min(size, settings.max_page_size)
    return Pagination(page=page, size=page_size)


__all__ = [
    "get_current_user_id",
    "get_pagination",
    "get_settings",
    "get_walk_request_service",
]
