"""Liveness route, mounted outside the API prefix."""

from fastapi import APIRouter, Depends

from walk_requests import __version__
from walk_requests.api.dependencies import get_settings
from walk_requests.config import Settings

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Report process liveness and the configured walk request store."""

    return {
        "status": "ok",
        "version": __version__,
        "repositoryBackend": settings.repository_backend.value,
    }


__all__ = ["router"]
