"""Top-level API router composition."""

from fastapi import APIRouter

from walk_requests.api.routes import walk_requests_router

api_router = APIRouter()
api_router.include_router(walk_requests_router)

__all__ = ["api_router"]
