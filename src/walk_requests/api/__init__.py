"""HTTP API public surface."""

from walk_requests.api.router import api_router

__all__ = ["api_router"]
