"""Route modules public API."""

from walk_requests.api.routes.health import router as health_router
from walk_requests.api.routes.walk_requests import router as walk_requests_router

__all__ = ["health_router", "walk_requests_router"]
