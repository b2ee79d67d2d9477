"""Application bootstrap/wiring."""

import logging

from walk_requests.application.services import WalkRequestService
from walk_requests.config import RepositoryBackend, Settings
from walk_requests.domain.ports import WalkRequestRepository
from walk_requests.infrastructure.repositories import (
    InMemoryWalkRequestRepository,
    MongoWalkRequestRepository,
    PostgresWalkRequestRepository,
)

logger = logging.getLogger(__name__)


def _build_repository(settings: Settings) -> WalkRequestRepository:
    if settings.repository_backend == RepositoryBackend.POSTGRES:
        if settings.postgres_dsn is None:
            raise ValueError(
                "WALK_REQUESTS_POSTGRES_DSN is required when "
                "WALK_REQUESTS_REPOSITORY_BACKEND=postgres."
            )
        return PostgresWalkRequestRepository(
            dsn=settings.postgres_dsn,
            min_pool_size=settings.postgres_pool_min_size,
            max_pool_size=settings.postgres_pool_max_size,
        )
    if settings.repository_backend == RepositoryBackend.MONGODB:
        if settings.mongodb_url is None:
            raise ValueError(
                "WALK_REQUESTS_MONGODB_URL is required when "
                "WALK_REQUESTS_REPOSITORY_BACKEND=mongodb."
            )
        return MongoWalkRequestRepository(
            url=settings.mongodb_url,
            database=settings.mongodb_database,
        )
    return InMemoryWalkRequestRepository()


def build_walk_request_service(settings: Settings) -> WalkRequestService:
    """Compose service graph."""

    repository = _build_repository(settings)
    logger.info(
        "Using '%s' walk request repository backend.",
        settings.repository_backend.value,
    )
    return WalkRequestService(repository=repository)


__all__ = ["build_walk_request_service"]
