"""Infrastructure layer public API."""

from walk_requests.infrastructure.repositories import (
    InMemoryWalkRequestRepository,
    MongoWalkRequestRepository,
    PostgresWalkRequestRepository,
)

__all__ = [
    "InMemoryWalkRequestRepository",
    "MongoWalkRequestRepository",
    "PostgresWalkRequestRepository",
]
