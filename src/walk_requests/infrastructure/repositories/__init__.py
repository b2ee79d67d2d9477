"""Repository implementations."""

from walk_requests.infrastructure.repositories.in_memory_walk_request_repository import (
    InMemoryWalkRequestRepository,
)
from walk_requests.infrastructure.repositories.mongo_walk_request_repository import (
    MongoWalkRequestRepository,
)
from walk_requests.infrastructure.repositories.postgres_walk_request_repository import (
    PostgresWalkRequestRepository,
)

__all__ = [
    "InMemoryWalkRequestRepository",
    "MongoWalkRequestRepository",
    "PostgresWalkRequestRepository",
]
