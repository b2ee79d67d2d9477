"""Domain public API."""

from walk_requests.domain.entities import (
    Dog,
    WalkingLocation,
    WalkingLocationCreate,
    WalkRequest,
    WalkRequestCreate,
    WalkRequestStatus,
    derive_status,
)
from walk_requests.domain.errors import (
    WalkRequestError,
    WalkRequestGuardError,
    WalkRequestNotFoundError,
    WalkRequestStoreError,
    WalkRequestValidationError,
)
from walk_requests.domain.ports import WalkRequestRepository
from walk_requests.domain.queries import (
    UNSET,
    NearbyPoint,
    Pagination,
    SortBy,
    SortField,
    SortOrder,
    Unset,
    WalkRequestQuery,
)
from walk_requests.domain.updates import WalkRequestUpdate

__all__ = [
    "Dog",
    "NearbyPoint",
    "Pagination",
    "SortBy",
    "SortField",
    "SortOrder",
    "UNSET",
    "Unset",
    "WalkRequest",
    "WalkRequestCreate",
    "WalkRequestError",
    "WalkRequestGuardError",
    "WalkRequestNotFoundError",
    "WalkRequestQuery",
    "WalkRequestRepository",
    "WalkRequestStatus",
    "WalkRequestStoreError",
    "WalkRequestUpdate",
    "WalkRequestValidationError",
    "WalkingLocation",
    "WalkingLocationCreate",
    "derive_status",
]
