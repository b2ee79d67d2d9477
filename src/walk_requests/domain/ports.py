"""Persistence port for walk requests."""

from __future__ import annotations

from typing import Protocol

from walk_requests.domain.entities import (
    WalkingLocation,
    WalkingLocationCreate,
    WalkRequest,
    WalkRequestCreate,
)
from walk_requests.domain.queries import Pagination, SortBy, WalkRequestQuery
from walk_requests.domain.updates import WalkRequestUpdate


class WalkRequestRepository(Protocol):
    """Store capability consumed by the lifecycle layer.

    Conditional updates must evaluate the predicate and apply the mutation as
    one indivisible store operation.
    """

    async def create_walk_request(self, create: WalkRequestCreate) -> str:
        """Insert a new request and return its generated id."""

    async def get_walk_request(self, request_id: str) -> WalkRequest | None:
        """Return one request by id."""

    async def query_walk_requests(
        self,
        query: WalkRequestQuery,
        sort_by: SortBy | None = None,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Return matching requests, distance-ranked when `nearby` is set."""

    async def update_walk_request_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> WalkRequest | None:
        """Atomically modify at most one match and return it as updated."""

    async def update_walk_requests_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> int:
        """Atomically modify every match and return the affected count."""

    async def create_walking_location(self, create: WalkingLocationCreate) -> str:
        """Append a telemetry point and return its generated id."""

    async def list_walking_locations(self, request_id: str) -> list[WalkingLocation]:
        """Return telemetry points of one request in creation order."""

    async def close(self) -> None:
        """Release store connections."""


__all__ = ["WalkRequestRepository"]
