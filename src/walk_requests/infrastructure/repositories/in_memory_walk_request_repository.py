"""In-memory repository implementation for walk requests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

from walk_requests.domain.entities import (
    WalkingLocation,
    WalkingLocationCreate,
    WalkRequest,
    WalkRequestCreate,
)
from walk_requests.domain.geo import haversine_meters
from walk_requests.domain.ports import WalkRequestRepository
from walk_requests.domain.queries import (
    UNSET,
    NearbyPoint,
    Pagination,
    SortBy,
    SortOrder,
    WalkRequestQuery,
    validate_read,
)
from walk_requests.domain.updates import WalkRequestUpdate


class InMemoryWalkRequestRepository(WalkRequestRepository):
    """Simple repository for local development and tests.

    Every predicate evaluation and mutation runs under one lock, which gives
    the same all-or-nothing guarantee as a store-side find-and-modify.
    """

    def __init__(self) -> None:
        self._requests: dict[str, WalkRequest] = {}
        self._locations: dict[str, WalkingLocation] = {}
        self._lock = asyncio.Lock()

    async def create_walk_request(self, create: WalkRequestCreate) -> str:
        """Insert a new request."""

        now = datetime.now(tz=UTC)
        request_id = uuid4().hex
        async with self._lock:
            self._requests[request_id] = WalkRequest(
                id=request_id,
                dogs=list(create.dogs),
                latitude=create.latitude,
                longitude=create.longitude,
                created_by=create.created_by,
                should_start_after=create.should_start_after,
                should_start_before=create.should_start_before,
                should_end_after=create.should_end_after,
                should_end_before=create.should_end_before,
                created_at=now,
                updated_at=now,
            )
        return request_id

    async def get_walk_request(self, request_id: str) -> WalkRequest | None:
        """Return by id."""

        async with self._lock:
            walk_request = self._requests.get(request_id)
            return None if walk_request is None else _snapshot(walk_request)

    async def query_walk_requests(
        self,
        query: WalkRequestQuery,
        sort_by: SortBy | None = None,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Filter, rank, paginate and sort in that order."""

        nearby = validate_read(query, sort_by)
        async with self._lock:
            if nearby is None:
                results = [_snapshot(item) for item in self._matching(query)]
                if sort_by is not None:
                    results = _sorted(results, sort_by)
                return _paginate(results, pagination)

            ranked = [
                _snapshot(item, distance=distance)
                for item, distance in _ranked_by_distance(self._matching(query), nearby)
            ]
        page = _paginate(ranked, pagination)
        if sort_by is not None:
            page = _sorted(page, sort_by)
        return page

    async def update_walk_request_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> WalkRequest | None:
        """Modify the first match and return it as updated."""

        nearby = query.nearby_point()
        now = datetime.now(tz=UTC)
        async with self._lock:
            matches = self._matching(query)
            if nearby is not None:
                matches = [item for item, _ in _ranked_by_distance(matches, nearby)]
            if not matches:
                return None
            target = matches[0]
            _apply(target, update, now)
            return _snapshot(target)

    async def update_walk_requests_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> int:
        """Modify every match and return how many were modified."""

        nearby = query.nearby_point()
        now = datetime.now(tz=UTC)
        async with self._lock:
            matches = self._matching(query)
            if nearby is not None:
                matches = [item for item, _ in _ranked_by_distance(matches, nearby)]
            for target in matches:
                _apply(target, update, now)
            return len(matches)

    async def create_walking_location(self, create: WalkingLocationCreate) -> str:
        """Append a telemetry point."""

        location_id = uuid4().hex
        async with self._lock:
            self._locations[location_id] = WalkingLocation(
                id=location_id,
                request_id=create.request_id,
                longitude=create.longitude,
                latitude=create.latitude,
                created_at=datetime.now(tz=UTC),
            )
        return location_id

    async def list_walking_locations(self, request_id: str) -> list[WalkingLocation]:
        """Return telemetry points in insertion order."""

        async with self._lock:
            return [
                location
                for location in self._locations.values()
                if location.request_id == request_id
            ]

    async def close(self) -> None:
        return None

    def _matching(self, query: WalkRequestQuery) -> list[WalkRequest]:
        if query.id is not UNSET:
            candidate = self._requests.get(query.id)
            candidates: Iterable[WalkRequest] = () if candidate is None else (candidate,)
        else:
            candidates = self._requests.values()
        return [item for item in candidates if _matches(item, query)]


def _matches(walk_request: WalkRequest, query: WalkRequestQuery) -> bool:
    """Evaluate every constraint except proximity."""

    if query.id is not UNSET and walk_request.id != query.id:
        return False
    dog_ids = set(walk_request.dog_ids)
    if query.dog_ids_includes_all is not UNSET and not dog_ids.issuperset(
        query.dog_ids_includes_all
    ):
        return False
    if query.dog_ids_includes_any is not UNSET and dog_ids.isdisjoint(query.dog_ids_includes_any):
        return False
    if query.accepted_by is not UNSET and walk_request.accepted_by != query.accepted_by:
        return False
    if query.accepted_by_neq is not UNSET and walk_request.accepted_by == query.accepted_by_neq:
        return False
    if query.accepted_by_is_null is not UNSET and (
        (walk_request.accepted_by is None) is not query.accepted_by_is_null
    ):
        return False
    acceptances = set(walk_request.acceptances)
    if query.acceptances_includes_all is not UNSET and not acceptances.issuperset(
        query.acceptances_includes_all
    ):
        return False
    if query.acceptances_includes_any is not UNSET and acceptances.isdisjoint(
        query.acceptances_includes_any
    ):
        return False
    if query.created_by is not UNSET and walk_request.created_by != query.created_by:
        return False
    return True


def _ranked_by_distance(
    candidates: Iterable[WalkRequest],
    nearby: NearbyPoint,
) -> list[tuple[WalkRequest, float]]:
    ranked = []
    for item in candidates:
        distance = haversine_meters(
            nearby.longitude,
            nearby.latitude,
            item.longitude,
            item.latitude,
        )
        if distance <= nearby.radius_meters:
            ranked.append((item, distance))
    ranked.sort(key=lambda pair: pair[1])
    return ranked


def _apply(walk_request: WalkRequest, update: WalkRequestUpdate, now: datetime) -> None:
    for name, value in update.assignments().items():
        setattr(walk_request, name, list(value) if name == "dogs" else value)
    for name in update.cleared_fields():
        setattr(walk_request, name, None)
    if (
        update.add_to_acceptances is not UNSET
        and update.add_to_acceptances not in walk_request.acceptances
    ):
        walk_request.acceptances.append(update.add_to_acceptances)
    if update.remove_from_acceptances is not UNSET:
        walk_request.acceptances = [
            walker_id
            for walker_id in walk_request.acceptances
            if walker_id != update.remove_from_acceptances
        ]
    walk_request.updated_at = now


def _snapshot(walk_request: WalkRequest, distance: float | None = None) -> WalkRequest:
    return replace(
        walk_request,
        dogs=list(walk_request.dogs),
        acceptances=list(walk_request.acceptances),
        distance=distance,
    )


def _sorted(results: list[WalkRequest], sort_by: SortBy) -> list[WalkRequest]:
    """Single-field sort, ties broken on id; missing values first ascending, last descending."""

    def key(walk_request: WalkRequest) -> tuple[int, object, str]:
        value = getattr(walk_request, sort_by.field.value)
        if value is None:
            return (0, 0, walk_request.id)
        return (1, value, walk_request.id)

    return sorted(results, key=key, reverse=sort_by.order is SortOrder.DESC)


def _paginate(results: list[WalkRequest], pagination: Pagination | None) -> list[WalkRequest]:
    if pagination is None:
        return results
    return results[pagination.offset : pagination.offset + pagination.size]


__all__ = ["InMemoryWalkRequestRepository"]
