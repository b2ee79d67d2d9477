"""MongoDB repository implementation for walk requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, GEOSPHERE, AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from walk_requests.domain.entities import (
    Dog,
    WalkingLocation,
    WalkingLocationCreate,
    WalkRequest,
    WalkRequestCreate,
)
from walk_requests.domain.errors import WalkRequestStoreError
from walk_requests.domain.geo import meters_to_radians
from walk_requests.domain.ports import WalkRequestRepository
from walk_requests.domain.queries import (
    UNSET,
    Pagination,
    SortBy,
    SortOrder,
    WalkRequestQuery,
    validate_read,
)
from walk_requests.domain.updates import WalkRequestUpdate

logger = logging.getLogger(__name__)

WALK_REQUESTS_COLLECTION = "walk_requests"
WALKING_LOCATIONS_COLLECTION = "walking_locations"


def object_id_or_none(value: str) -> ObjectId | None:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def build_filter(query: WalkRequestQuery, *, include_nearby: bool = True) -> dict[str, Any]:
    """Compile a predicate to a filter document.

    Proximity compiles to `$geoWithin`, which is legal inside updates; reads
    rank by distance with a `$geoNear` stage instead and pass
    `include_nearby=False`.
    """

    clauses: list[dict[str, Any]] = []
    if query.id is not UNSET:
        # Ids that are not ObjectIds match nothing.
        clauses.append({"_id": object_id_or_none(query.id)})
    if query.dog_ids_includes_all is not UNSET:
        clauses.append({"dog_ids": {"$all": list(query.dog_ids_includes_all)}})
    if query.dog_ids_includes_any is not UNSET:
        clauses.append({"dog_ids": {"$in": list(query.dog_ids_includes_any)}})
    if query.accepted_by is not UNSET:
        clauses.append({"accepted_by": query.accepted_by})
    if query.accepted_by_neq is not UNSET:
        clauses.append({"accepted_by": {"$ne": query.accepted_by_neq}})
    if query.accepted_by_is_null is not UNSET:
        clauses.append(
            {"accepted_by": None}
            if query.accepted_by_is_null
            else {"accepted_by": {"$ne": None}}
        )
    if query.acceptances_includes_all is not UNSET:
        clauses.append({"acceptances": {"$all": list(query.acceptances_includes_all)}})
    if query.acceptances_includes_any is not UNSET:
        clauses.append({"acceptances": {"$in": list(query.acceptances_includes_any)}})
    if query.created_by is not UNSET:
        clauses.append({"created_by": query.created_by})
    nearby = query.nearby_point()
    if include_nearby and nearby is not None:
        clauses.append(
            {
                "location": {
                    "$geoWithin": {
                        "$centerSphere": [
                            [nearby.longitude, nearby.latitude],
                            meters_to_radians(nearby.radius_meters),
                        ]
                    }
                }
            }
        )

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _literal(value: Any) -> dict[str, Any]:
    return {"$literal": value}


def build_update_pipeline(update: WalkRequestUpdate, now: datetime) -> list[dict[str, Any]]:
    """Compile a mutation to an update pipeline applied in one write.

    Values are wrapped in `$literal` so ids that start with `$` are never read
    as field paths.
    """

    assignments = update.assignments()
    set_stage: dict[str, Any] = {}
    for name, value in assignments.items():
        if name in {"latitude", "longitude"}:
            continue
        if name == "dogs":
            dogs = list(value)
            set_stage["dogs"] = _literal([{"id": dog.id} for dog in dogs])
            set_stage["dog_ids"] = _literal([dog.id for dog in dogs])
            continue
        set_stage[name] = _literal(value)

    if "latitude" in assignments or "longitude" in assignments:
        longitude = (
            _literal(assignments["longitude"])
            if "longitude" in assignments
            else {"$arrayElemAt": ["$location.coordinates", 0]}
        )
        latitude = (
            _literal(assignments["latitude"])
            if "latitude" in assignments
            else {"$arrayElemAt": ["$location.coordinates", 1]}
        )
        set_stage["location"] = {
            "type": "Point",
            "coordinates": [longitude, latitude],
        }

    acceptances: Any = {"$ifNull": ["$acceptances", []]}
    changed_acceptances = False
    if update.add_to_acceptances is not UNSET:
        walker = _literal(update.add_to_acceptances)
        acceptances = {
            "$cond": [
                {"$in": [walker, acceptances]},
                acceptances,
                {"$concatArrays": [acceptances, [walker]]},
            ]
        }
        changed_acceptances = True
    if update.remove_from_acceptances is not UNSET:
        acceptances = {
            "$filter": {
                "input": acceptances,
                "as": "walker",
                "cond": {"$ne": ["$$walker", _literal(update.remove_from_acceptances)]},
            }
        }
        changed_acceptances = True
    if changed_acceptances:
        set_stage["acceptances"] = acceptances

    set_stage["updated_at"] = _literal(now)
    pipeline: list[dict[str, Any]] = [{"$set": set_stage}]
    cleared = update.cleared_fields()
    if cleared:
        pipeline.append({"$unset": cleared})
    return pipeline


def _sort_spec(sort_by: SortBy) -> list[tuple[str, int]]:
    direction = DESCENDING if sort_by.order is SortOrder.DESC else ASCENDING
    return [(sort_by.field.value, direction), ("_id", direction)]


def build_nearby_pipeline(
    query: WalkRequestQuery,
    sort_by: SortBy | None = None,
    pagination: Pagination | None = None,
) -> list[dict[str, Any]]:
    """Distance-ranked read: `$geoNear`, then page, then optional re-sort."""

    nearby = query.nearby_point()
    if nearby is None:
        raise ValueError("build_nearby_pipeline requires a nearby constraint.")
    pipeline: list[dict[str, Any]] = [
        {
            "$geoNear": {
                "near": {"type": "Point", "coordinates": [nearby.longitude, nearby.latitude]},
                "distanceField": "distance",
                "maxDistance": nearby.radius_meters,
                "query": build_filter(query, include_nearby=False),
                "spherical": True,
                "key": "location",
            }
        }
    ]
    if pagination is not None:
        pipeline.append({"$skip": pagination.offset})
        pipeline.append({"$limit": pagination.size})
    if sort_by is not None:
        pipeline.append({"$sort": dict(_sort_spec(sort_by))})
    return pipeline


def to_entity(document: Mapping[str, Any]) -> WalkRequest:
    """Map a stored document to a walk request."""

    longitude, latitude = document["location"]["coordinates"]
    distance = document.get("distance")
    return WalkRequest(
        id=str(document["_id"]),
        dogs=[Dog(id=str(dog["id"])) for dog in document.get("dogs", [])],
        should_start_after=_as_utc(document.get("should_start_after")),
        should_start_before=_as_utc(document.get("should_start_before")),
        should_end_after=_as_utc(document.get("should_end_after")),
        should_end_before=_as_utc(document.get("should_end_before")),
        latitude=float(latitude),
        longitude=float(longitude),
        created_by=str(document["created_by"]),
        acceptances=[str(item) for item in document.get("acceptances") or []],
        accepted_by=document.get("accepted_by"),
        accepted_at=_as_utc(document.get("accepted_at")),
        started_at=_as_utc(document.get("started_at")),
        finished_at=_as_utc(document.get("finished_at")),
        canceled_at=_as_utc(document.get("canceled_at")),
        created_at=_as_utc(document.get("created_at")),
        updated_at=_as_utc(document.get("updated_at")),
        distance=None if distance is None else float(distance),
    )


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        logger.exception("MongoDB walk request %s failed.", operation)
        raise WalkRequestStoreError(f"MongoDB {operation} failed: {exc}") from exc


class MongoWalkRequestRepository(WalkRequestRepository):
    """Walk request repository backed by MongoDB."""

    def __init__(self, url: str, database: str = "walk") -> None:
        self._url = url
        self._database_name = database
        self._client: AsyncMongoClient[dict[str, Any]] | None = None
        self._database: Any = None
        self._client_lock = asyncio.Lock()

    async def create_walk_request(self, create: WalkRequestCreate) -> str:
        """Insert a new request."""

        now = datetime.now(tz=UTC)
        with _store_errors("insert"):
            database = await self._get_database()
            result = await database[WALK_REQUESTS_COLLECTION].insert_one(
                {
                    "dogs": [{"id": dog.id} for dog in create.dogs],
                    "dog_ids": [dog.id for dog in create.dogs],
                    "should_start_after": create.should_start_after,
                    "should_start_before": create.should_start_before,
                    "should_end_after": create.should_end_after,
                    "should_end_before": create.should_end_before,
                    "location": {
                        "type": "Point",
                        "coordinates": [create.longitude, create.latitude],
                    },
                    "created_by": create.created_by,
                    "acceptances": [],
                    "created_at": now,
                    "updated_at": now,
                }
            )
        return str(result.inserted_id)

    async def get_walk_request(self, request_id: str) -> WalkRequest | None:
        """Return by id."""

        object_id = object_id_or_none(request_id)
        if object_id is None:
            return None
        with _store_errors("read"):
            database = await self._get_database()
            document = await database[WALK_REQUESTS_COLLECTION].find_one({"_id": object_id})
        if document is None:
            return None
        return to_entity(document)

    async def query_walk_requests(
        self,
        query: WalkRequestQuery,
        sort_by: SortBy | None = None,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Return matching documents."""

        nearby = validate_read(query, sort_by)
        with _store_errors("query"):
            database = await self._get_database()
            collection = database[WALK_REQUESTS_COLLECTION]
            if nearby is not None:
                cursor = await collection.aggregate(
                    build_nearby_pipeline(query, sort_by, pagination)
                )
            else:
                cursor = collection.find(build_filter(query))
                if sort_by is not None:
                    cursor = cursor.sort(_sort_spec(sort_by))
                if pagination is not None:
                    cursor = cursor.skip(pagination.offset).limit(pagination.size)
            return [to_entity(document) async for document in cursor]

    async def update_walk_request_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> WalkRequest | None:
        """Find-one-and-modify, returning the document after the write."""

        with _store_errors("conditional update"):
            database = await self._get_database()
            document = await database[WALK_REQUESTS_COLLECTION].find_one_and_update(
                build_filter(query),
                build_update_pipeline(update, datetime.now(tz=UTC)),
                return_document=ReturnDocument.AFTER,
            )
        if document is None:
            return None
        return to_entity(document)

    async def update_walk_requests_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> int:
        """Modify every match and return the matched count."""

        with _store_errors("conditional update"):
            database = await self._get_database()
            result = await database[WALK_REQUESTS_COLLECTION].update_many(
                build_filter(query),
                build_update_pipeline(update, datetime.now(tz=UTC)),
            )
        return result.matched_count

    async def create_walking_location(self, create: WalkingLocationCreate) -> str:
        """Append a telemetry point."""

        with _store_errors("insert"):
            database = await self._get_database()
            result = await database[WALKING_LOCATIONS_COLLECTION].insert_one(
                {
                    "request_id": create.request_id,
                    "longitude": create.longitude,
                    "latitude": create.latitude,
                    "created_at": datetime.now(tz=UTC),
                }
            )
        return str(result.inserted_id)

    async def list_walking_locations(self, request_id: str) -> list[WalkingLocation]:
        """Return telemetry points in creation order."""

        with _store_errors("read"):
            database = await self._get_database()
            cursor = (
                database[WALKING_LOCATIONS_COLLECTION]
                .find({"request_id": request_id})
                .sort([("created_at", ASCENDING), ("_id", ASCENDING)])
            )
            return [
                WalkingLocation(
                    id=str(document["_id"]),
                    request_id=str(document["request_id"]),
                    longitude=float(document["longitude"]),
                    latitude=float(document["latitude"]),
                    created_at=_as_utc(document.get("created_at")),
                )
                async for document in cursor
            ]

    async def close(self) -> None:
        """Close the client if it was initialized."""

        client = self._client
        self._client = None
        self._database = None
        if client is not None:
            await client.close()

    async def _get_database(self) -> Any:
        if self._database is not None:
            return self._database

        async with self._client_lock:
            if self._database is None:
                client: AsyncMongoClient[dict[str, Any]] = AsyncMongoClient(
                    self._url,
                    tz_aware=True,
                )
                database = client[self._database_name]
                await self._ensure_indexes(database)
                self._client = client
                self._database = database
        return self._database

    async def _ensure_indexes(self, database: Any) -> None:
        walk_requests = database[WALK_REQUESTS_COLLECTION]
        await walk_requests.create_index([("location", GEOSPHERE)])
        await walk_requests.create_index([("created_by", ASCENDING), ("created_at", DESCENDING)])
        await walk_requests.create_index([("accepted_by", ASCENDING)])
        await walk_requests.create_index([("dog_ids", ASCENDING)])
        await walk_requests.create_index([("acceptances", ASCENDING)])
        await database[WALKING_LOCATIONS_COLLECTION].create_index(
            [("request_id", ASCENDING), ("created_at", ASCENDING)]
        )


__all__ = ["MongoWalkRequestRepository"]
