"""PostgreSQL repository implementation for walk requests."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

import asyncpg  # type: ignore[import-untyped]

from walk_requests.domain.entities import (
    Dog,
    WalkingLocation,
    WalkingLocationCreate,
    WalkRequest,
    WalkRequestCreate,
)
from walk_requests.domain.errors import WalkRequestStoreError
from walk_requests.domain.geo import EARTH_RADIUS_METERS
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

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "dogs",
    "should_start_after",
    "should_start_before",
    "should_end_after",
    "should_end_before",
    "latitude",
    "longitude",
    "created_by",
    "acceptances",
    "accepted_by",
    "accepted_at",
    "started_at",
    "finished_at",
    "canceled_at",
    "created_at",
    "updated_at",
)


def select_columns(alias: str | None = None) -> str:
    """Column list for walk request reads, optionally qualified by a table alias."""

    prefix = "" if alias is None else f"{alias}."
    return ", ".join(f"{prefix}{column}" for column in _COLUMNS)


class SqlParams:
    """Collects positional arguments and hands out `$n` placeholders."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def distance_expression(params: SqlParams, nearby: NearbyPoint) -> str:
    """Haversine distance in meters from the query point to each row."""

    lon = params.add(nearby.longitude)
    lat = params.add(nearby.latitude)
    return (
        f"(2 * {EARTH_RADIUS_METERS} * asin(least(1.0, sqrt("
        f"power(sin(radians(latitude - {lat}::double precision) / 2), 2)"
        f" + cos(radians({lat}::double precision)) * cos(radians(latitude))"
        f" * power(sin(radians(longitude - {lon}::double precision) / 2), 2)"
        f"))))"
    )


def build_where_clause(
    query: WalkRequestQuery,
    params: SqlParams,
    *,
    include_nearby: bool = True,
) -> str:
    """Compile a predicate to a SQL boolean expression."""

    clauses: list[str] = []
    if query.id is not UNSET:
        clauses.append(f"id = {params.add(query.id)}")
    if query.dog_ids_includes_all is not UNSET:
        clauses.append(f"dog_ids @> {params.add(list(query.dog_ids_includes_all))}::text[]")
    if query.dog_ids_includes_any is not UNSET:
        clauses.append(f"dog_ids && {params.add(list(query.dog_ids_includes_any))}::text[]")
    if query.accepted_by is not UNSET:
        clauses.append(f"accepted_by = {params.add(query.accepted_by)}")
    if query.accepted_by_neq is not UNSET:
        clauses.append(f"accepted_by IS DISTINCT FROM {params.add(query.accepted_by_neq)}")
    if query.accepted_by_is_null is not UNSET:
        clauses.append(
            "accepted_by IS NULL" if query.accepted_by_is_null else "accepted_by IS NOT NULL"
        )
    if query.acceptances_includes_all is not UNSET:
        clauses.append(
            f"acceptances @> {params.add(list(query.acceptances_includes_all))}::text[]"
        )
    if query.acceptances_includes_any is not UNSET:
        clauses.append(
            f"acceptances && {params.add(list(query.acceptances_includes_any))}::text[]"
        )
    if query.created_by is not UNSET:
        clauses.append(f"created_by = {params.add(query.created_by)}")
    nearby = query.nearby_point()
    if include_nearby and nearby is not None:
        distance = distance_expression(params, nearby)
        clauses.append(f"{distance} <= {params.add(nearby.radius_meters)}::double precision")
    return " AND ".join(clauses) if clauses else "TRUE"


def build_set_clause(update: WalkRequestUpdate, params: SqlParams) -> str:
    """Compile a mutation to the SET list of one UPDATE statement."""

    assignments: list[str] = []
    for name, value in update.assignments().items():
        if name == "dogs":
            dogs = list(value)
            assignments.append(
                f"dogs = {params.add(json.dumps([{'id': dog.id} for dog in dogs]))}::jsonb"
            )
            assignments.append(f"dog_ids = {params.add([dog.id for dog in dogs])}::text[]")
            continue
        assignments.append(f"{name} = {params.add(value)}")
    for name in update.cleared_fields():
        assignments.append(f"{name} = NULL")

    acceptances = "acceptances"
    if update.add_to_acceptances is not UNSET:
        walker = params.add(update.add_to_acceptances)
        acceptances = (
            f"CASE WHEN {walker}::text = ANY({acceptances}) THEN {acceptances}"
            f" ELSE array_append({acceptances}, {walker}::text) END"
        )
    if update.remove_from_acceptances is not UNSET:
        walker = params.add(update.remove_from_acceptances)
        acceptances = f"array_remove({acceptances}, {walker}::text)"
    if acceptances != "acceptances":
        assignments.append(f"acceptances = {acceptances}")

    assignments.append("updated_at = NOW()")
    return ", ".join(assignments)


def _order_by(sort_by: SortBy) -> str:
    if sort_by.order is SortOrder.DESC:
        return f"ORDER BY {sort_by.field.value} DESC NULLS LAST, id DESC"
    return f"ORDER BY {sort_by.field.value} ASC NULLS FIRST, id ASC"


def _page(pagination: Pagination | None, params: SqlParams) -> str:
    if pagination is None:
        return ""
    return f" OFFSET {params.add(pagination.offset)} LIMIT {params.add(pagination.size)}"


def build_select_statement(
    query: WalkRequestQuery,
    sort_by: SortBy | None = None,
    pagination: Pagination | None = None,
) -> tuple[str, list[Any]]:
    """Compile a read. Proximity reads select by distance, then sort the page."""

    nearby = validate_read(query, sort_by)
    params = SqlParams()
    where = build_where_clause(query, params, include_nearby=False)

    if nearby is None:
        order = "" if sort_by is None else f" {_order_by(sort_by)}"
        sql = f"SELECT {select_columns()} FROM walk_requests WHERE {where}{order}"
        return sql + _page(pagination, params), params.values

    distance = distance_expression(params, nearby)
    radius = params.add(nearby.radius_meters)
    sql = (
        f"SELECT * FROM ("
        f"SELECT {select_columns()}, {distance} AS distance FROM walk_requests WHERE {where}"
        f") AS ranked WHERE distance <= {radius}::double precision"
        f" ORDER BY distance ASC, id ASC{_page(pagination, params)}"
    )
    if sort_by is not None:
        sql = f"SELECT * FROM ({sql}) AS page {_order_by(sort_by)}"
    return sql, params.values


def build_update_one_statement(
    query: WalkRequestQuery,
    update: WalkRequestUpdate,
) -> tuple[str, list[Any]]:
    """Compile a find-one-and-modify; the row lock re-checks the predicate."""

    params = SqlParams()
    where = build_where_clause(query, params)
    set_clause = build_set_clause(update, params)
    sql = f"""
        WITH target AS (
            SELECT id
            FROM walk_requests
            WHERE {where}
            LIMIT 1
            FOR UPDATE
        )
        UPDATE walk_requests AS requests
        SET {set_clause}
        FROM target
        WHERE requests.id = target.id
        RETURNING {select_columns("requests")}
    """
    return sql, params.values


def build_update_many_statement(
    query: WalkRequestQuery,
    update: WalkRequestUpdate,
) -> tuple[str, list[Any]]:
    """Compile a conditional multi-row update."""

    params = SqlParams()
    where = build_where_clause(query, params)
    set_clause = build_set_clause(update, params)
    return f"UPDATE walk_requests SET {set_clause} WHERE {where}", params.values


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.exception("PostgreSQL walk request %s failed.", operation)
        raise WalkRequestStoreError(f"PostgreSQL {operation} failed: {exc}") from exc


class PostgresWalkRequestRepository(WalkRequestRepository):
    """Walk request repository backed by PostgreSQL."""

    def __init__(
        self,
        dsn: str,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
    ) -> None:
        self._dsn = dsn
        self._min_pool_size = min_pool_size
        self._max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def create_walk_request(self, create: WalkRequestCreate) -> str:
        """Insert a new request."""

        request_id = uuid4().hex
        with _store_errors("insert"):
            pool = await self._get_pool()
            await pool.execute(
                """
                INSERT INTO walk_requests (
                    id,
                    dogs,
                    dog_ids,
                    should_start_after,
                    should_start_before,
                    should_end_after,
                    should_end_before,
                    latitude,
                    longitude,
                    created_by,
                    created_at,
                    updated_at
                ) VALUES (
                    $1, $2::jsonb, $3::text[], $4, $5, $6, $7, $8, $9, $10, NOW(), NOW()
                )
                """,
                request_id,
                json.dumps([{"id": dog.id} for dog in create.dogs]),
                [dog.id for dog in create.dogs],
                create.should_start_after,
                create.should_start_before,
                create.should_end_after,
                create.should_end_before,
                create.latitude,
                create.longitude,
                create.created_by,
            )
        return request_id

    async def get_walk_request(self, request_id: str) -> WalkRequest | None:
        """Return by id."""

        with _store_errors("read"):
            pool = await self._get_pool()
            row = await pool.fetchrow(
                f"SELECT {select_columns()} FROM walk_requests WHERE id = $1",
                request_id,
            )
        if row is None:
            return None
        return self._to_entity(row)

    async def query_walk_requests(
        self,
        query: WalkRequestQuery,
        sort_by: SortBy | None = None,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Return matching rows."""

        sql, args = build_select_statement(query, sort_by, pagination)
        with _store_errors("query"):
            pool = await self._get_pool()
            rows = await pool.fetch(sql, *args)
        return [self._to_entity(row) for row in rows]

    async def update_walk_request_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> WalkRequest | None:
        """Modify at most one matching row and return it."""

        sql, args = build_update_one_statement(query, update)
        with _store_errors("conditional update"):
            pool = await self._get_pool()
            row = await pool.fetchrow(sql, *args)
        if row is None:
            return None
        return self._to_entity(row)

    async def update_walk_requests_by_query(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> int:
        """Modify every matching row and return the affected count."""

        sql, args = build_update_many_statement(query, update)
        with _store_errors("conditional update"):
            pool = await self._get_pool()
            result = await pool.execute(sql, *args)
        return _affected_rows(result)

    async def create_walking_location(self, create: WalkingLocationCreate) -> str:
        """Append a telemetry point."""

        location_id = uuid4().hex
        with _store_errors("insert"):
            pool = await self._get_pool()
            await pool.execute(
                """
                INSERT INTO walking_locations (id, request_id, longitude, latitude, created_at)
                VALUES ($1, $2, $3, $4, clock_timestamp())
                """,
                location_id,
                create.request_id,
                create.longitude,
                create.latitude,
            )
        return location_id

    async def list_walking_locations(self, request_id: str) -> list[WalkingLocation]:
        """Return telemetry points in creation order."""

        with _store_errors("read"):
            pool = await self._get_pool()
            rows = await pool.fetch(
                """
                SELECT id, request_id, longitude, latitude, created_at
                FROM walking_locations
                WHERE request_id = $1
                ORDER BY created_at ASC, id ASC
                """,
                request_id,
            )
        return [
            WalkingLocation(
                id=str(row["id"]),
                request_id=str(row["request_id"]),
                longitude=float(row["longitude"]),
                latitude=float(row["latitude"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def close(self) -> None:
        """Close the pool if it was initialized."""

        pool = self._pool
        self._pool = None
        if pool is not None:
            await pool.close()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_pool_size,
                    max_size=self._max_pool_size,
                )
                await self._ensure_schema(pool)
                self._pool = pool
        assert self._pool is not None
        return self._pool

    async def _ensure_schema(self, pool: asyncpg.Pool) -> None:
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS walk_requests (
                id TEXT PRIMARY KEY,
                dogs JSONB NOT NULL DEFAULT '[]'::jsonb,
                dog_ids TEXT[] NOT NULL DEFAULT '{}',
                should_start_after TIMESTAMPTZ,
                should_start_before TIMESTAMPTZ,
                should_end_after TIMESTAMPTZ,
                should_end_before TIMESTAMPTZ,
                latitude DOUBLE PRECISION NOT NULL,
                longitude DOUBLE PRECISION NOT NULL,
                created_by TEXT NOT NULL,
                acceptances TEXT[] NOT NULL DEFAULT '{}',
                accepted_by TEXT,
                accepted_at TIMESTAMPTZ,
                started_at TIMESTAMPTZ,
                finished_at TIMESTAMPTZ,
                canceled_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            CREATE INDEX IF NOT EXISTS idx_walk_requests_created_by
                ON walk_requests (created_by, created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_walk_requests_accepted_by
                ON walk_requests (accepted_by);
            CREATE INDEX IF NOT EXISTS idx_walk_requests_dog_ids
                ON walk_requests USING GIN (dog_ids);
            CREATE INDEX IF NOT EXISTS idx_walk_requests_acceptances
                ON walk_requests USING GIN (acceptances);
            """
        )
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS walking_locations (
                id TEXT PRIMARY KEY,
                request_id TEXT NOT NULL,
                longitude DOUBLE PRECISION NOT NULL,
                latitude DOUBLE PRECISION NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            CREATE INDEX IF NOT EXISTS idx_walking_locations_request
                ON walking_locations (request_id, created_at);
            """
        )

    def _to_entity(self, row: asyncpg.Record) -> WalkRequest:
        distance = row.get("distance")
        return WalkRequest(
            id=str(row["id"]),
            dogs=self._decode_dogs(row["dogs"]),
            should_start_after=row["should_start_after"],
            should_start_before=row["should_start_before"],
            should_end_after=row["should_end_after"],
            should_end_before=row["should_end_before"],
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            created_by=str(row["created_by"]),
            acceptances=[str(item) for item in row["acceptances"] or []],
            accepted_by=self._as_optional_str(row["accepted_by"]),
            accepted_at=row["accepted_at"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            canceled_at=row["canceled_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            distance=None if distance is None else float(distance),
        )

    def _decode_dogs(self, value: object) -> list[Dog]:
        decoded = json.loads(value) if isinstance(value, str) else value
        if not isinstance(decoded, list):
            raise TypeError(f"Expected list payload for dogs, got {type(decoded)!r}.")
        return [Dog(id=str(item["id"])) for item in decoded]

    def _as_optional_str(self, value: object) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        raise TypeError(f"Expected optional string value, got {type(value)!r}.")


def _affected_rows(status: str) -> int:
    """Parse the row count from a command tag such as `UPDATE 3`."""

    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


__all__ = ["PostgresWalkRequestRepository"]
