"""Predicate, sort and pagination models for walk request lookups.

A `WalkRequestQuery` is a conjunction of optional constraints. Every field
defaults to `UNSET`, which means "unconstrained" and is distinct from any real
value: `accepted_by_is_null=False` and `accepted_by=""` both constrain, `UNSET`
does not.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Final

from walk_requests.domain.errors import WalkRequestValidationError


class Unset(Enum):
    """Marker type for an absent optional constraint or assignment."""

    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = Unset.UNSET

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


@dataclass(slots=True, frozen=True)
class NearbyPoint:
    """Validated proximity constraint."""

    longitude: float
    latitude: float
    radius_meters: float

    @classmethod
    def from_components(cls, components: Sequence[object]) -> NearbyPoint:
        """Parse `[longitude, latitude, radius]` or raise a validation error."""

        if isinstance(components, str | bytes) or len(components) != 3:
            raise WalkRequestValidationError(
                "nearby must have exactly three components: longitude, latitude, radius."
            )
        values: list[float] = []
        for component in components:
            if isinstance(component, bool) or not isinstance(component, int | float):
                raise WalkRequestValidationError(
                    f"nearby components must be numbers, got {component!r}."
                )
            if not math.isfinite(component):
                raise WalkRequestValidationError("nearby components must be finite.")
            values.append(float(component))

        longitude, latitude, radius = values
        validate_coordinates(longitude=longitude, latitude=latitude)
        if radius < 0:
            raise WalkRequestValidationError("nearby radius must be >= 0.")
        return cls(longitude=longitude, latitude=latitude, radius_meters=radius)


def validate_coordinates(*, longitude: float, latitude: float) -> None:
    """Ensure a lon/lat pair lies on the globe."""

    if not -180.0 <= longitude <= 180.0:
        raise WalkRequestValidationError(f"longitude must be within [-180, 180], got {longitude}.")
    if not -90.0 <= latitude <= 90.0:
        raise WalkRequestValidationError(f"latitude must be within [-90, 90], got {latitude}.")


@dataclass(slots=True, frozen=True)
class WalkRequestQuery:
    """Which walk requests qualify. All set constraints must hold."""

    id: str | Unset = UNSET
    dog_ids_includes_all: Sequence[str] | Unset = UNSET
    dog_ids_includes_any: Sequence[str] | Unset = UNSET
    nearby: Sequence[float] | Unset = UNSET
    accepted_by: str | Unset = UNSET
    accepted_by_neq: str | Unset = UNSET
    accepted_by_is_null: bool | Unset = UNSET
    acceptances_includes_all: Sequence[str] | Unset = UNSET
    acceptances_includes_any: Sequence[str] | Unset = UNSET
    created_by: str | Unset = UNSET

    def nearby_point(self) -> NearbyPoint | None:
        """Return the validated proximity constraint, if any."""

        if self.nearby is UNSET:
            return None
        return NearbyPoint.from_components(self.nearby)

    def validate(self) -> None:
        """Reject malformed constraints before the store is touched."""

        self.nearby_point()
        for name in (
            "dog_ids_includes_all",
            "dog_ids_includes_any",
            "acceptances_includes_all",
            "acceptances_includes_any",
        ):
            value = getattr(self, name)
            if value is UNSET:
                continue
            if isinstance(value, str) or not value:
                raise WalkRequestValidationError(f"{name} must be a non-empty list of ids.")


class SortField(StrEnum):
    """Fields a walk request listing can be sorted by."""

    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    SHOULD_START_AFTER = "should_start_after"
    SHOULD_START_BEFORE = "should_start_before"
    SHOULD_END_AFTER = "should_end_after"
    SHOULD_END_BEFORE = "should_end_before"
    ACCEPTED_AT = "accepted_at"
    STARTED_AT = "started_at"
    FINISHED_AT = "finished_at"
    CANCELED_AT = "canceled_at"
    DISTANCE = "distance"


class SortOrder(StrEnum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


@dataclass(slots=True, frozen=True)
class SortBy:
    """Single-field sort."""

    field: SortField
    order: SortOrder = SortOrder.ASC

    @classmethod
    def parse(cls, field_name: str, order: str = SortOrder.ASC) -> SortBy:
        """Build from loosely typed input, raising a validation error.

        Field names are accepted in snake_case or in the camelCase spelling
        used by the JSON payloads, e.g. `created_at` or `createdAt`.
        """

        try:
            sort_field = SortField(_CAMEL_BOUNDARY.sub("_", field_name).lower())
        except ValueError:
            raise WalkRequestValidationError(
                f"Cannot sort walk requests by '{field_name}'."
            ) from None
        try:
            sort_order = SortOrder(str(order).lower())
        except ValueError:
            raise WalkRequestValidationError(
                f"Sort order must be 'asc' or 'desc', got '{order}'."
            ) from None
        return cls(field=sort_field, order=sort_order)


@dataclass(slots=True, frozen=True)
class Pagination:
    """1-indexed page of `size` records."""

    page: int
    size: int

    def __post_init__(self) -> None:
        if self.page < 1:
            raise WalkRequestValidationError(f"page must be >= 1, got {self.page}.")
        if self.size < 1:
            raise WalkRequestValidationError(f"size must be >= 1, got {self.size}.")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


def validate_read(query: WalkRequestQuery, sort_by: SortBy | None) -> NearbyPoint | None:
    """Validate a read request and return its proximity constraint, if any."""

    query.validate()
    nearby = query.nearby_point()
    if sort_by is not None and sort_by.field is SortField.DISTANCE and nearby is None:
        raise WalkRequestValidationError("Sorting by distance requires a nearby constraint.")
    return nearby


__all__ = [
    "NearbyPoint",
    "Pagination",
    "SortBy",
    "SortField",
    "SortOrder",
    "UNSET",
    "Unset",
    "WalkRequestQuery",
    "validate_coordinates",
    "validate_read",
]
