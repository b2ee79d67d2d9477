"""Mutation model applied to a matched walk request."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from walk_requests.domain.entities import Dog
from walk_requests.domain.errors import WalkRequestValidationError
from walk_requests.domain.queries import UNSET, Unset, validate_coordinates

# Fields that a mutation may overwrite, in a stable order.
ASSIGNABLE_FIELDS = (
    "dogs",
    "should_start_after",
    "should_start_before",
    "should_end_after",
    "should_end_before",
    "latitude",
    "longitude",
    "accepted_by",
    "accepted_at",
    "canceled_at",
    "started_at",
    "finished_at",
)


@dataclass(slots=True, frozen=True)
class WalkRequestUpdate:
    """Field assignments, field clears, one set-insert and one set-remove.

    Every part is optional and all present parts are applied as one write.
    Within `acceptances` the insert is applied before the remove.
    """

    dogs: Sequence[Dog] | Unset = UNSET
    should_start_after: datetime | Unset = UNSET
    should_start_before: datetime | Unset = UNSET
    should_end_after: datetime | Unset = UNSET
    should_end_before: datetime | Unset = UNSET
    latitude: float | Unset = UNSET
    longitude: float | Unset = UNSET
    accepted_by: str | Unset = UNSET
    accepted_at: datetime | Unset = UNSET
    canceled_at: datetime | Unset = UNSET
    started_at: datetime | Unset = UNSET
    finished_at: datetime | Unset = UNSET
    unset_accepted_by: bool = False
    unset_accepted_at: bool = False
    add_to_acceptances: str | Unset = UNSET
    remove_from_acceptances: str | Unset = UNSET

    def assignments(self) -> dict[str, Any]:
        """Return `{field: value}` for every assigned field."""

        return {
            name: getattr(self, name)
            for name in ASSIGNABLE_FIELDS
            if getattr(self, name) is not UNSET
        }

    def cleared_fields(self) -> list[str]:
        cleared = []
        if self.unset_accepted_by:
            cleared.append("accepted_by")
        if self.unset_accepted_at:
            cleared.append("accepted_at")
        return cleared

    def is_empty(self) -> bool:
        return (
            not self.assignments()
            and not self.cleared_fields()
            and self.add_to_acceptances is UNSET
            and self.remove_from_acceptances is UNSET
        )

    def validate(self) -> None:
        """Reject contradictory or empty mutations before the store is touched."""

        if self.is_empty():
            raise WalkRequestValidationError("Walk request update changes nothing.")
        assigned = self.assignments()
        for name in self.cleared_fields():
            if name in assigned:
                raise WalkRequestValidationError(
                    f"Walk request update both assigns and clears '{name}'."
                )
        if isinstance(self.dogs, Sequence) and not self.dogs:
            raise WalkRequestValidationError("A walk request needs at least one dog.")
        latitude = assigned.get("latitude")
        longitude = assigned.get("longitude")
        if latitude is not None or longitude is not None:
            validate_coordinates(
                longitude=0.0 if longitude is None else longitude,
                latitude=0.0 if latitude is None else latitude,
            )


__all__ = ["ASSIGNABLE_FIELDS", "WalkRequestUpdate"]
