"""Domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class WalkRequestStatus(StrEnum):
    """Lifecycle status derived from milestone timestamps."""

    WAITING = "Waiting"
    ACCEPTED = "Accepted"
    STARTED = "Started"
    FINISHED = "Finished"
    CANCELED = "Canceled"


def derive_status(
    *,
    canceled_at: datetime | None,
    accepted_at: datetime | None,
    started_at: datetime | None,
    finished_at: datetime | None,
) -> WalkRequestStatus:
    """Map the four milestone timestamps to a status.

    Precedence is canceled, accepted, started, finished, waiting. Only presence
    of a timestamp matters, never its value.
    """

    if canceled_at is not None:
        return WalkRequestStatus.CANCELED
    if accepted_at is not None:
        return WalkRequestStatus.ACCEPTED
    if started_at is not None:
        return WalkRequestStatus.STARTED
    if finished_at is not None:
        return WalkRequestStatus.FINISHED
    return WalkRequestStatus.WAITING


@dataclass(slots=True, frozen=True)
class Dog:
    """Snapshot of a dog taken when the request is created."""

    id: str


@dataclass(slots=True)
class WalkRequest:
    """A posted walk and its lifecycle milestones."""

    id: str
    dogs: list[Dog]
    latitude: float
    longitude: float
    created_by: str
    should_start_after: datetime | None = None
    should_start_before: datetime | None = None
    should_end_after: datetime | None = None
    should_end_before: datetime | None = None
    acceptances: list[str] = field(default_factory=list)
    accepted_by: str | None = None
    accepted_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    canceled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Only populated by proximity queries, meters from the query point.
    distance: float | None = None

    @property
    def status(self) -> WalkRequestStatus:
        """Derived lifecycle status."""

        return derive_status(
            canceled_at=self.canceled_at,
            accepted_at=self.accepted_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )

    @property
    def dog_ids(self) -> list[str]:
        return [dog.id for dog in self.dogs]


@dataclass(slots=True, frozen=True)
class WalkingLocation:
    """One append-only telemetry point of a walk in progress."""

    id: str
    request_id: str
    longitude: float
    latitude: float
    created_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class WalkRequestCreate:
    """Fields supplied by an owner when posting a walk request."""

    dogs: list[Dog]
    latitude: float
    longitude: float
    created_by: str
    should_start_after: datetime | None = None
    should_start_before: datetime | None = None
    should_end_after: datetime | None = None
    should_end_before: datetime | None = None


@dataclass(slots=True, frozen=True)
class WalkingLocationCreate:
    """New telemetry point for a walk request."""

    request_id: str
    longitude: float
    latitude: float


__all__ = [
    "Dog",
    "WalkRequest",
    "WalkRequestCreate",
    "WalkRequestStatus",
    "WalkingLocation",
    "WalkingLocationCreate",
    "derive_status",
]
