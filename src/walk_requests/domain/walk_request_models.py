"""Pydantic payload models for the walk request HTTP surface."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from walk_requests.domain.entities import (
    Dog,
    WalkingLocation,
    WalkRequest,
    WalkRequestStatus,
)


class WalkRequestModel(BaseModel):
    """Base model for walk request payloads."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class DogMessage(WalkRequestModel):
    """Dog reference."""

    id: str = Field(min_length=1)

    def to_entity(self) -> Dog:
        return Dog(id=self.id)


class WalkRequestCreateMessage(WalkRequestModel):
    """Owner's new walk request."""

    dogs: list[DogMessage] = Field(min_length=1)
    should_start_after: datetime | None = Field(default=None, alias="shouldStartAfter")
    should_start_before: datetime | None = Field(default=None, alias="shouldStartBefore")
    should_end_after: datetime | None = Field(default=None, alias="shouldEndAfter")
    should_end_before: datetime | None = Field(default=None, alias="shouldEndBefore")
    latitude: float
    longitude: float


class WalkRequestPatchMessage(WalkRequestModel):
    """Owner's edit of an unaccepted request. Omitted fields stay unchanged."""

    dogs: list[DogMessage] | None = None
    should_start_after: datetime | None = Field(default=None, alias="shouldStartAfter")
    should_start_before: datetime | None = Field(default=None, alias="shouldStartBefore")
    should_end_after: datetime | None = Field(default=None, alias="shouldEndAfter")
    should_end_before: datetime | None = Field(default=None, alias="shouldEndBefore")
    latitude: float | None = None
    longitude: float | None = None


class WalkRequestCreatedResponse(WalkRequestModel):
    """Id of a newly created record."""

    id: str


class WalkRequestResponse(WalkRequestModel):
    """Walk request as returned to callers."""

    id: str
    dogs: list[DogMessage]
    should_start_after: datetime | None = Field(default=None, alias="shouldStartAfter")
    should_start_before: datetime | None = Field(default=None, alias="shouldStartBefore")
    should_end_after: datetime | None = Field(default=None, alias="shouldEndAfter")
    should_end_before: datetime | None = Field(default=None, alias="shouldEndBefore")
    latitude: float
    longitude: float
    distance: float | None = None
    created_by: str = Field(alias="createdBy")
    acceptances: list[str] = Field(default_factory=list)
    accepted_by: str | None = Field(default=None, alias="acceptedBy")
    accepted_at: datetime | None = Field(default=None, alias="acceptedAt")
    started_at: datetime | None = Field(default=None, alias="startedAt")
    finished_at: datetime | None = Field(default=None, alias="finishedAt")
    canceled_at: datetime | None = Field(default=None, alias="canceledAt")
    status: WalkRequestStatus
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @classmethod
    def from_entity(cls, walk_request: WalkRequest) -> WalkRequestResponse:
        return cls(
            id=walk_request.id,
            dogs=[DogMessage(id=dog.id) for dog in walk_request.dogs],
            should_start_after=walk_request.should_start_after,
            should_start_before=walk_request.should_start_before,
            should_end_after=walk_request.should_end_after,
            should_end_before=walk_request.should_end_before,
            latitude=walk_request.latitude,
            longitude=walk_request.longitude,
            distance=walk_request.distance,
            created_by=walk_request.created_by,
            acceptances=list(walk_request.acceptances),
            accepted_by=walk_request.accepted_by,
            accepted_at=walk_request.accepted_at,
            started_at=walk_request.started_at,
            finished_at=walk_request.finished_at,
            canceled_at=walk_request.canceled_at,
            status=walk_request.status,
            created_at=walk_request.created_at,
            updated_at=walk_request.updated_at,
        )


class WalkRequestListResponse(WalkRequestModel):
    """One page of walk requests."""

    page: int | None = None
    size: int | None = None
    walk_requests: list[WalkRequestResponse] = Field(alias="walkRequests")


class WalkingLocationMessage(WalkRequestModel):
    """Walker's current position."""

    longitude: float = Field(ge=-180.0, le=180.0)
    latitude: float = Field(ge=-90.0, le=90.0)


class WalkingLocationResponse(WalkRequestModel):
    """Recorded telemetry point."""

    id: str
    request_id: str = Field(alias="requestId")
    longitude: float
    latitude: float
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @classmethod
    def from_entity(cls, location: WalkingLocation) -> WalkingLocationResponse:
        return cls(
            id=location.id,
            request_id=location.request_id,
            longitude=location.longitude,
            latitude=location.latitude,
            created_at=location.created_at,
        )


class WalkingLocationListResponse(WalkRequestModel):
    """Telemetry log of one walk request."""

    request_id: str = Field(alias="requestId")
    locations: list[WalkingLocationResponse]


__all__ = [
    "DogMessage",
    "WalkRequestCreateMessage",
    "WalkRequestCreatedResponse",
    "WalkRequestListResponse",
    "WalkRequestPatchMessage",
    "WalkRequestResponse",
    "WalkingLocationListResponse",
    "WalkingLocationMessage",
    "WalkingLocationResponse",
]
