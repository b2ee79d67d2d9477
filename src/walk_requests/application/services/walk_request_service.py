"""Walk request lifecycle use-case service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from walk_requests.application.services.conditional_mutation_engine import (
    ConditionalMutationEngine,
)
from walk_requests.domain.entities import (
    WalkingLocation,
    WalkingLocationCreate,
    WalkRequest,
    WalkRequestCreate,
)
from walk_requests.domain.errors import (
    WalkRequestGuardError,
    WalkRequestNotFoundError,
    WalkRequestValidationError,
)
from walk_requests.domain.ports import WalkRequestRepository
from walk_requests.domain.queries import (
    UNSET,
    Pagination,
    SortBy,
    SortField,
    SortOrder,
    WalkRequestQuery,
    validate_coordinates,
    validate_read,
)
from walk_requests.domain.updates import WalkRequestUpdate

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = frozenset(
    {
        "dogs",
        "should_start_after",
        "should_start_before",
        "should_end_after",
        "should_end_before",
        "latitude",
        "longitude",
    }
)


class Transition(StrEnum):
    """Guarded lifecycle transitions."""

    ACCEPT = "accept"
    VOLUNTEER = "volunteer"
    REMOVE_VOLUNTEER = "remove volunteer"
    ASSIGN = "assign walker"
    DISMISS = "dismiss walker"
    RESIGN = "resign"
    CANCEL_UNACCEPTED = "cancel unaccepted request"
    CANCEL_ACCEPTED = "cancel accepted request"
    START = "start walk"
    FINISH = "finish walk"
    UPDATE_DETAILS = "update details"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _validate_window(name: str, after: datetime | None, before: datetime | None) -> None:
    if after is not None and before is not None and after > before:
        raise WalkRequestValidationError(f"{name} window starts after it ends.")


def _validate_window_edit(
    name: str,
    assigned: dict[str, Any],
    after_field: str,
    before_field: str,
) -> None:
    # The stored opposite end is never read, so an edit must carry both ends.
    if (after_field in assigned) != (before_field in assigned):
        raise WalkRequestValidationError(
            f"{name} window edits must supply both {after_field} and {before_field}."
        )
    _validate_window(name, assigned.get(after_field), assigned.get(before_field))


class WalkRequestService:
    """Builds the guard and mutation of every transition and reads the outcome."""

    def __init__(
        self,
        repository: WalkRequestRepository,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repository = repository
        self._engine = ConditionalMutationEngine(repository)
        self._clock = clock

    async def shutdown(self) -> None:
        """Release repository resources."""

        await self._repository.close()

    async def create_walk_request(self, create: WalkRequestCreate) -> str:
        """Post a new request and return its id."""

        if not create.dogs:
            raise WalkRequestValidationError("A walk request needs at least one dog.")
        if not create.created_by:
            raise WalkRequestValidationError("A walk request needs an owner.")
        validate_coordinates(longitude=create.longitude, latitude=create.latitude)
        _validate_window("Start", create.should_start_after, create.should_start_before)
        _validate_window("End", create.should_end_after, create.should_end_before)

        request_id = await self._repository.create_walk_request(create)
        logger.debug("Walk request '%s' created by '%s'.", request_id, create.created_by)
        return request_id

    async def get_walk_request(self, request_id: str) -> WalkRequest:
        """Return one request or raise not-found."""

        walk_request = await self._repository.get_walk_request(request_id)
        if walk_request is None:
            raise WalkRequestNotFoundError(f"Walk request '{request_id}' not found.")
        return walk_request

    async def query_walk_requests(
        self,
        query: WalkRequestQuery,
        sort_by: SortBy | None = None,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Unguarded read of the current snapshot."""

        validate_read(query, sort_by)
        return await self._repository.query_walk_requests(query, sort_by, pagination)

    async def nearby_walk_requests(
        self,
        longitude: float,
        latitude: float,
        radius: float,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Open requests around a point, nearest first."""

        return await self.query_walk_requests(
            WalkRequestQuery(accepted_by_is_null=True, nearby=(longitude, latitude, radius)),
            pagination=pagination,
        )

    async def my_walk_requests(
        self,
        owner_id: str,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Requests posted by one owner, newest first."""

        return await self.query_walk_requests(
            WalkRequestQuery(created_by=owner_id),
            SortBy(SortField.CREATED_AT, SortOrder.DESC),
            pagination,
        )

    async def accepted_walk_requests(
        self,
        walker_id: str,
        pagination: Pagination | None = None,
    ) -> list[WalkRequest]:
        """Requests assigned to one walker, most recently assigned first."""

        return await self.query_walk_requests(
            WalkRequestQuery(accepted_by=walker_id),
            SortBy(SortField.ACCEPTED_AT, SortOrder.DESC),
            pagination,
        )

    async def update_walk_request(
        self,
        request_id: str,
        owner_id: str,
        changes: WalkRequestUpdate,
    ) -> None:
        """Let the owner edit dogs, windows or location before assignment."""

        disallowed = set(changes.assignments()) - _DETAIL_FIELDS
        if (
            disallowed
            or changes.cleared_fields()
            or changes.add_to_acceptances is not UNSET
            or changes.remove_from_acceptances is not UNSET
        ):
            raise WalkRequestValidationError(
                "Only dogs, time windows and location can be edited."
            )
        assigned = changes.assignments()
        _validate_window_edit("Start", assigned, "should_start_after", "should_start_before")
        _validate_window_edit("End", assigned, "should_end_after", "should_end_before")
        await self._apply_expecting_one(
            Transition.UPDATE_DETAILS,
            request_id,
            owner_id,
            WalkRequestQuery(id=request_id, created_by=owner_id, accepted_by_is_null=True),
            changes,
            reason="not found, not yours or already accepted",
        )

    async def accept(self, request_id: str, walker_id: str) -> None:
        """Assign the caller directly when nobody is assigned yet."""

        await self._apply_expecting_one(
            Transition.ACCEPT,
            request_id,
            walker_id,
            WalkRequestQuery(id=request_id, accepted_by_is_null=True),
            WalkRequestUpdate(accepted_by=walker_id, accepted_at=self._clock()),
            reason="not found or already accepted",
        )

    async def add_acceptance(self, request_id: str, walker_id: str) -> None:
        """Volunteer for a request; volunteering twice is a no-op."""

        await self._apply_expecting_one(
            Transition.VOLUNTEER,
            request_id,
            walker_id,
            WalkRequestQuery(id=request_id),
            WalkRequestUpdate(add_to_acceptances=walker_id),
            reason="not found",
        )

    async def remove_acceptance(self, request_id: str, walker_id: str) -> None:
        """Withdraw a volunteer who has not been assigned."""

        await self._apply_expecting_one(
            Transition.REMOVE_VOLUNTEER,
            request_id,
            walker_id,
            WalkRequestQuery(id=request_id, accepted_by_neq=walker_id),
            WalkRequestUpdate(remove_from_acceptances=walker_id),
            reason="not found or already accepted by owner",
        )

    async def assign_accepter(self, request_id: str, walker_id: str) -> None:
        """Owner picks one of the volunteers."""

        await self._apply_expecting_one(
            Transition.ASSIGN,
            request_id,
            walker_id,
            WalkRequestQuery(
                id=request_id,
                accepted_by_is_null=True,
                acceptances_includes_all=[walker_id],
            ),
            WalkRequestUpdate(accepted_by=walker_id, accepted_at=self._clock()),
            reason="not found or walker withdrew",
        )

    async def dismiss_accepter(self, request_id: str, walker_id: str) -> None:
        """Owner removes the assigned walker; the walker stays a volunteer."""

        await self._apply_expecting_one(
            Transition.DISMISS,
            request_id,
            walker_id,
            WalkRequestQuery(id=request_id, accepted_by=walker_id),
            WalkRequestUpdate(unset_accepted_by=True, unset_accepted_at=True),
            reason="not found or walker withdrew",
        )

    async def resign_acceptance(self, request_id: str, walker_id: str) -> None:
        """Assigned walker withdraws entirely."""

        await self._apply_expecting_one(
            Transition.RESIGN,
            request_id,
            walker_id,
            WalkRequestQuery(id=request_id, accepted_by=walker_id),
            WalkRequestUpdate(
                unset_accepted_by=True,
                unset_accepted_at=True,
                remove_from_acceptances=walker_id,
            ),
            reason="not found or already canceled by owner",
        )

    async def cancel_unaccepted_request(self, request_id: str) -> None:
        """Cancel a request nobody is assigned to."""

        await self._apply_expecting_one(
            Transition.CANCEL_UNACCEPTED,
            request_id,
            None,
            WalkRequestQuery(id=request_id, accepted_by_is_null=True),
            WalkRequestUpdate(canceled_at=self._clock()),
            reason="not found",
        )

    async def cancel_accepted_request(self, request_id: str, walker_id: str) -> None:
        """Cancel a request assigned to the given walker."""

        await self._apply_expecting_one(
            Transition.CANCEL_ACCEPTED,
            request_id,
            walker_id,
            WalkRequestQuery(id=request_id, accepted_by=walker_id),
            WalkRequestUpdate(canceled_at=self._clock()),
            reason="not found",
        )

    async def start_walk(self, request_id: str, walker_id: str) -> WalkRequest:
        """Assigned walker starts the walk."""

        return await self._apply_returning(
            Transition.START,
            request_id,
            walker_id,
            WalkRequestUpdate(started_at=self._clock()),
        )

    async def finish_walk(self, request_id: str, walker_id: str) -> WalkRequest:
        """Assigned walker finishes the walk."""

        return await self._apply_returning(
            Transition.FINISH,
            request_id,
            walker_id,
            WalkRequestUpdate(finished_at=self._clock()),
        )

    async def record_walking_location(
        self,
        request_id: str,
        longitude: float,
        latitude: float,
    ) -> str:
        """Append a telemetry point; no lifecycle guard applies."""

        validate_coordinates(longitude=longitude, latitude=latitude)
        return await self._repository.create_walking_location(
            WalkingLocationCreate(request_id=request_id, longitude=longitude, latitude=latitude)
        )

    async def list_walking_locations(self, request_id: str) -> list[WalkingLocation]:
        """Telemetry log of an existing request."""

        await self.get_walk_request(request_id)
        return await self._repository.list_walking_locations(request_id)

    async def _apply_expecting_one(
        self,
        transition: Transition,
        request_id: str,
        user_id: str | None,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
        *,
        reason: str,
    ) -> None:
        affected = await self._engine.apply_many(query, update)
        if affected != 1:
            logger.info(
                "Walk request '%s' %s by '%s' did not apply (affected=%d).",
                request_id,
                transition,
                user_id,
                affected,
            )
            raise WalkRequestGuardError(request_id, transition.value, reason)
        logger.debug("Walk request '%s' %s by '%s' applied.", request_id, transition, user_id)

    async def _apply_returning(
        self,
        transition: Transition,
        request_id: str,
        walker_id: str,
        update: WalkRequestUpdate,
    ) -> WalkRequest:
        walk_request = await self._engine.apply_one(
            WalkRequestQuery(id=request_id, accepted_by=walker_id),
            update,
        )
        if walk_request is None:
            logger.info(
                "Walk request '%s' %s by '%s' did not apply.",
                request_id,
                transition,
                walker_id,
            )
            raise WalkRequestGuardError(
                request_id,
                transition.value,
                "not found or not assigned to this walker",
            )
        logger.debug("Walk request '%s' %s by '%s' applied.", request_id, transition, walker_id)
        return walk_request


__all__ = ["Transition", "WalkRequestService"]
