from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from walk_requests.application.services import WalkRequestService
from walk_requests.domain.entities import Dog, WalkRequestCreate, WalkRequestStatus
from walk_requests.domain.errors import (
    WalkRequestGuardError,
    WalkRequestNotFoundError,
    WalkRequestValidationError,
)
from walk_requests.domain.queries import Pagination
from walk_requests.domain.updates import WalkRequestUpdate
from walk_requests.infrastructure.repositories import InMemoryWalkRequestRepository

NOW = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)


@pytest.fixture
def service() -> WalkRequestService:
    return WalkRequestService(repository=InMemoryWalkRequestRepository(), clock=lambda: NOW)


def create_message(
    owner: str = "owner1",
    longitude: float = 1.0,
    latitude: float = 1.0,
) -> WalkRequestCreate:
    return WalkRequestCreate(
        dogs=[Dog(id="d1")],
        latitude=latitude,
        longitude=longitude,
        created_by=owner,
        should_start_after=datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
        should_start_before=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        should_end_after=datetime(2024, 1, 1, 9, 30, tzinfo=UTC),
        should_end_before=datetime(2024, 1, 1, 12, 30, tzinfo=UTC),
    )


def test_created_request_is_waiting(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    walk_request = asyncio.run(service.get_walk_request(request_id))

    assert walk_request.id == request_id
    assert walk_request.status is WalkRequestStatus.WAITING
    assert walk_request.accepted_by is None
    assert walk_request.dog_ids == ["d1"]


def test_create_rejects_invalid_input(service: WalkRequestService) -> None:
    with pytest.raises(WalkRequestValidationError):
        asyncio.run(
            service.create_walk_request(
                WalkRequestCreate(dogs=[], latitude=1.0, longitude=1.0, created_by="owner1")
            )
        )
    with pytest.raises(WalkRequestValidationError):
        asyncio.run(service.create_walk_request(create_message(latitude=120.0)))
    with pytest.raises(WalkRequestValidationError):
        asyncio.run(
            service.create_walk_request(
                WalkRequestCreate(
                    dogs=[Dog(id="d1")],
                    latitude=1.0,
                    longitude=1.0,
                    created_by="owner1",
                    should_start_after=datetime(2024, 1, 2, tzinfo=UTC),
                    should_start_before=datetime(2024, 1, 1, tzinfo=UTC),
                )
            )
        )


def test_get_unknown_request_raises_not_found(service: WalkRequestService) -> None:
    with pytest.raises(WalkRequestNotFoundError):
        asyncio.run(service.get_walk_request("missing"))


def test_volunteer_then_assign(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    asyncio.run(service.add_acceptance(request_id, "w1"))
    assert asyncio.run(service.get_walk_request(request_id)).acceptances == ["w1"]

    asyncio.run(service.assign_accepter(request_id, "w1"))
    walk_request = asyncio.run(service.get_walk_request(request_id))
    assert walk_request.accepted_by == "w1"
    assert walk_request.accepted_at == NOW
    assert walk_request.status is WalkRequestStatus.ACCEPTED

    with pytest.raises(WalkRequestGuardError):
        asyncio.run(service.assign_accepter(request_id, "w2"))


def test_volunteering_twice_keeps_one_entry(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    asyncio.run(service.add_acceptance(request_id, "w1"))
    asyncio.run(service.add_acceptance(request_id, "w1"))

    assert asyncio.run(service.get_walk_request(request_id)).acceptances == ["w1"]


def test_assign_requires_walker_to_have_volunteered(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    with pytest.raises(WalkRequestGuardError):
        asyncio.run(service.assign_accepter(request_id, "w1"))


def test_remove_acceptance_is_blocked_for_assigned_walker(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))
    asyncio.run(service.add_acceptance(request_id, "w1"))
    asyncio.run(service.add_acceptance(request_id, "w2"))
    asyncio.run(service.assign_accepter(request_id, "w1"))

    with pytest.raises(WalkRequestGuardError):
        asyncio.run(service.remove_acceptance(request_id, "w1"))
    asyncio.run(service.remove_acceptance(request_id, "w2"))

    assert asyncio.run(service.get_walk_request(request_id)).acceptances == ["w1"]


def test_dismiss_keeps_volunteer_and_resign_then_fails(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))
    asyncio.run(service.add_acceptance(request_id, "w1"))
    asyncio.run(service.assign_accepter(request_id, "w1"))

    asyncio.run(service.dismiss_accepter(request_id, "w1"))
    walk_request = asyncio.run(service.get_walk_request(request_id))
    assert walk_request.accepted_by is None
    assert walk_request.accepted_at is None
    assert walk_request.acceptances == ["w1"]

    with pytest.raises(WalkRequestGuardError):
        asyncio.run(service.resign_acceptance(request_id, "w1"))


def test_resign_clears_assignment_and_volunteering(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))
    asyncio.run(service.add_acceptance(request_id, "w1"))
    asyncio.run(service.assign_accepter(request_id, "w1"))

    asyncio.run(service.resign_acceptance(request_id, "w1"))

    walk_request = asyncio.run(service.get_walk_request(request_id))
    assert walk_request.accepted_by is None
    assert walk_request.acceptances == []
    assert walk_request.status is WalkRequestStatus.WAITING


def test_cancel_paths_depend_on_assignment(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))
    asyncio.run(service.accept(request_id, "w1"))

    with pytest.raises(WalkRequestGuardError):
        asyncio.run(service.cancel_unaccepted_request(request_id))
    with pytest.raises(WalkRequestGuardError):
        asyncio.run(service.cancel_accepted_request(request_id, "w2"))
    asyncio.run(service.cancel_accepted_request(request_id, "w1"))

    walk_request = asyncio.run(service.get_walk_request(request_id))
    assert walk_request.canceled_at == NOW
    assert walk_request.status is WalkRequestStatus.CANCELED


def test_cancel_unaccepted_request(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    asyncio.run(service.cancel_unaccepted_request(request_id))

    assert asyncio.run(service.get_walk_request(request_id)).status is WalkRequestStatus.CANCELED


def test_guard_failure_conflates_missing_request(service: WalkRequestService) -> None:
    with pytest.raises(WalkRequestGuardError) as exc_info:
        asyncio.run(service.accept("missing", "w1"))

    assert exc_info.value.request_id == "missing"


def test_concurrent_accepts_have_one_winner(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    async def race() -> list[object]:
        return list(
            await asyncio.gather(
                *(service.accept(request_id, f"w{index}") for index in range(5)),
                return_exceptions=True,
            )
        )

    outcomes = asyncio.run(race())

    assert outcomes.count(None) == 1
    assert all(
        isinstance(outcome, WalkRequestGuardError) for outcome in outcomes if outcome is not None
    )


def test_start_and_finish_by_assigned_walker(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))
    asyncio.run(service.accept(request_id, "w1"))

    with pytest.raises(WalkRequestGuardError):
        asyncio.run(service.start_walk(request_id, "w2"))

    started = asyncio.run(service.start_walk(request_id, "w1"))
    finished = asyncio.run(service.finish_walk(request_id, "w1"))

    assert started.started_at == NOW
    assert finished.finished_at == NOW
    # Accepted outranks the later milestones.
    assert finished.status is WalkRequestStatus.ACCEPTED


def test_update_walk_request_by_owner_before_assignment(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    asyncio.run(
        service.update_walk_request(
            request_id,
            "owner1",
            WalkRequestUpdate(dogs=[Dog(id="d2")], latitude=2.0),
        )
    )
    walk_request = asyncio.run(service.get_walk_request(request_id))
    assert walk_request.dog_ids == ["d2"]
    assert walk_request.latitude == 2.0

    with pytest.raises(WalkRequestGuardError):
        asyncio.run(
            service.update_walk_request(request_id, "owner2", WalkRequestUpdate(latitude=3.0))
        )
    with pytest.raises(WalkRequestValidationError):
        asyncio.run(
            service.update_walk_request(request_id, "owner1", WalkRequestUpdate(accepted_by="w1"))
        )

    asyncio.run(service.accept(request_id, "w1"))
    with pytest.raises(WalkRequestGuardError):
        asyncio.run(
            service.update_walk_request(request_id, "owner1", WalkRequestUpdate(latitude=3.0))
        )


def test_nearby_lists_only_open_requests_nearest_first(service: WalkRequestService) -> None:
    far = asyncio.run(service.create_walk_request(create_message(longitude=1.002)))
    near = asyncio.run(service.create_walk_request(create_message(longitude=1.0)))
    taken = asyncio.run(service.create_walk_request(create_message(longitude=1.001)))
    asyncio.run(service.accept(taken, "w1"))

    results = asyncio.run(service.nearby_walk_requests(1.0, 1.0, 5_000.0))

    assert [item.id for item in results] == [near, far]


def test_mine_and_accepted_listings(service: WalkRequestService) -> None:
    mine = asyncio.run(service.create_walk_request(create_message(owner="owner1")))
    other = asyncio.run(service.create_walk_request(create_message(owner="owner2")))
    asyncio.run(service.accept(other, "w1"))

    owned = asyncio.run(service.my_walk_requests("owner1", Pagination(page=1, size=10)))
    accepted = asyncio.run(service.accepted_walk_requests("w1"))

    assert [item.id for item in owned] == [mine]
    assert [item.id for item in accepted] == [other]


def test_walking_locations(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    location_id = asyncio.run(service.record_walking_location(request_id, 1.0, 1.0))
    locations = asyncio.run(service.list_walking_locations(request_id))

    assert [location.id for location in locations] == [location_id]
    with pytest.raises(WalkRequestValidationError):
        asyncio.run(service.record_walking_location(request_id, 200.0, 1.0))
    with pytest.raises(WalkRequestNotFoundError):
        asyncio.run(service.list_walking_locations("missing"))


def test_update_rejects_one_sided_window_edit(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))

    with pytest.raises(WalkRequestValidationError):
        asyncio.run(
            service.update_walk_request(
                request_id,
                "owner1",
                WalkRequestUpdate(should_start_after=datetime(2024, 1, 2, tzinfo=UTC)),
            )
        )
    with pytest.raises(WalkRequestValidationError):
        asyncio.run(
            service.update_walk_request(
                request_id,
                "owner1",
                WalkRequestUpdate(
                    should_end_after=datetime(2024, 1, 2, tzinfo=UTC),
                    should_end_before=datetime(2024, 1, 1, tzinfo=UTC),
                ),
            )
        )

    walk_request = asyncio.run(service.get_walk_request(request_id))
    assert walk_request.should_start_after == datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
    assert walk_request.should_end_after == datetime(2024, 1, 1, 9, 30, tzinfo=UTC)

    asyncio.run(
        service.update_walk_request(
            request_id,
            "owner1",
            WalkRequestUpdate(
                should_start_after=datetime(2024, 1, 2, 9, 0, tzinfo=UTC),
                should_start_before=datetime(2024, 1, 2, 12, 0, tzinfo=UTC),
            ),
        )
    )
    moved = asyncio.run(service.get_walk_request(request_id))
    assert moved.should_start_after == datetime(2024, 1, 2, 9, 0, tzinfo=UTC)
    assert moved.should_start_before == datetime(2024, 1, 2, 12, 0, tzinfo=UTC)


def test_concurrent_assigns_have_one_winner(service: WalkRequestService) -> None:
    request_id = asyncio.run(service.create_walk_request(create_message()))
    walkers = [f"w{index}" for index in range(5)]
    for walker_id in walkers:
        asyncio.run(service.add_acceptance(request_id, walker_id))

    async def race() -> list[object]:
        return list(
            await asyncio.gather(
                *(service.assign_accepter(request_id, walker_id) for walker_id in walkers),
                return_exceptions=True,
            )
        )

    outcomes = asyncio.run(race())

    assert outcomes.count(None) == 1
    assert all(
        isinstance(outcome, WalkRequestGuardError) for outcome in outcomes if outcome is not None
    )
    winner = walkers[outcomes.index(None)]
    walk_request = asyncio.run(service.get_walk_request(request_id))
    assert walk_request.accepted_by == winner
    assert sorted(walk_request.acceptances) == walkers
