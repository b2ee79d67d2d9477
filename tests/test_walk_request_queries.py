from __future__ import annotations

from datetime import UTC, datetime

import pytest

from walk_requests.domain.entities import Dog
from walk_requests.domain.errors import WalkRequestValidationError
from walk_requests.domain.queries import (
    UNSET,
    NearbyPoint,
    Pagination,
    SortBy,
    SortField,
    SortOrder,
    WalkRequestQuery,
    validate_read,
)
from walk_requests.domain.updates import WalkRequestUpdate


def test_unset_is_distinct_from_falsy_values() -> None:
    query = WalkRequestQuery(accepted_by="", accepted_by_is_null=False)

    assert query.accepted_by is not UNSET
    assert query.accepted_by_is_null is not UNSET
    assert query.created_by is UNSET
    assert repr(UNSET) == "UNSET"


def test_nearby_point_parses_three_components() -> None:
    point = NearbyPoint.from_components([1.5, -2, 300])

    assert point == NearbyPoint(longitude=1.5, latitude=-2.0, radius_meters=300.0)


@pytest.mark.parametrize(
    "components",
    [
        [1.0, 1.0],
        [1.0, 1.0, 10.0, 5.0],
        [1.0, "1", 10.0],
        [True, 1.0, 10.0],
        [1.0, 1.0, float("nan")],
        [1.0, 1.0, -1.0],
        [181.0, 1.0, 10.0],
        [1.0, 91.0, 10.0],
    ],
)
def test_malformed_nearby_is_rejected(components: list[object]) -> None:
    with pytest.raises(WalkRequestValidationError):
        WalkRequestQuery(nearby=components).validate()  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "field",
    [
        "dog_ids_includes_all",
        "dog_ids_includes_any",
        "acceptances_includes_all",
        "acceptances_includes_any",
    ],
)
def test_empty_includes_lists_are_rejected(field: str) -> None:
    with pytest.raises(WalkRequestValidationError):
        WalkRequestQuery(**{field: []}).validate()


def test_sort_by_parse_accepts_camel_case_and_rejects_unknown_input() -> None:
    assert SortBy.parse("created_at", "DESC") == SortBy(SortField.CREATED_AT, SortOrder.DESC)
    assert SortBy.parse("createdAt") == SortBy(SortField.CREATED_AT)
    assert SortBy.parse("shouldStartBefore", "asc").field is SortField.SHOULD_START_BEFORE

    with pytest.raises(WalkRequestValidationError):
        SortBy.parse("dogs")
    with pytest.raises(WalkRequestValidationError):
        SortBy.parse("created_at", "sideways")


def test_sort_by_distance_requires_nearby() -> None:
    with pytest.raises(WalkRequestValidationError):
        validate_read(WalkRequestQuery(), SortBy(SortField.DISTANCE))

    nearby = validate_read(
        WalkRequestQuery(nearby=[0.0, 0.0, 10.0]),
        SortBy(SortField.DISTANCE),
    )
    assert nearby is not None


def test_pagination_offset_and_bounds() -> None:
    assert Pagination(page=2, size=10).offset == 10

    with pytest.raises(WalkRequestValidationError):
        Pagination(page=0, size=10)
    with pytest.raises(WalkRequestValidationError):
        Pagination(page=1, size=0)


def test_update_collects_assignments_and_clears() -> None:
    now = datetime(2024, 1, 1, tzinfo=UTC)
    update = WalkRequestUpdate(
        canceled_at=now,
        unset_accepted_by=True,
        add_to_acceptances="w1",
    )

    assert update.assignments() == {"canceled_at": now}
    assert update.cleared_fields() == ["accepted_by"]
    assert not update.is_empty()
    update.validate()


def test_empty_update_is_rejected() -> None:
    assert WalkRequestUpdate().is_empty()

    with pytest.raises(WalkRequestValidationError):
        WalkRequestUpdate().validate()


def test_update_cannot_assign_and_clear_same_field() -> None:
    with pytest.raises(WalkRequestValidationError):
        WalkRequestUpdate(accepted_by="w1", unset_accepted_by=True).validate()


def test_update_rejects_empty_dogs_and_bad_coordinates() -> None:
    with pytest.raises(WalkRequestValidationError):
        WalkRequestUpdate(dogs=[]).validate()
    with pytest.raises(WalkRequestValidationError):
        WalkRequestUpdate(latitude=95.0).validate()

    WalkRequestUpdate(dogs=[Dog(id="d1")], longitude=10.0).validate()
    assert WalkRequestUpdate(longitude=10.0).latitude is UNSET
