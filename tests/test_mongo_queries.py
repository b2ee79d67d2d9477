from __future__ import annotations

from datetime import UTC, datetime

import pytest
from bson import ObjectId

from walk_requests.domain.entities import Dog, WalkRequestStatus
from walk_requests.domain.geo import meters_to_radians
from walk_requests.domain.queries import (
    Pagination,
    SortBy,
    SortField,
    SortOrder,
    WalkRequestQuery,
)
from walk_requests.domain.updates import WalkRequestUpdate
from walk_requests.infrastructure.repositories.mongo_walk_request_repository import (
    build_filter,
    build_nearby_pipeline,
    build_update_pipeline,
    object_id_or_none,
    to_entity,
)

NOW = datetime(2024, 1, 1, tzinfo=UTC)
REQUEST_ID = "65a000000000000000000001"


def test_empty_predicate_compiles_to_empty_filter() -> None:
    assert build_filter(WalkRequestQuery()) == {}


def test_single_constraint_is_not_wrapped() -> None:
    assert build_filter(WalkRequestQuery(accepted_by="w1")) == {"accepted_by": "w1"}


def test_invalid_object_id_matches_nothing() -> None:
    assert object_id_or_none("not-an-object-id") is None
    assert build_filter(WalkRequestQuery(id="not-an-object-id")) == {"_id": None}


def test_conjunction_of_constraints() -> None:
    query = WalkRequestQuery(
        id=REQUEST_ID,
        accepted_by_is_null=False,
        acceptances_includes_any=["w1", "w2"],
        accepted_by_neq="w3",
    )

    assert build_filter(query) == {
        "$and": [
            {"_id": ObjectId(REQUEST_ID)},
            {"accepted_by": {"$ne": "w3"}},
            {"accepted_by": {"$ne": None}},
            {"acceptances": {"$in": ["w1", "w2"]}},
        ]
    }


def test_nearby_compiles_to_center_sphere_for_updates() -> None:
    query = WalkRequestQuery(nearby=[1.0, 2.0, 500.0])

    assert build_filter(query) == {
        "location": {
            "$geoWithin": {"$centerSphere": [[1.0, 2.0], meters_to_radians(500.0)]}
        }
    }
    assert build_filter(query, include_nearby=False) == {}


def test_assignment_pipeline_wraps_values_in_literal() -> None:
    pipeline = build_update_pipeline(
        WalkRequestUpdate(accepted_by="$w1", accepted_at=NOW),
        NOW,
    )

    assert pipeline == [
        {
            "$set": {
                "accepted_by": {"$literal": "$w1"},
                "accepted_at": {"$literal": NOW},
                "updated_at": {"$literal": NOW},
            }
        }
    ]


def test_clears_use_unset_stage() -> None:
    pipeline = build_update_pipeline(
        WalkRequestUpdate(
            unset_accepted_by=True,
            unset_accepted_at=True,
            remove_from_acceptances="w1",
        ),
        NOW,
    )

    assert pipeline[1] == {"$unset": ["accepted_by", "accepted_at"]}
    assert pipeline[0]["$set"]["acceptances"] == {
        "$filter": {
            "input": {"$ifNull": ["$acceptances", []]},
            "as": "walker",
            "cond": {"$ne": ["$$walker", {"$literal": "w1"}]},
        }
    }


def test_set_insert_is_idempotent_expression() -> None:
    pipeline = build_update_pipeline(WalkRequestUpdate(add_to_acceptances="w1"), NOW)
    current = {"$ifNull": ["$acceptances", []]}

    assert pipeline[0]["$set"]["acceptances"] == {
        "$cond": [
            {"$in": [{"$literal": "w1"}, current]},
            current,
            {"$concatArrays": [current, [{"$literal": "w1"}]]},
        ]
    }


def test_location_and_dogs_are_rewritten_together() -> None:
    pipeline = build_update_pipeline(
        WalkRequestUpdate(dogs=[Dog(id="d2")], latitude=3.0),
        NOW,
    )
    set_stage = pipeline[0]["$set"]

    assert set_stage["dogs"] == {"$literal": [{"id": "d2"}]}
    assert set_stage["dog_ids"] == {"$literal": ["d2"]}
    assert set_stage["location"] == {
        "type": "Point",
        "coordinates": [{"$arrayElemAt": ["$location.coordinates", 0]}, {"$literal": 3.0}],
    }


def test_nearby_pipeline_pages_before_sorting() -> None:
    pipeline = build_nearby_pipeline(
        WalkRequestQuery(nearby=[1.0, 2.0, 500.0], accepted_by_is_null=True),
        SortBy(SortField.CREATED_AT, SortOrder.DESC),
        Pagination(page=3, size=10),
    )

    assert pipeline[0]["$geoNear"] == {
        "near": {"type": "Point", "coordinates": [1.0, 2.0]},
        "distanceField": "distance",
        "maxDistance": 500.0,
        "query": {"accepted_by": None},
        "spherical": True,
        "key": "location",
    }
    assert pipeline[1:] == [
        {"$skip": 20},
        {"$limit": 10},
        {"$sort": {"created_at": -1, "_id": -1}},
    ]


def test_nearby_pipeline_requires_nearby() -> None:
    with pytest.raises(ValueError):
        build_nearby_pipeline(WalkRequestQuery())


def test_to_entity_maps_document() -> None:
    walk_request = to_entity(
        {
            "_id": ObjectId(REQUEST_ID),
            "dogs": [{"id": "d1"}],
            "location": {"type": "Point", "coordinates": [1.5, 2.5]},
            "created_by": "owner1",
            "acceptances": ["w1"],
            "accepted_by": "w1",
            "accepted_at": datetime(2024, 1, 1),
            "distance": 12,
        }
    )

    assert walk_request.id == REQUEST_ID
    assert walk_request.longitude == 1.5
    assert walk_request.latitude == 2.5
    assert walk_request.accepted_at == NOW
    assert walk_request.distance == 12.0
    assert walk_request.status is WalkRequestStatus.ACCEPTED
