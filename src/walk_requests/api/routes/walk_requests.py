"""Walk request lifecycle routes."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response

from walk_requests.api.dependencies import (
    get_current_user_id,
    get_pagination,
    get_walk_request_service,
)
from walk_requests.application.services import WalkRequestService
from walk_requests.domain.entities import WalkRequest, WalkRequestCreate
from walk_requests.domain.errors import (
    WalkRequestGuardError,
    WalkRequestNotFoundError,
    WalkRequestStoreError,
    WalkRequestValidationError,
)
from walk_requests.domain.queries import UNSET, Pagination, SortBy, WalkRequestQuery
from walk_requests.domain.updates import WalkRequestUpdate
from walk_requests.domain.walk_request_models import (
    WalkingLocationListResponse,
    WalkingLocationMessage,
    WalkingLocationResponse,
    WalkRequestCreatedResponse,
    WalkRequestCreateMessage,
    WalkRequestListResponse,
    WalkRequestPatchMessage,
    WalkRequestResponse,
)

router = APIRouter(prefix="/walk_requests", tags=["walk requests"])


def _raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, WalkRequestNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, WalkRequestValidationError):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, WalkRequestGuardError):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, WalkRequestStoreError):
        raise HTTPException(status_code=503, detail="Walk request store unavailable")
    raise HTTPException(status_code=500, detail="Unexpected walk request error")


def _page_response(
    walk_requests: list[WalkRequest],
    pagination: Pagination,
) -> WalkRequestListResponse:
    return WalkRequestListResponse(
        page=pagination.page,
        size=pagination.size,
        walk_requests=[WalkRequestResponse.from_entity(item) for item in walk_requests],
    )


def _to_update(message: WalkRequestPatchMessage) -> WalkRequestUpdate:
    values = {name: value for name, value in message if value is not None}
    if message.dogs is not None:
        values["dogs"] = [dog.to_entity() for dog in message.dogs]
    return WalkRequestUpdate(**values)


@router.post("", response_model=WalkRequestCreatedResponse, status_code=201)
async def create_walk_request(
    message: WalkRequestCreateMessage,
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestCreatedResponse:
    """Post a walk request owned by the caller."""

    try:
        request_id = await service.create_walk_request(
            WalkRequestCreate(
                dogs=[dog.to_entity() for dog in message.dogs],
                latitude=message.latitude,
                longitude=message.longitude,
                created_by=user_id,
                should_start_after=message.should_start_after,
                should_start_before=message.should_start_before,
                should_end_after=message.should_end_after,
                should_end_before=message.should_end_before,
            )
        )
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return WalkRequestCreatedResponse(id=request_id)


@router.get("", response_model=WalkRequestListResponse, response_model_exclude_none=True)
async def query_walk_requests(
    id: str | None = Query(default=None),
    dog_ids_includes_all: list[str] | None = Query(default=None, alias="dogIdsIncludesAll"),
    dog_ids_includes_any: list[str] | None = Query(default=None, alias="dogIdsIncludesAny"),
    nearby: list[float] | None = Query(default=None),
    accepted_by: str | None = Query(default=None, alias="acceptedBy"),
    accepted_by_neq: str | None = Query(default=None, alias="acceptedByNeq"),
    accepted_by_is_null: bool | None = Query(default=None, alias="acceptedByIsNull"),
    acceptances_includes_all: list[str] | None = Query(
        default=None, alias="acceptancesIncludesAll"
    ),
    acceptances_includes_any: list[str] | None = Query(
        default=None, alias="acceptancesIncludesAny"
    ),
    created_by: str | None = Query(default=None, alias="createdBy"),
    sort: str | None = Query(default=None),
    order: str = Query(default="asc"),
    pagination: Pagination = Depends(get_pagination),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestListResponse:
    """Filter walk requests by any combination of constraints."""

    def _opt(value: object) -> object:
        return UNSET if value is None else value

    try:
        query = WalkRequestQuery(
            id=_opt(id),
            dog_ids_includes_all=_opt(dog_ids_includes_all),
            dog_ids_includes_any=_opt(dog_ids_includes_any),
            nearby=_opt(nearby),
            accepted_by=_opt(accepted_by),
            accepted_by_neq=_opt(accepted_by_neq),
            accepted_by_is_null=_opt(accepted_by_is_null),
            acceptances_includes_all=_opt(acceptances_includes_all),
            acceptances_includes_any=_opt(acceptances_includes_any),
            created_by=_opt(created_by),
        )  # type: ignore[arg-type]
        sort_by = None if sort is None else SortBy.parse(sort, order)
        walk_requests = await service.query_walk_requests(query, sort_by, pagination)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return _page_response(walk_requests, pagination)


@router.get("/nearby", response_model=WalkRequestListResponse, response_model_exclude_none=True)
async def nearby_walk_requests(
    lat: float = Query(...),
    lon: float = Query(...),
    radius: float = Query(...),
    pagination: Pagination = Depends(get_pagination),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestListResponse:
    """Open requests around a point, nearest first."""

    try:
        walk_requests = await service.nearby_walk_requests(lon, lat, radius, pagination)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return _page_response(walk_requests, pagination)


@router.get("/mine", response_model=WalkRequestListResponse, response_model_exclude_none=True)
async def my_walk_requests(
    pagination: Pagination = Depends(get_pagination),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestListResponse:
    """Requests posted by the caller."""

    try:
        walk_requests = await service.my_walk_requests(user_id, pagination)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return _page_response(walk_requests, pagination)


@router.get("/accepted", response_model=WalkRequestListResponse, response_model_exclude_none=True)
async def accepted_walk_requests(
    pagination: Pagination = Depends(get_pagination),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestListResponse:
    """Requests assigned to the caller."""

    try:
        walk_requests = await service.accepted_walk_requests(user_id, pagination)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return _page_response(walk_requests, pagination)


@router.get("/{id}", response_model=WalkRequestResponse, response_model_exclude_none=True)
async def get_walk_request(
    id: str = Path(...),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestResponse:
    """Fetch one walk request."""

    try:
        walk_request = await service.get_walk_request(id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return WalkRequestResponse.from_entity(walk_request)


@router.patch("/{id}", status_code=200)
async def update_walk_request(
    message: WalkRequestPatchMessage,
    id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Edit dogs, time windows or location of an unassigned request."""

    try:
        await service.update_walk_request(id, user_id, _to_update(message))
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.delete("/{id}", status_code=200)
async def cancel_unaccepted_request(
    id: str = Path(...),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Cancel a request nobody is assigned to."""

    try:
        await service.cancel_unaccepted_request(id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.put("/{id}/accepted_by", status_code=200)
async def accept(
    id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Assign the caller directly."""

    try:
        await service.accept(id, user_id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.delete("/{id}/accepted_by/{uid}", status_code=200)
async def cancel_accepted_request(
    id: str = Path(...),
    uid: str = Path(...),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Cancel a request assigned to walker `uid`."""

    try:
        await service.cancel_accepted_request(id, uid)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.post("/{id}/acceptances", status_code=200)
async def add_acceptance(
    id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Volunteer the caller."""

    try:
        await service.add_acceptance(id, user_id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.delete("/{id}/acceptances", status_code=200)
async def remove_acceptance(
    id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Withdraw the caller's volunteering."""

    try:
        await service.remove_acceptance(id, user_id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.put("/{id}/accepter/{uid}", status_code=200)
async def assign_accepter(
    id: str = Path(...),
    uid: str = Path(...),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Assign volunteer `uid`."""

    try:
        await service.assign_accepter(id, uid)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.delete("/{id}/accepter/{uid}", status_code=200)
async def dismiss_accepter(
    id: str = Path(...),
    uid: str = Path(...),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Dismiss assigned walker `uid`."""

    try:
        await service.dismiss_accepter(id, uid)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.delete("/{id}/resign", status_code=200)
async def resign_acceptance(
    id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> Response:
    """Caller withdraws from an assigned walk."""

    try:
        await service.resign_acceptance(id, user_id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return Response(status_code=200)


@router.put("/{id}/start", response_model=WalkRequestResponse, response_model_exclude_none=True)
async def start_walk(
    id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestResponse:
    """Assigned walker starts the walk."""

    try:
        walk_request = await service.start_walk(id, user_id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return WalkRequestResponse.from_entity(walk_request)


@router.put("/{id}/finish", response_model=WalkRequestResponse, response_model_exclude_none=True)
async def finish_walk(
    id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestResponse:
    """Assigned walker finishes the walk."""

    try:
        walk_request = await service.finish_walk(id, user_id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return WalkRequestResponse.from_entity(walk_request)


@router.post("/{id}/locations", response_model=WalkRequestCreatedResponse, status_code=201)
async def record_walking_location(
    message: WalkingLocationMessage,
    id: str = Path(...),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkRequestCreatedResponse:
    """Append the walker's current position."""

    try:
        location_id = await service.record_walking_location(
            id, message.longitude, message.latitude
        )
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return WalkRequestCreatedResponse(id=location_id)


@router.get(
    "/{id}/locations",
    response_model=WalkingLocationListResponse,
    response_model_exclude_none=True,
)
async def list_walking_locations(
    id: str = Path(...),
    _: str = Depends(get_current_user_id),
    service: WalkRequestService = Depends(get_walk_request_service),
) -> WalkingLocationListResponse:
    """Telemetry log of one walk."""

    try:
        locations = await service.list_walking_locations(id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return WalkingLocationListResponse(
        request_id=id,
        locations=[WalkingLocationResponse.from_entity(location) for location in locations],
    )


__all__ = ["router"]
