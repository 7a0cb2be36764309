from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_bridge.api.dependencies.platforms import get_availability_checker
from appointment_bridge.db.session import get_db
from appointment_bridge.schemas.availability import (
    AvailabilityRequest,
    AvailabilityResult,
    SlotSearchRequest,
    SlotSearchResponse,
    TeamAvailabilityResult,
)
from appointment_bridge.services.availability import AvailabilityChecker
from appointment_bridge.services.integration_settings import get_integration_config

router = APIRouter(prefix="/availability/{tenant_id}", tags=["Availability"])


def _validate_interval(start, end) -> None:
    if end < start:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail="end must not be before start.",
        )


async def _buffer_for(db: AsyncSession, tenant_id: str, requested: int | None) -> int:
    if requested is not None:
        return requested
    config = await get_integration_config(db, tenant_id)
    return config.buffer_minutes if config else 0


@router.post(
    "/check",
    response_model=AvailabilityResult,
    status_code=HTTPStatus.OK,
    summary="Check which resources are free for an interval",
    description=(
        "Runs the overlap engine over every Source booking in the requested range.\n\n"
        "`available` is tenant-wide and informational; use `available_resources` "
        "to decide whether a specific resource can take the booking. When the "
        "Source platform cannot be queried the result is fail-closed: "
        "`available=false` with both lists empty."
    ),
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "available": False,
                        "conflicts": [
                            {
                                "resource_id": "R1",
                                "resource_name": "Team Blue",
                                "conflicting_slot": {
                                    "id": "5501",
                                    "start_time": "2025-11-14T14:30:00Z",
                                    "end_time": "2025-11-14T15:30:00Z",
                                    "resource_id": "R1",
                                },
                                "overlap_type": "partial",
                            }
                        ],
                        "available_resources": [{"resource_id": "R2", "resource_name": "Team Red"}],
                    }
                }
            }
        }
    },
)
async def check_availability(
    payload: AvailabilityRequest,
    tenant_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    checker: AvailabilityChecker = Depends(get_availability_checker),
) -> AvailabilityResult:
    _validate_interval(payload.start_time, payload.end_time)
    return await checker.check_availability(
        payload.start_time,
        payload.end_time,
        tenant_id,
        exclude_ids=payload.exclude_ids,
        buffer_minutes=await _buffer_for(db, tenant_id, payload.buffer_minutes),
    )


@router.post(
    "/resources/{resource_id}",
    response_model=TeamAvailabilityResult,
    status_code=HTTPStatus.OK,
    summary="Check one resource for an interval",
)
async def check_resource_availability(
    payload: AvailabilityRequest,
    tenant_id: str = Path(...),
    resource_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    checker: AvailabilityChecker = Depends(get_availability_checker),
) -> TeamAvailabilityResult:
    _validate_interval(payload.start_time, payload.end_time)
    exclude_id = payload.exclude_ids[0] if payload.exclude_ids else None
    return await checker.check_team_availability(
        resource_id,
        payload.start_time,
        payload.end_time,
        tenant_id,
        exclude_id=exclude_id,
        buffer_minutes=await _buffer_for(db, tenant_id, payload.buffer_minutes),
    )


@router.post(
    "/resources/{resource_id}/slots",
    response_model=SlotSearchResponse,
    status_code=HTTPStatus.OK,
    summary="List free slots of a given length for one resource",
)
async def find_open_slots(
    payload: SlotSearchRequest,
    tenant_id: str = Path(...),
    resource_id: str = Path(...),
    checker: AvailabilityChecker = Depends(get_availability_checker),
) -> SlotSearchResponse:
    _validate_interval(payload.range_start, payload.range_end)
    slots = await checker.find_open_slots(
        resource_id,
        payload.range_start,
        payload.range_end,
        payload.slot_minutes,
        tenant_id,
        buffer_minutes=payload.buffer_minutes,
    )
    return SlotSearchResponse(resource_id=resource_id, slots=slots)
