from http import HTTPStatus

from fastapi import APIRouter, Depends, Path
from fastapi.responses import JSONResponse

from appointment_bridge.api.dependencies.platforms import get_sync_engine
from appointment_bridge.api.responses import sync_result_response
from appointment_bridge.schemas.sync import (
    ResolveConflictRequest,
    SourceToTargetRequest,
    SyncErrorType,
    SyncResult,
    TargetToSourceRequest,
)
from appointment_bridge.services.platform_client import PlatformClientError
from appointment_bridge.services.sync_engine import SyncEngine

router = APIRouter(prefix="/sync/{tenant_id}", tags=["Sync"])

_FAILURE_RESPONSES = {
    400: {"description": "Integration disabled or calendar/location not configured."},
    404: {"description": "No sync record links the given appointments."},
    409: {"description": "The interval cannot be booked without double-booking."},
    422: {"description": "A required field is missing from a platform payload."},
    500: {"description": "Booking finalized but no Source id could be recovered."},
    502: {"description": "One of the platforms rejected a call."},
    504: {"description": "A platform call timed out."},
}


@router.post(
    "/source-to-target",
    response_model=SyncResult,
    status_code=HTTPStatus.OK,
    summary="Push one Source appointment to the Target calendar",
    description=(
        "Fetches the Source appointment by id, then creates or updates the linked "
        "Target calendar event and upserts the sync record."
    ),
    responses={
        200: {
            "description": "Appointment pushed.",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "source_appointment_id": "5501",
                        "target_appointment_id": "evt_91",
                        "action": "created",
                    }
                }
            },
        },
        **_FAILURE_RESPONSES,
    },
)
async def sync_source_to_target(
    payload: SourceToTargetRequest,
    tenant_id: str = Path(...),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncResult | JSONResponse:
    try:
        raw = await engine.source.get_appointment(payload.appointment_id, tenant_id)
    except PlatformClientError as exc:
        return sync_result_response(
            SyncResult.failure(
                f"Could not fetch Source appointment {payload.appointment_id}: {exc}",
                SyncErrorType.UPSTREAM,
                source_appointment_id=payload.appointment_id,
            )
        )

    if not raw:
        return sync_result_response(
            SyncResult.failure(
                f"Source appointment {payload.appointment_id} not found",
                SyncErrorType.NOT_FOUND,
                source_appointment_id=payload.appointment_id,
            )
        )

    result = await engine.sync_source_to_target(raw, tenant_id)
    return sync_result_response(result)


@router.post(
    "/target-to-source",
    response_model=SyncResult,
    status_code=HTTPStatus.OK,
    summary="Push one Target calendar event to the Source scheduler",
    description=(
        "Updates the linked Source appointment, or books a new one through the "
        "Lead > Quote > Book workflow after a cross-resource availability check."
    ),
    responses=_FAILURE_RESPONSES,
)
async def sync_target_to_source(
    payload: TargetToSourceRequest,
    tenant_id: str = Path(...),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncResult | JSONResponse:
    result = await engine.sync_target_to_source(payload.appointment, tenant_id)
    return sync_result_response(result)


@router.post(
    "/resolve-conflict",
    response_model=SyncResult,
    status_code=HTTPStatus.OK,
    summary="Resolve divergent edits of an already linked pair",
    responses=_FAILURE_RESPONSES,
)
async def resolve_conflict(
    payload: ResolveConflictRequest,
    tenant_id: str = Path(...),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncResult | JSONResponse:
    result = await engine.resolve_conflict(
        payload.source_appointment,
        payload.target_appointment,
        payload.strategy,
        tenant_id,
    )
    return sync_result_response(result)
