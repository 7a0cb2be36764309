import logging
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi.responses import JSONResponse

from appointment_bridge.api.dependencies.platforms import get_sync_engine
from appointment_bridge.api.responses import sync_result_response
from appointment_bridge.schemas.sync import Platform, SyncErrorType, SyncResult, WebhookEvent
from appointment_bridge.services.errors import FieldResolutionError
from appointment_bridge.services.field_resolution import (
    SOURCE_APPOINTMENT_ALIASES,
    TARGET_APPOINTMENT_ALIASES,
    resolve_id,
)
from appointment_bridge.services.platform_client import PlatformClientError
from appointment_bridge.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/{tenant_id}", tags=["Webhooks"])

EVENT_KINDS = ("created", "updated", "deleted")


def _event_kind(event: WebhookEvent) -> str:
    """
    "appointment.created", "AppointmentCreated" and "created" all mean created.
    """
    lowered = event.type.lower()
    for kind in EVENT_KINDS:
        if lowered.endswith(kind):
            return kind
    raise HTTPException(
        status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
        detail=f"Unsupported webhook event type '{event.type}'",
    )


@router.post(
    "/source",
    response_model=SyncResult,
    status_code=HTTPStatus.OK,
    summary="Receive an appointment event from the Source scheduler",
    description=(
        "Source events only need to carry the appointment id; the full appointment "
        "is fetched before pushing it to the Target calendar. Deleted events "
        "soft-delete the link."
    ),
)
async def source_webhook(
    event: WebhookEvent,
    tenant_id: str = Path(...),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncResult | JSONResponse:
    kind = _event_kind(event)
    try:
        appointment_id = resolve_id(
            event.appointment, SOURCE_APPOINTMENT_ALIASES["id"], field="id"
        )
    except FieldResolutionError as exc:
        return sync_result_response(SyncResult.failure(str(exc), exc.error_type))

    logger.info("Source webhook %s for appointment %s (tenant %s)", kind, appointment_id, tenant_id)

    if kind == "deleted":
        return sync_result_response(
            await engine.handle_deletion(Platform.SOURCE, appointment_id, tenant_id)
        )

    try:
        raw = await engine.source.get_appointment(appointment_id, tenant_id)
    except PlatformClientError as exc:
        return sync_result_response(
            SyncResult.failure(str(exc), SyncErrorType.UPSTREAM, source_appointment_id=appointment_id)
        )

    return sync_result_response(await engine.sync_source_to_target(raw or event.appointment, tenant_id))


@router.post(
    "/target",
    response_model=SyncResult,
    status_code=HTTPStatus.OK,
    summary="Receive an appointment event from the Target calendar",
    description="The event carries the full calendar appointment, which is pushed as-is.",
)
async def target_webhook(
    event: WebhookEvent,
    tenant_id: str = Path(...),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncResult | JSONResponse:
    kind = _event_kind(event)

    if kind == "deleted":
        try:
            appointment_id = resolve_id(
                event.appointment, TARGET_APPOINTMENT_ALIASES["id"], field="id"
            )
        except FieldResolutionError as exc:
            return sync_result_response(SyncResult.failure(str(exc), exc.error_type))
        logger.info("Target appointment %s deleted (tenant %s)", appointment_id, tenant_id)
        return sync_result_response(
            await engine.handle_deletion(Platform.TARGET, appointment_id, tenant_id)
        )

    return sync_result_response(await engine.sync_target_to_source(event.appointment, tenant_id))
