from http import HTTPStatus
from typing import List

from fastapi import APIRouter, Depends, Path

from appointment_bridge.api.dependencies.internal_auth import verify_internal_api_key
from appointment_bridge.api.dependencies.platforms import get_sync_engine
from appointment_bridge.schemas.sync import ReconciliationSummary
from appointment_bridge.services.integration_settings import list_sync_enabled_tenants
from appointment_bridge.services.sync_engine import SyncEngine

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/reconcile",
    response_model=List[ReconciliationSummary],
    status_code=HTTPStatus.OK,
    summary="Run a full reconciliation pass for every enabled tenant",
    description=(
        "Intended for a cron job or scheduler. Tenants are reconciled one after "
        "the other; a failing tenant is reported in its own summary and does not "
        "stop the others.\n\n"
        "Protected via the `X-Internal-Api-Key` header when configured."
    ),
    responses={
        200: {
            "description": "One reconciliation summary per enabled tenant.",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "tenant_id": "acme",
                            "synced": 2,
                            "errors": 1,
                            "results": [],
                            "message": "Synced 2 appointments, 1 errors",
                        }
                    ]
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
    },
)
async def reconcile_all_tenants(
    engine: SyncEngine = Depends(get_sync_engine),
) -> List[ReconciliationSummary]:
    tenants = await list_sync_enabled_tenants(engine.db)
    return [await engine.sync_all_appointments(tenant_id) for tenant_id in tenants]


@router.post(
    "/reconcile/{tenant_id}",
    response_model=ReconciliationSummary,
    status_code=HTTPStatus.OK,
    summary="Run a full reconciliation pass for one tenant",
    responses={401: {"description": "Missing or invalid internal API key (if configured)."}},
)
async def reconcile_tenant(
    tenant_id: str = Path(..., description="Tenant to reconcile."),
    engine: SyncEngine = Depends(get_sync_engine),
) -> ReconciliationSummary:
    """
    Always 200: per-appointment failures are counted in `errors` and listed in
    `results`, so a partially failed pass is still a completed pass.
    """
    return await engine.sync_all_appointments(tenant_id)
