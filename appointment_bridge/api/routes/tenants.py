from http import HTTPStatus
from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_bridge.db.session import get_db
from appointment_bridge.schemas.tenant import (
    IntegrationConfigRead,
    IntegrationConfigUpdate,
    ResourceCalendarMappingRead,
    ResourceCalendarMappingWrite,
)
from appointment_bridge.services.calendar_mapping import list_mappings, upsert_mapping
from appointment_bridge.services.integration_settings import upsert_integration_config

router = APIRouter(prefix="/tenants/{tenant_id}", tags=["Tenants"])


@router.put(
    "/config",
    response_model=IntegrationConfigRead,
    status_code=HTTPStatus.OK,
    summary="Create or replace a tenant's integration settings",
    description=(
        "Switches the integration and appointment sync on or off and sets the "
        "Target location, default calendar, conflict strategy and availability buffer."
    ),
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "tenant_id": "acme",
                        "enabled": True,
                        "sync_appointments": True,
                        "target_location_id": "loc_123",
                        "default_calendar_id": "cal_default",
                        "conflict_resolution": "most_recent_wins",
                        "buffer_minutes": 15,
                    }
                }
            }
        }
    },
)
async def put_integration_config(
    payload: IntegrationConfigUpdate,
    tenant_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
) -> IntegrationConfigRead:
    return await upsert_integration_config(db, tenant_id, payload)


@router.get(
    "/mappings",
    response_model=List[ResourceCalendarMappingRead],
    status_code=HTTPStatus.OK,
    summary="List resource-to-calendar mappings, enabled or not",
)
async def get_mappings(
    tenant_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
) -> List[ResourceCalendarMappingRead]:
    mappings = await list_mappings(db, tenant_id)
    return [ResourceCalendarMappingRead.model_validate(m) for m in mappings]


@router.put(
    "/mappings",
    response_model=ResourceCalendarMappingRead,
    status_code=HTTPStatus.OK,
    summary="Create or update a resource-to-calendar mapping",
    description=(
        "Enabling a mapping disables any other enabled mapping of the same "
        "resource, so each resource routes to at most one calendar."
    ),
)
async def put_mapping(
    payload: ResourceCalendarMappingWrite,
    tenant_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
) -> ResourceCalendarMappingRead:
    mapping = await upsert_mapping(db, tenant_id, payload)
    return ResourceCalendarMappingRead.model_validate(mapping)
