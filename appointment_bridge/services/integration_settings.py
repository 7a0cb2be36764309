from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_bridge.models.integration_config import IntegrationConfig
from appointment_bridge.schemas.sync import ConflictStrategy
from appointment_bridge.schemas.tenant import IntegrationConfigRead, IntegrationConfigUpdate
from appointment_bridge.services.errors import ConfigurationError


async def get_integration_config(db: AsyncSession, tenant_id: str) -> Optional[IntegrationConfigRead]:
    result = await db.execute(
        select(IntegrationConfig).where(IntegrationConfig.tenant_id == tenant_id)
    )
    row = result.scalar_one_or_none()
    return IntegrationConfigRead.model_validate(row) if row is not None else None


async def require_sync_enabled(db: AsyncSession, tenant_id: str) -> IntegrationConfigRead:
    """
    Return the tenant's settings, or raise ConfigurationError when the
    integration or appointment syncing is switched off.
    """
    config = await get_integration_config(db, tenant_id)
    if config is None:
        raise ConfigurationError(f"No integration configured for tenant '{tenant_id}'")
    if not config.enabled:
        raise ConfigurationError("Integration is disabled")
    if not config.sync_appointments:
        raise ConfigurationError("Appointment syncing is disabled")
    return config


def require_location(config: IntegrationConfigRead) -> str:
    if not config.target_location_id:
        raise ConfigurationError("Target location ID not configured")
    return config.target_location_id


async def list_sync_enabled_tenants(db: AsyncSession) -> List[str]:
    stmt = (
        select(IntegrationConfig.tenant_id)
        .where(
            IntegrationConfig.enabled.is_(True),
            IntegrationConfig.sync_appointments.is_(True),
        )
        .order_by(IntegrationConfig.tenant_id.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def upsert_integration_config(
    db: AsyncSession,
    tenant_id: str,
    payload: IntegrationConfigUpdate,
) -> IntegrationConfigRead:
    result = await db.execute(
        select(IntegrationConfig).where(IntegrationConfig.tenant_id == tenant_id)
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = IntegrationConfig(tenant_id=tenant_id)
        db.add(row)

    row.enabled = payload.enabled
    row.sync_appointments = payload.sync_appointments
    row.target_location_id = payload.target_location_id
    row.default_calendar_id = payload.default_calendar_id
    row.conflict_resolution = ConflictStrategy(payload.conflict_resolution).value
    row.buffer_minutes = payload.buffer_minutes

    await db.commit()
    await db.refresh(row)
    return IntegrationConfigRead.model_validate(row)
