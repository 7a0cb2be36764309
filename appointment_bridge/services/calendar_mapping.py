from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_bridge.models.resource_calendar_mapping import ResourceCalendarMapping
from appointment_bridge.schemas.tenant import ResourceCalendarMappingWrite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingView:
    """
    Detached copy of a ResourceCalendarMapping row.

    A rollback expires every row in the session, so a table that outlives
    one failed write must not read attributes off the ORM objects.
    """

    id: Optional[int]
    resource_id: str
    target_calendar_id: str
    enabled: bool

    @classmethod
    def of(cls, mapping: ResourceCalendarMapping) -> "MappingView":
        return cls(
            id=mapping.id,
            resource_id=str(mapping.resource_id),
            target_calendar_id=str(mapping.target_calendar_id),
            enabled=bool(mapping.enabled),
        )


class CalendarMappingTable:
    """
    In-memory bidirectional lookup between Source resources and Target calendars.

    Only enabled mappings take part in lookups. When several enabled
    mappings point at the same calendar, the one with the lowest id owns the
    reverse lookup so the answer is stable between runs.
    """

    def __init__(self, mappings: Iterable[ResourceCalendarMapping]) -> None:
        views = [MappingView.of(m) for m in mappings]
        enabled = sorted((v for v in views if v.enabled), key=lambda v: v.id or 0)

        self._by_resource: Dict[str, MappingView] = {}
        self._by_calendar: Dict[str, MappingView] = {}
        for mapping in enabled:
            self._by_resource.setdefault(mapping.resource_id, mapping)
            self._by_calendar.setdefault(mapping.target_calendar_id, mapping)

    @classmethod
    async def load(cls, db: AsyncSession, tenant_id: str) -> "CalendarMappingTable":
        return cls(await list_mappings(db, tenant_id))

    def __bool__(self) -> bool:
        return bool(self._by_resource)

    def enabled_mappings(self) -> List[MappingView]:
        return list(self._by_resource.values())

    def calendar_for_resource(self, resource_id: Optional[str]) -> Optional[str]:
        if resource_id is None:
            return None
        mapping = self._by_resource.get(str(resource_id))
        return mapping.target_calendar_id if mapping else None

    def resource_for_calendar(self, calendar_id: Optional[str]) -> Optional[str]:
        if calendar_id is None:
            return None
        mapping = self._by_calendar.get(str(calendar_id))
        return mapping.resource_id if mapping else None


async def list_mappings(db: AsyncSession, tenant_id: str) -> List[ResourceCalendarMapping]:
    stmt = (
        select(ResourceCalendarMapping)
        .where(ResourceCalendarMapping.tenant_id == tenant_id)
        .order_by(ResourceCalendarMapping.id.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def upsert_mapping(
    db: AsyncSession,
    tenant_id: str,
    payload: ResourceCalendarMappingWrite,
) -> ResourceCalendarMapping:
    """
    Create or update the mapping for (resource, calendar).

    Enabling a mapping disables every other enabled mapping of the same
    resource, keeping at most one enabled mapping per resource.
    """
    existing = await list_mappings(db, tenant_id)

    mapping = next(
        (
            m for m in existing
            if m.resource_id == payload.resource_id
            and m.target_calendar_id == payload.target_calendar_id
        ),
        None,
    )
    if mapping is None:
        mapping = ResourceCalendarMapping(
            tenant_id=tenant_id,
            resource_id=payload.resource_id,
            target_calendar_id=payload.target_calendar_id,
        )
        db.add(mapping)

    mapping.resource_name = payload.resource_name
    mapping.target_calendar_name = payload.target_calendar_name
    mapping.enabled = payload.enabled

    if payload.enabled:
        for other in existing:
            if other is not mapping and other.resource_id == payload.resource_id and other.enabled:
                logger.info(
                    "Disabling mapping %s -> %s for tenant %s (superseded by %s)",
                    other.resource_id,
                    other.target_calendar_id,
                    tenant_id,
                    payload.target_calendar_id,
                )
                other.enabled = False

    await db.commit()
    await db.refresh(mapping)
    return mapping
