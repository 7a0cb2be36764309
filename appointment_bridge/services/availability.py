from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from appointment_bridge.schemas.appointment import AppointmentTimeSlot, Resource, TimeWindow
from appointment_bridge.schemas.availability import (
    AvailabilityResult,
    ResourceConflict,
    ResourceRef,
    TeamAvailabilityResult,
)
from appointment_bridge.services.field_resolution import (
    normalize_resource,
    normalize_source_appointment,
    to_time_slot,
)
from appointment_bridge.services.overlap import detect_overlaps, find_available_slots
from appointment_bridge.services.ports import SourcePort

logger = logging.getLogger(__name__)

UNKNOWN_RESOURCE = "unknown"


def _date_range_filter(start: datetime, end: datetime, buffer_minutes: int = 0) -> Dict[str, Any]:
    """
    Source date filter covering every booking that can touch the buffered window.

    The lower bound starts one day early so bookings running past midnight
    into the window are fetched too.
    """
    buffer = timedelta(minutes=max(buffer_minutes, 0))
    first_day = (start - buffer - timedelta(days=1)).date()
    last_day = (end + buffer).date()
    return {"startDate": first_day.isoformat(), "endDate": last_day.isoformat()}


def _slots_from_raw(
    raw_appointments: Iterable[Dict[str, Any]],
    exclude_ids: Sequence[str] | None = None,
    resource_id: str | None = None,
) -> List[AppointmentTimeSlot]:
    """
    Normalize raw Source bookings into time slots, dropping excluded ids.

    A payload missing its id or times raises FieldResolutionError; callers
    fail closed on it rather than treat the booking as free time.
    """
    excluded = {str(x) for x in (exclude_ids or [])}
    slots: List[AppointmentTimeSlot] = []
    for raw in raw_appointments:
        appointment = normalize_source_appointment(raw)
        if appointment.id in excluded:
            continue
        slots.append(to_time_slot(appointment, resource_id=resource_id))
    return slots


class AvailabilityChecker:
    """
    Cross-resource availability on the Source platform.

    Fetches every resource (team/crew) and the bookings overlapping the
    requested date range, runs the overlap engine once over the merged set
    and re-attaches each conflict to its owning resource.

    Failure policy
    --------------
    Any upstream or normalization error yields
    `AvailabilityResult(available=False, conflicts=[], available_resources=[])`.
    The checker never reports more availability than it verified.
    """

    def __init__(self, source: SourcePort) -> None:
        self.source = source

    async def check_availability(
        self,
        start_time: datetime,
        end_time: datetime,
        tenant_id: str,
        exclude_ids: Optional[Sequence[str]] = None,
        buffer_minutes: int = 0,
    ) -> AvailabilityResult:
        try:
            raw_resources, raw_appointments = await asyncio.gather(
                self.source.list_resources(tenant_id),
                self.source.list_appointments(
                    tenant_id, _date_range_filter(start_time, end_time, buffer_minutes)
                ),
            )
            resources = [normalize_resource(r) for r in raw_resources]
            slots = _slots_from_raw(raw_appointments, exclude_ids)
        except Exception:
            logger.exception(
                "Availability check failed for tenant %s (%s - %s); reporting unavailable",
                tenant_id,
                start_time,
                end_time,
            )
            return AvailabilityResult.unavailable()

        names = {r.id: r.name for r in resources}
        overlap = detect_overlaps(slots, start_time, end_time, buffer_minutes)

        conflicts = [
            ResourceConflict(
                resource_id=c.slot.resource_id or UNKNOWN_RESOURCE,
                resource_name=names.get(c.slot.resource_id) if c.slot.resource_id else None,
                conflicting_slot=c.slot,
                overlap_type=c.overlap_type,
            )
            for c in overlap.conflicts
        ]

        busy = {c.resource_id for c in conflicts}
        available_resources = [
            ResourceRef(resource_id=r.id, resource_name=r.name)
            for r in resources
            if r.id not in busy
        ]

        return AvailabilityResult(
            available=not conflicts,
            conflicts=conflicts,
            available_resources=available_resources,
        )

    async def check_team_availability(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        tenant_id: str,
        exclude_id: Optional[str] = None,
        buffer_minutes: int = 0,
    ) -> TeamAvailabilityResult:
        resource_id = str(resource_id)
        try:
            raw_appointments, raw_resources = await asyncio.gather(
                self.source.list_resource_appointments(
                    resource_id,
                    tenant_id,
                    _date_range_filter(start_time, end_time, buffer_minutes),
                ),
                self.source.list_resources(tenant_id),
            )
            slots = _slots_from_raw(
                raw_appointments,
                [exclude_id] if exclude_id else None,
                resource_id=resource_id,
            )
            resource = self._find_resource(raw_resources, resource_id)
        except Exception:
            logger.exception(
                "Availability check failed for resource %s of tenant %s", resource_id, tenant_id
            )
            return TeamAvailabilityResult(resource_id=resource_id, available=False, conflicts=[])

        overlap = detect_overlaps(slots, start_time, end_time, buffer_minutes)
        return TeamAvailabilityResult(
            resource_id=resource_id,
            resource_name=resource.name if resource else None,
            available=not overlap.has_conflict,
            conflicts=[c.slot for c in overlap.conflicts],
        )

    async def find_available_resources(
        self,
        start_time: datetime,
        end_time: datetime,
        tenant_id: str,
        exclude_ids: Optional[Sequence[str]] = None,
        buffer_minutes: int = 0,
    ) -> List[ResourceRef]:
        result = await self.check_availability(
            start_time, end_time, tenant_id, exclude_ids, buffer_minutes
        )
        return result.available_resources

    async def find_open_slots(
        self,
        resource_id: str,
        range_start: datetime,
        range_end: datetime,
        slot_minutes: int,
        tenant_id: str,
        buffer_minutes: int = 0,
    ) -> List[TimeWindow]:
        """
        Free windows of `slot_minutes` for one resource inside the range.

        Returns an empty list if the resource's bookings cannot be fetched.
        """
        try:
            raw_appointments = await self.source.list_resource_appointments(
                str(resource_id),
                tenant_id,
                _date_range_filter(range_start, range_end, buffer_minutes),
            )
            slots = _slots_from_raw(raw_appointments, resource_id=str(resource_id))
        except Exception:
            logger.exception(
                "Could not load bookings for resource %s of tenant %s", resource_id, tenant_id
            )
            return []

        return find_available_slots(slots, range_start, range_end, slot_minutes, buffer_minutes)

    @staticmethod
    def _find_resource(raw_resources: Iterable[Dict[str, Any]], resource_id: str) -> Optional[Resource]:
        for raw in raw_resources:
            resource = normalize_resource(raw)
            if resource.id == resource_id:
                return resource
        return None
