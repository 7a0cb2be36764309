from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from appointment_bridge.schemas.appointment import AppointmentTimeSlot, TimeWindow


class OverlapType(str, Enum):
    """
    How an existing booking collides with a candidate interval.
    """

    FULL = "full"
    PARTIAL = "partial"
    ADJACENT = "adjacent"


class OverlapConflict(BaseModel):
    slot: AppointmentTimeSlot
    overlap_type: OverlapType
    overlap_start: datetime
    overlap_end: datetime


class OverlapResult(BaseModel):
    """
    Output of the time-overlap engine for one candidate interval.
    """

    has_conflict: bool
    conflicts: list[OverlapConflict] = Field(default_factory=list)


class ResourceRef(BaseModel):
    resource_id: str
    resource_name: str | None = None


class ResourceConflict(BaseModel):
    """
    A conflicting booking re-attached to the resource that owns it.
    """

    resource_id: str = Field(..., description="Owning resource id, or 'unknown'.")
    resource_name: str | None = None
    conflicting_slot: AppointmentTimeSlot
    overlap_type: OverlapType


class AvailabilityResult(BaseModel):
    """
    Tenant-wide availability for one requested interval.

    `available` is informational: it is False as soon as any resource has a
    conflict. Callers that need a specific resource must check membership in
    `available_resources`.
    """

    available: bool
    conflicts: list[ResourceConflict] = Field(default_factory=list)
    available_resources: list[ResourceRef] = Field(default_factory=list)

    @classmethod
    def unavailable(cls) -> "AvailabilityResult":
        return cls(available=False, conflicts=[], available_resources=[])


class TeamAvailabilityResult(BaseModel):
    resource_id: str
    resource_name: str | None = None
    available: bool
    conflicts: list[AppointmentTimeSlot] = Field(default_factory=list)


class AvailabilityRequest(BaseModel):
    """
    Body accepted by the availability endpoints.
    """

    start_time: datetime = Field(..., examples=["2025-11-14T14:00:00Z"])
    end_time: datetime = Field(..., examples=["2025-11-14T15:00:00Z"])
    exclude_ids: list[str] | None = Field(
        default=None,
        description="Source appointment ids ignored during the check (rescheduling).",
    )
    buffer_minutes: int | None = Field(
        default=None,
        ge=0,
        description="Buffer applied around the candidate; defaults to the tenant setting.",
    )


class SlotSearchRequest(BaseModel):
    range_start: datetime
    range_end: datetime
    slot_minutes: int = Field(..., gt=0, examples=[120])
    buffer_minutes: int = Field(default=0, ge=0)


class SlotSearchResponse(BaseModel):
    resource_id: str
    slots: list[TimeWindow]
