from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from appointment_bridge.schemas.sync import ConflictStrategy


class IntegrationConfigBase(BaseModel):
    """
    Per-tenant integration switches read by the sync subsystem.
    """

    enabled: bool = Field(default=False, description="Master switch for the integration.")
    sync_appointments: bool = Field(
        default=False,
        description="Whether appointment synchronization runs for this tenant.",
    )
    target_location_id: str | None = Field(
        default=None,
        description="Target platform location (sub-account) the calendars belong to.",
        examples=["loc_123"],
    )
    default_calendar_id: str | None = Field(
        default=None,
        description="Calendar used when an appointment's resource has no mapping.",
        examples=["cal_default"],
    )
    conflict_resolution: ConflictStrategy = Field(
        default=ConflictStrategy.MOST_RECENT_WINS,
        description="Strategy used when both sides changed since the last sync.",
    )
    buffer_minutes: int = Field(
        default=0,
        ge=0,
        description="Buffer applied around bookings during availability checks.",
    )


class IntegrationConfigUpdate(IntegrationConfigBase):
    pass


class IntegrationConfigRead(IntegrationConfigBase):
    model_config = ConfigDict(from_attributes=True)

    tenant_id: str


class ResourceCalendarMappingBase(BaseModel):
    resource_id: str = Field(..., description="Source team/crew id.", examples=["12"])
    resource_name: str | None = Field(default=None, examples=["Team Blue"])
    target_calendar_id: str = Field(..., description="Target calendar id.", examples=["cal_blue"])
    target_calendar_name: str | None = Field(default=None, examples=["Blue Crew"])
    enabled: bool = True


class ResourceCalendarMappingWrite(ResourceCalendarMappingBase):
    pass


class ResourceCalendarMappingRead(ResourceCalendarMappingBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
