from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AppointmentTimeSlot(BaseModel):
    """
    A schedulable interval on either platform, normalized to one shape so the
    overlap engine can compare bookings regardless of where they came from.

    Never persisted; built on demand from raw platform payloads.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(None, description="Identifier of the booking on its platform.")
    start_time: datetime = Field(..., description="UTC start of the interval.")
    end_time: datetime = Field(..., description="UTC end of the interval.")
    resource_id: str | None = Field(
        None,
        description="Team/crew owning the booking, if known.",
    )


class TimeWindow(BaseModel):
    """
    A free interval produced by the slot finder.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class Resource(BaseModel):
    """
    A schedulable team/crew on the Source platform.
    """

    id: str
    name: str | None = None


class SourceAppointment(BaseModel):
    """
    Validated view of a Source (scheduling backend) appointment.

    Produced by `normalize_source_appointment`; business logic never reads
    raw Source payloads directly.
    """

    id: str
    start_time: datetime
    end_time: datetime
    resource_id: str | None = None
    assignee_id: str | None = None
    last_modified: datetime | None = None

    title: str | None = None
    notes: str | None = None
    status: str | None = None
    customer_id: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    quote_id: str | None = None
    lead_id: str | None = None
    service_type: str | None = None

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)


class TargetAppointment(BaseModel):
    """
    Validated view of a Target (CRM calendar) appointment.
    """

    id: str
    start_time: datetime
    end_time: datetime
    calendar_id: str | None = None
    updated_at: datetime | None = None

    title: str | None = None
    notes: str | None = None
    status: str | None = None
    contact_id: str | None = None
    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
