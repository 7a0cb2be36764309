"""
Explicit, ordered alias resolution for both platforms' payloads.

Both platforms are inconsistent about field naming (an appointment id may
arrive as `Id`, `AppointmentId` or `id`). Every alias list lives here, and
each normalizer returns a validated pydantic model before business logic
touches the data.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from appointment_bridge.core.timeutils import parse_datetime
from appointment_bridge.schemas.appointment import (
    AppointmentTimeSlot,
    Resource,
    SourceAppointment,
    TargetAppointment,
)
from appointment_bridge.services.errors import FieldResolutionError

_MISSING = object()


# --------------------------------------------------------------------------
# Alias tables (first present, non-empty value wins)
# --------------------------------------------------------------------------

SOURCE_APPOINTMENT_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("Id", "AppointmentId", "id"),
    "start_time": ("StartTime", "ScheduledStart", "ServiceDate", "Date", "ScheduledDate"),
    "end_time": ("EndTime", "ScheduledEnd", "ServiceEndTime"),
    "resource_id": ("TeamId", "teamId", "AssignedTeamId", "EmployeeId", "employeeId"),
    "assignee_id": ("EmployeeId", "employeeId", "AssignedToId", "assignedToId"),
    "last_modified": ("LastModified", "lastModified", "ModifiedDate"),
    "title": ("ServiceName", "Title"),
    "notes": ("Notes", "Description"),
    "status": ("Status", "StatusName"),
    "customer_id": ("ContactId", "CustomerId"),
    "email": ("Email", "CustomerEmail"),
    "phone": ("Phone", "CustomerPhone"),
    "address": ("Address", "ServiceAddress"),
    "city": ("City",),
    "state": ("State", "Region"),
    "postal_code": ("PostalCode", "ZipCode"),
    "quote_id": ("QuoteId",),
    "lead_id": ("LeadId",),
    "service_type": ("ServiceType", "ScopeGroupName", "ScopeGroup"),
}

TARGET_APPOINTMENT_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "appointmentId"),
    "start_time": ("startTime", "start", "date"),
    "end_time": ("endTime", "end"),
    "calendar_id": ("calendarId",),
    "updated_at": ("updatedAt", "modifiedAt", "dateUpdated"),
    "title": ("title", "name"),
    "notes": ("description", "notes"),
    "status": ("appointmentStatus", "status"),
    "contact_id": ("contactId", "customerId"),
    "email": ("contact.email", "email"),
    "phone": ("contact.phone", "phone"),
    "first_name": ("contact.firstName", "firstName"),
    "last_name": ("contact.lastName", "lastName"),
    "address": ("address", "address1"),
    "city": ("city",),
    "state": ("state", "region"),
    "postal_code": ("postalCode", "zipCode"),
}

RESOURCE_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("Id", "id", "TeamId", "teamId"),
    "name": ("Name", "name", "TeamName", "teamName"),
}

BOOKING_ID_ALIASES: tuple[str, ...] = ("AppointmentId", "JobId", "BookingId", "Id", "id")
LEAD_ID_ALIASES: tuple[str, ...] = ("LeadId", "leadId", "Id", "id")
QUOTE_ID_ALIASES: tuple[str, ...] = ("QuoteId", "quoteId", "Id", "id")
CREATED_TARGET_ID_ALIASES: tuple[str, ...] = ("id", "appointmentId", "appointment.id", "event.id")


# --------------------------------------------------------------------------
# Resolution
# --------------------------------------------------------------------------

def _lookup(payload: Mapping[str, Any], path: str) -> Any:
    current: Any = payload
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def resolve_field(
    payload: Mapping[str, Any],
    aliases: Sequence[str],
    *,
    field: str,
    required: bool = True,
) -> Any:
    """
    Return the first present, non-null value among `aliases`.

    Dotted aliases (`contact.email`) walk nested mappings. Empty strings
    count as absent. When nothing is found, a required field raises
    FieldResolutionError naming every alias that was tried; an optional
    field returns None.
    """
    for alias in aliases:
        value = _lookup(payload, alias)
        if value is _MISSING or value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value

    if required:
        raise FieldResolutionError(
            f"Missing required field '{field}' (looked for: {', '.join(aliases)})"
        )
    return None


def resolve_id(
    payload: Mapping[str, Any],
    aliases: Sequence[str],
    *,
    field: str,
    required: bool = True,
) -> Optional[str]:
    value = resolve_field(payload, aliases, field=field, required=required)
    return None if value is None else str(value)


def _resolve_datetime(payload: Mapping[str, Any], aliases: Sequence[str], field: str, required: bool):
    value = resolve_field(payload, aliases, field=field, required=required)
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise FieldResolutionError(f"Invalid datetime for '{field}': {value!r}") from exc


def _resolve_all(
    payload: Mapping[str, Any],
    aliases: dict[str, tuple[str, ...]],
    required: set[str],
    datetime_fields: set[str],
) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field, field_aliases in aliases.items():
        is_required = field in required
        if field in datetime_fields:
            values[field] = _resolve_datetime(payload, field_aliases, field, is_required)
        else:
            value = resolve_field(payload, field_aliases, field=field, required=is_required)
            values[field] = None if value is None else str(value)
    return values


# --------------------------------------------------------------------------
# Normalizers
# --------------------------------------------------------------------------

def normalize_source_appointment(raw: Mapping[str, Any]) -> SourceAppointment:
    """
    Validate a raw Source appointment. id, start and end are required.
    """
    values = _resolve_all(
        raw,
        SOURCE_APPOINTMENT_ALIASES,
        required={"id", "start_time", "end_time"},
        datetime_fields={"start_time", "end_time", "last_modified"},
    )
    return SourceAppointment(**values, raw=dict(raw))


def normalize_target_appointment(raw: Mapping[str, Any]) -> TargetAppointment:
    """
    Validate a raw Target appointment. id, start and end are required.
    """
    values = _resolve_all(
        raw,
        TARGET_APPOINTMENT_ALIASES,
        required={"id", "start_time", "end_time"},
        datetime_fields={"start_time", "end_time", "updated_at"},
    )
    return TargetAppointment(**values, raw=dict(raw))


def normalize_resource(raw: Mapping[str, Any]) -> Resource:
    values = _resolve_all(raw, RESOURCE_ALIASES, required={"id"}, datetime_fields=set())
    return Resource(**values)


def to_time_slot(appointment: SourceAppointment, resource_id: str | None = None) -> AppointmentTimeSlot:
    return AppointmentTimeSlot(
        id=appointment.id,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        resource_id=resource_id if resource_id is not None else appointment.resource_id,
    )
