from __future__ import annotations

from typing import Any, Dict

from appointment_bridge.core.timeutils import isoformat_utc
from appointment_bridge.schemas.appointment import SourceAppointment, TargetAppointment

_SOURCE_TO_TARGET_STATUS: Dict[str, str] = {
    "Scheduled": "scheduled",
    "Confirmed": "confirmed",
    "In Progress": "in_progress",
    "Completed": "completed",
    "Cancelled": "cancelled",
    "No Show": "no_show",
    "Rescheduled": "rescheduled",
}

_TARGET_TO_SOURCE_STATUS: Dict[str, str] = {v: k for k, v in _SOURCE_TO_TARGET_STATUS.items()}


def source_status_to_target(status: str | None) -> str:
    """
    "In Progress" -> "in_progress"; unknown values are snake_cased.
    """
    if not status:
        return "scheduled"
    return _SOURCE_TO_TARGET_STATUS.get(status, "_".join(status.lower().split()))


def target_status_to_source(status: str | None) -> str:
    """
    "no_show" -> "No Show"; unknown values are capitalised with spaces.
    """
    if not status:
        return "Scheduled"
    if status in _TARGET_TO_SOURCE_STATUS:
        return _TARGET_TO_SOURCE_STATUS[status]
    return status[:1].upper() + status[1:].replace("_", " ")


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def map_source_to_target(appointment: SourceAppointment) -> Dict[str, Any]:
    """
    Build the Target calendar-appointment payload for a Source booking.

    Source-side identifiers travel in `metadata` so a human looking at the
    CRM event can find the originating job.
    """
    metadata = _compact(
        {
            "sourceAppointmentId": appointment.id,
            "sourceQuoteId": appointment.quote_id,
            "sourceLeadId": appointment.lead_id,
            "serviceType": appointment.service_type,
            "resourceId": appointment.resource_id,
            "assigneeId": appointment.assignee_id,
        }
    )
    return _compact(
        {
            "title": appointment.title or "Service Appointment",
            "description": appointment.notes or "",
            "startTime": isoformat_utc(appointment.start_time),
            "endTime": isoformat_utc(appointment.end_time),
            "contactId": appointment.customer_id,
            "address": appointment.address,
            "city": appointment.city,
            "state": appointment.state,
            "postalCode": appointment.postal_code,
            "appointmentStatus": source_status_to_target(appointment.status),
            "metadata": metadata or None,
        }
    )


def map_target_to_source(
    appointment: TargetAppointment,
    resource_id: str | None = None,
) -> Dict[str, Any]:
    """
    Build the Source appointment payload for a Target calendar event.

    `resource_id`, when resolved by the caller, is sent as the assigned team.
    """
    start = isoformat_utc(appointment.start_time)
    return _compact(
        {
            "Title": appointment.title or "Service Appointment",
            "Notes": appointment.notes or "",
            "ScheduledStart": start,
            "ScheduledEnd": isoformat_utc(appointment.end_time),
            "Date": start,
            "CustomerId": appointment.contact_id,
            "Email": appointment.email,
            "Phone": appointment.phone,
            "FirstName": appointment.first_name,
            "LastName": appointment.last_name,
            "Address": appointment.address,
            "City": appointment.city,
            "State": appointment.state,
            "PostalCode": appointment.postal_code,
            "Status": target_status_to_source(appointment.status),
            "TeamId": resource_id,
            "TargetAppointmentId": appointment.id,
            "TargetCalendarId": appointment.calendar_id,
        }
    )
