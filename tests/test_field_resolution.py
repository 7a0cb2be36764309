# tests/test_field_resolution.py
from datetime import datetime, timezone

import pytest

from appointment_bridge.schemas.sync import SyncErrorType
from appointment_bridge.services.appointment_mapper import (
    map_source_to_target,
    map_target_to_source,
    source_status_to_target,
    target_status_to_source,
)
from appointment_bridge.services.errors import FieldResolutionError
from appointment_bridge.services.field_resolution import (
    SOURCE_APPOINTMENT_ALIASES,
    normalize_resource,
    normalize_source_appointment,
    normalize_target_appointment,
    resolve_field,
    to_time_slot,
)


def test_first_present_alias_wins():
    payload = {"AppointmentId": "second", "Id": "first", "id": "third"}

    assert resolve_field(payload, SOURCE_APPOINTMENT_ALIASES["id"], field="id") == "first"


def test_null_and_blank_values_are_skipped():
    payload = {"Id": None, "AppointmentId": "  ", "id": 42}

    assert resolve_field(payload, SOURCE_APPOINTMENT_ALIASES["id"], field="id") == 42


def test_missing_required_field_raises_validation_error():
    with pytest.raises(FieldResolutionError) as exc_info:
        resolve_field({"Name": "x"}, ("Id", "AppointmentId", "id"), field="id")

    assert exc_info.value.error_type == SyncErrorType.VALIDATION
    assert "Id, AppointmentId, id" in str(exc_info.value)


def test_missing_optional_field_returns_none():
    assert resolve_field({}, ("TeamId",), field="resource_id", required=False) is None


def test_dotted_alias_walks_nested_payloads():
    payload = {"contact": {"email": "jane@example.com"}, "email": "fallback@example.com"}

    assert resolve_field(payload, ("contact.email", "email"), field="email") == "jane@example.com"


def test_normalize_source_appointment_accepts_legacy_names():
    appointment = normalize_source_appointment(
        {
            "AppointmentId": 5501,
            "ServiceDate": "2025-11-14T14:00:00Z",
            "ServiceEndTime": "2025-11-14T15:00:00Z",
            "AssignedTeamId": 7,
            "LastModified": "2025-11-10T08:00:00Z",
            "Status": "In Progress",
        }
    )

    assert appointment.id == "5501"
    assert appointment.resource_id == "7"
    assert appointment.start_time == datetime(2025, 11, 14, 14, tzinfo=timezone.utc)
    assert appointment.last_modified == datetime(2025, 11, 10, 8, tzinfo=timezone.utc)


def test_normalize_source_appointment_rejects_unparseable_time():
    with pytest.raises(FieldResolutionError):
        normalize_source_appointment(
            {"Id": "1", "StartTime": "tomorrow-ish", "EndTime": "2025-11-14T15:00:00Z"}
        )


def test_normalize_target_appointment_reads_nested_contact():
    appointment = normalize_target_appointment(
        {
            "id": "evt-1",
            "startTime": "2025-11-14T14:00:00+00:00",
            "endTime": "2025-11-14T15:00:00+00:00",
            "calendarId": "cal-1",
            "contact": {"email": "jane@example.com", "firstName": "Jane"},
        }
    )

    assert appointment.email == "jane@example.com"
    assert appointment.first_name == "Jane"
    assert appointment.calendar_id == "cal-1"
    assert appointment.updated_at is None


def test_normalize_resource_and_time_slot():
    resource = normalize_resource({"TeamId": 3, "TeamName": "Crew C"})
    appointment = normalize_source_appointment(
        {"Id": "9", "StartTime": "2025-11-14T09:00:00Z", "EndTime": "2025-11-14T10:00:00Z"}
    )

    assert resource.id == "3"
    assert resource.name == "Crew C"
    assert to_time_slot(appointment).resource_id is None
    assert to_time_slot(appointment, resource_id="3").resource_id == "3"


def test_status_translation_round_trips_known_values():
    assert source_status_to_target("No Show") == "no_show"
    assert target_status_to_source("in_progress") == "In Progress"
    assert source_status_to_target(None) == "scheduled"
    assert target_status_to_source("on_hold") == "On hold"


def test_mappers_drop_missing_values():
    source = normalize_source_appointment(
        {"Id": "9", "StartTime": "2025-11-14T09:00:00Z", "EndTime": "2025-11-14T10:00:00Z"}
    )
    target = normalize_target_appointment(
        {"id": "evt-9", "startTime": "2025-11-14T09:00:00Z", "endTime": "2025-11-14T10:00:00Z"}
    )

    to_target = map_source_to_target(source)
    to_source = map_target_to_source(target, resource_id="R1")

    assert to_target["startTime"] == "2025-11-14T09:00:00Z"
    assert "contactId" not in to_target
    assert to_target["metadata"] == {"sourceAppointmentId": "9"}
    assert to_source["TeamId"] == "R1"
    assert to_source["TargetAppointmentId"] == "evt-9"
    assert "Email" not in to_source
