# tests/test_sync_target_to_source.py
import pytest
from sqlalchemy import func, select

from appointment_bridge.models.sync_record import SyncRecord
from appointment_bridge.schemas.sync import SyncAction, SyncErrorType
from appointment_bridge.services.source_client import SourceClientError
from fakes import TENANT, source_appointment, target_appointment


def _event(**extra):
    return target_appointment(
        "evt-1",
        "2025-11-14T14:00:00Z",
        "2025-11-14T15:00:00Z",
        updatedAt="2025-11-12T09:00:00Z",
        **extra,
    )


async def _record_count(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(SyncRecord))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_new_event_runs_lead_quote_price_book_workflow(engine, source, configure_tenant):
    await configure_tenant()

    result = await engine.sync_target_to_source(_event(), TENANT)

    assert result.success is True
    assert result.action == SyncAction.CREATED
    assert result.source_appointment_id == "S-new"
    assert result.target_appointment_id == "evt-1"

    steps = [name for name, _ in source.calls if name != "list_resources"]
    assert steps == [
        "find_or_create_lead",
        "create_quote",
        "list_appointments",
        "calculate_price",
        "book_quote",
    ]

    (lead_payload, _), = source.called("find_or_create_lead")
    assert lead_payload["Email"] == "jane@example.com"
    assert lead_payload["FirstName"] == "Jane"

    (quote_payload, _), = source.called("create_quote")
    assert quote_payload == {
        "LeadId": "L1",
        "CustomerInformationId": "C1",
        "HomeInformationId": "H1",
        "ServiceSetId": 1,
        "ScopeGroupId": 1,
        "FrequencyId": 1,
    }

    (booking_payload, _), = source.called("book_quote")
    assert booking_payload["QuoteId"] == "Q1"
    assert booking_payload["StartTime"] == "2025-11-14T14:00:00Z"
    assert booking_payload["TeamId"] == "R1"
    assert booking_payload["PaymentMethod"] == "Check/Cash"

    record = await engine.store.get_by_target_id(TENANT, "evt-1")
    assert record.source_appointment_id == "S-new"
    assert record.resource_id == "R1"
    assert record.sync_direction == "target_to_source"


@pytest.mark.asyncio
async def test_double_booking_is_blocked(engine, source, configure_tenant, db_session):
    await configure_tenant()
    source.appointments = [
        source_appointment("S9", "2025-11-14T14:30:00Z", "2025-11-14T15:30:00Z", team_id="R1")
    ]

    result = await engine.sync_target_to_source(_event(), TENANT)

    assert result.success is False
    assert result.error_type == SyncErrorType.AVAILABILITY_CONFLICT
    assert "R1:S9" in result.error
    assert [c.conflicting_slot.id for c in result.conflicts] == ["S9"]
    assert source.called("calculate_price") == []
    assert source.called("book_quote") == []
    assert await _record_count(db_session) == 0


@pytest.mark.asyncio
async def test_mapped_resource_is_preferred_when_free(engine, source, configure_tenant, add_mapping):
    await configure_tenant()
    await add_mapping("R2", "cal-red")
    source.resources = [{"Id": "R1", "Name": "Team Blue"}, {"Id": "R2", "Name": "Team Red"}]

    result = await engine.sync_target_to_source(_event(calendar_id="cal-red"), TENANT)

    assert result.success is True
    (booking_payload, _), = source.called("book_quote")
    assert booking_payload["TeamId"] == "R2"


@pytest.mark.asyncio
async def test_busy_mapped_resource_falls_back_to_free_one(engine, source, configure_tenant, add_mapping):
    await configure_tenant()
    await add_mapping("R2", "cal-red")
    source.resources = [{"Id": "R1", "Name": "Team Blue"}, {"Id": "R2", "Name": "Team Red"}]
    source.appointments = [
        source_appointment("S9", "2025-11-14T14:00:00Z", "2025-11-14T15:00:00Z", team_id="R2")
    ]

    result = await engine.sync_target_to_source(_event(calendar_id="cal-red"), TENANT)

    assert result.success is True
    (booking_payload, _), = source.called("book_quote")
    assert booking_payload["TeamId"] == "R1"


@pytest.mark.asyncio
async def test_tenant_without_resources_books_unassigned(engine, source, configure_tenant):
    await configure_tenant()
    source.resources = []

    result = await engine.sync_target_to_source(_event(), TENANT)

    assert result.success is True
    (booking_payload, _), = source.called("book_quote")
    assert "TeamId" not in booking_payload


@pytest.mark.asyncio
async def test_price_rejection_aborts_booking(engine, source, configure_tenant, db_session):
    await configure_tenant()
    source.errors["calculate_price"] = SourceClientError("Slot is blocked")

    result = await engine.sync_target_to_source(_event(), TENANT)

    assert result.success is False
    assert result.error_type == SyncErrorType.AVAILABILITY_CONFLICT
    assert "Slot is blocked" in result.error
    assert source.called("book_quote") == []
    assert await _record_count(db_session) == 0


@pytest.mark.asyncio
async def test_booking_id_is_recovered_by_requery(engine, source, configure_tenant):
    await configure_tenant()
    source.booking_response = {"IsSuccess": True}
    source.recovery_appointments = [
        {"Id": "S-other", "QuoteId": "Q0"},
        {"Id": "S-77", "QuoteId": "Q1"},
    ]

    result = await engine.sync_target_to_source(_event(), TENANT)

    assert result.success is True
    assert result.source_appointment_id == "S-77"
    recovery_filters = [f for _, f in source.called("list_appointments") if "leadId" in f]
    assert recovery_filters == [{"leadId": "L1", "startDate": "2025-11-14"}]


@pytest.mark.asyncio
async def test_unrecoverable_booking_id_records_nothing(engine, source, configure_tenant, db_session):
    await configure_tenant()
    source.booking_response = {"IsSuccess": True}
    source.recovery_appointments = [{"Id": "S-other", "QuoteId": "Q0"}]

    result = await engine.sync_target_to_source(_event(), TENANT)

    assert result.success is False
    assert result.error_type == SyncErrorType.DATA_INTEGRITY
    assert await _record_count(db_session) == 0


@pytest.mark.asyncio
async def test_event_without_contact_details_is_rejected(engine, source, configure_tenant):
    await configure_tenant()
    event = _event()
    event.pop("contact")

    result = await engine.sync_target_to_source(event, TENANT)

    assert result.success is False
    assert result.error_type == SyncErrorType.VALIDATION
    assert source.calls == []


@pytest.mark.asyncio
async def test_linked_event_updates_source_after_reschedule_check(engine, source, configure_tenant):
    await configure_tenant()
    await engine.sync_target_to_source(_event(), TENANT)
    source.calls.clear()
    # The booking now exists on Source and must not block its own move.
    source.appointments = [
        source_appointment("S-new", "2025-11-14T14:00:00Z", "2025-11-14T15:00:00Z", team_id="R1")
    ]

    moved = _event()
    moved["startTime"] = "2025-11-14T14:30:00Z"
    moved["endTime"] = "2025-11-14T15:30:00Z"
    result = await engine.sync_target_to_source(moved, TENANT)

    assert result.success is True
    assert result.action == SyncAction.UPDATED
    assert source.called("find_or_create_lead") == []
    assert source.updated["S-new"]["ScheduledStart"] == "2025-11-14T14:30:00Z"
    assert source.updated["S-new"]["TeamId"] == "R1"


@pytest.mark.asyncio
async def test_reschedule_into_busy_slot_is_refused(engine, source, configure_tenant):
    await configure_tenant()
    await engine.sync_target_to_source(_event(), TENANT)
    source.appointments = [
        source_appointment("S-new", "2025-11-14T14:00:00Z", "2025-11-14T15:00:00Z", team_id="R1"),
        source_appointment("S-busy", "2025-11-14T16:00:00Z", "2025-11-14T17:00:00Z", team_id="R1"),
    ]

    moved = _event()
    moved["startTime"] = "2025-11-14T16:00:00Z"
    moved["endTime"] = "2025-11-14T17:00:00Z"
    result = await engine.sync_target_to_source(moved, TENANT)

    assert result.success is False
    assert result.error_type == SyncErrorType.AVAILABILITY_CONFLICT
    assert source.updated == {}
