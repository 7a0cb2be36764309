# tests/test_reconciliation.py
import asyncio

import pytest

from appointment_bridge.schemas.sync import SyncAction, SyncErrorType
from appointment_bridge.services.sync_engine import SyncEngine
from appointment_bridge.services.target_client import TargetClientError
from fakes import TENANT, source_appointment, target_appointment


def _source(appointment_id: str, hour: int, last_modified: str = "2025-11-10T08:00:00Z", team_id: str = "R1"):
    return source_appointment(
        appointment_id,
        f"2025-11-14T{hour:02d}:00:00Z",
        f"2025-11-14T{hour + 1:02d}:00:00Z",
        team_id=team_id,
        LastModified=last_modified,
    )


@pytest.mark.asyncio
async def test_partial_failure_is_counted_and_pass_continues(engine, source, target, configure_tenant):
    await configure_tenant()
    source.appointments = [_source("S1", 8), _source("S2", 10), _source("S3", 12)]
    target.fail_creates = {2}

    summary = await engine.sync_all_appointments(TENANT)

    assert summary.synced == 2
    assert summary.errors == 1
    assert len(summary.results) == 3
    assert [r.source_appointment_id for r in summary.results] == ["S1", "S2", "S3"]
    failed = summary.results[1]
    assert failed.success is False
    assert failed.error_type == SyncErrorType.UPSTREAM


@pytest.mark.asyncio
async def test_unchanged_appointments_are_not_pushed_again(engine, source, target, configure_tenant):
    await configure_tenant()
    source.appointments = [_source("S1", 8)]

    first = await engine.sync_all_appointments(TENANT)
    target.events["cal-default"] = [
        target_appointment("evt-1", "2025-11-14T08:00:00Z", "2025-11-14T09:00:00Z", updatedAt="2025-11-10T08:00:00Z")
    ]
    second = await engine.sync_all_appointments(TENANT)

    assert first.synced == 1
    assert second.synced == 0
    assert second.errors == 0
    assert second.results == []
    assert len(target.created) == 1
    assert target.updated == []


@pytest.mark.asyncio
async def test_newer_source_edit_is_pushed_as_update(engine, source, target, configure_tenant):
    await configure_tenant()
    source.appointments = [_source("S1", 8)]
    await engine.sync_all_appointments(TENANT)

    source.appointments = [_source("S1", 9, last_modified="2030-01-01T00:00:00Z")]
    summary = await engine.sync_all_appointments(TENANT)

    assert summary.synced == 1
    assert summary.results[0].action == SyncAction.UPDATED
    assert target.updated[0]["payload"]["startTime"] == "2025-11-14T09:00:00Z"


@pytest.mark.asyncio
async def test_unlinked_target_events_are_booked_on_source(engine, source, target, configure_tenant):
    await configure_tenant()
    target.events["cal-default"] = [
        target_appointment("evt-9", "2025-11-14T14:00:00Z", "2025-11-14T15:00:00Z")
    ]

    summary = await engine.sync_all_appointments(TENANT)

    assert summary.synced == 1
    result = summary.results[0]
    assert result.target_appointment_id == "evt-9"
    assert result.source_appointment_id == "S-new"
    assert result.action == SyncAction.CREATED


@pytest.mark.asyncio
async def test_each_appointment_is_pushed_at_most_once_per_pass(engine, source, target, configure_tenant):
    await configure_tenant()
    source.appointments = [_source("S1", 8)]
    target.events["cal-default"] = [
        target_appointment("evt-9", "2025-11-14T14:00:00Z", "2025-11-14T15:00:00Z")
    ]

    summary = await engine.sync_all_appointments(TENANT)

    pushed = [(r.source_appointment_id, r.target_appointment_id) for r in summary.results]
    assert pushed == [("S1", "evt-1"), ("S-new", "evt-9")]
    assert len(source.called("book_quote")) == 1
    assert len(target.created) == 1


@pytest.mark.asyncio
async def test_mappings_route_each_team_to_its_calendar(engine, source, target, configure_tenant, add_mapping):
    await configure_tenant(default_calendar_id=None)
    await add_mapping("R1", "cal-blue")
    await add_mapping("R2", "cal-red")
    source.appointments = [_source("S1", 8, team_id="R1"), _source("S2", 10, team_id="R2")]

    summary = await engine.sync_all_appointments(TENANT)

    assert summary.synced == 2
    assert {(c["payload"]["metadata"]["sourceAppointmentId"], c["calendar_id"]) for c in target.created} == {
        ("S1", "cal-blue"),
        ("S2", "cal-red"),
    }
    assert source.called("list_appointments") == []
    assert [args[0] for args in source.called("list_resource_appointments")] == ["R1", "R2"]


@pytest.mark.asyncio
async def test_team_variant_without_mappings_does_nothing(engine, source, configure_tenant):
    await configure_tenant()

    summary = await engine.sync_all_teams_appointments(TENANT)

    assert summary.synced == 0
    assert summary.errors == 0
    assert summary.message == "No enabled resource-calendar mappings"
    assert source.calls == []


@pytest.mark.asyncio
async def test_fetch_failure_for_one_team_does_not_stop_others(engine, source, target, configure_tenant, add_mapping):
    await configure_tenant()
    await add_mapping("R1", "cal-blue")
    await add_mapping("R2", "cal-red")
    source.appointments = [_source("S2", 10, team_id="R2")]

    original = target.list_calendar_appointments

    async def flaky(calendar_id, location_id, filters=None):
        if calendar_id == "cal-blue":
            raise TargetClientError("Target GET /calendars/events failed (status=500)")
        return await original(calendar_id, location_id, filters)

    target.list_calendar_appointments = flaky

    summary = await engine.sync_all_teams_appointments(TENANT)

    assert summary.errors == 1
    assert summary.synced == 1
    assert summary.results[1].source_appointment_id == "S2"


@pytest.mark.asyncio
async def test_failed_push_does_not_break_later_items_on_mapped_calendar(
    engine, source, target, configure_tenant, add_mapping
):
    await configure_tenant()
    await add_mapping("R1", "cal-blue")
    source.appointments = [_source("S1", 8)]
    target.fail_creates = {1}
    target.events["cal-blue"] = [
        target_appointment("evt-9", "2025-11-14T14:00:00Z", "2025-11-14T15:00:00Z", calendar_id="cal-blue")
    ]

    summary = await engine.sync_all_teams_appointments(TENANT)

    assert [(r.source_appointment_id, r.target_appointment_id, r.success) for r in summary.results] == [
        ("S1", None, False),
        ("S-new", "evt-9", True),
    ]
    assert summary.errors == 1
    assert source.called("book_quote")[0][0]["TeamId"] == "R1"


@pytest.mark.asyncio
async def test_disabled_tenant_reports_configuration_error(engine, source, configure_tenant):
    await configure_tenant(sync_appointments=False)

    summary = await engine.sync_all_appointments(TENANT)

    assert summary.synced == 0
    assert summary.errors == 1
    assert summary.results[0].error_type == SyncErrorType.CONFIGURATION
    assert summary.message == "Appointment syncing is disabled"
    assert source.calls == []


@pytest.mark.asyncio
async def test_both_sides_changed_goes_through_conflict_resolution(engine, source, target, configure_tenant):
    await configure_tenant()
    source.appointments = [_source("S1", 8)]
    await engine.sync_all_appointments(TENANT)

    source.appointments = [_source("S1", 9, last_modified="2099-01-01T00:00:00Z")]
    target.events["cal-default"] = [
        target_appointment(
            "evt-1",
            "2025-11-14T11:00:00Z",
            "2025-11-14T12:00:00Z",
            updatedAt="2099-06-01T00:00:00Z",
        )
    ]
    summary = await engine.sync_all_appointments(TENANT)

    # The record stamped Target at push time, after the older Source edit, so
    # Target wins and its data is pushed to Source exactly once.
    assert summary.synced == 1
    assert summary.results[0].action == SyncAction.UPDATED
    assert target.updated == []
    assert source.updated["S1"]["ScheduledStart"] == "2025-11-14T11:00:00Z"

    record = await engine.store.get_by_source_id(TENANT, "S1")
    assert record.sync_direction == "target_to_source"


@pytest.mark.asyncio
async def test_slow_push_times_out_without_stopping_pass(engine, source, target, configure_tenant):
    await configure_tenant()
    engine.settings = engine.settings.model_copy(update={"SYNC_ITEM_TIMEOUT_SECONDS": 0.5})
    source.appointments = [_source("S1", 8), _source("S2", 10)]

    original = target.create_calendar_appointment

    async def slow_first(calendar_id, location_id, payload):
        if payload["metadata"]["sourceAppointmentId"] == "S1":
            await asyncio.sleep(10)
        return await original(calendar_id, location_id, payload)

    target.create_calendar_appointment = slow_first

    summary = await engine.sync_all_appointments(TENANT)

    assert summary.errors == 1
    assert summary.synced == 1
    assert summary.results[0].error_type == SyncErrorType.TIMEOUT
    assert summary.results[1].success is True


@pytest.mark.asyncio
async def test_concurrent_passes_for_one_tenant_do_not_duplicate(db_session, session_factory, source, target, configure_tenant):
    tenant_id = "acme-concurrent"
    await configure_tenant(tenant_id)
    source.appointments = [_source("S1", 8)]

    async with session_factory() as other_session:
        first = SyncEngine(db_session, source, target)
        second = SyncEngine(other_session, source, target)
        results = await asyncio.gather(
            first.sync_all_appointments(tenant_id),
            second.sync_all_appointments(tenant_id),
        )

    assert sorted(r.synced for r in results) == [0, 1]
    assert len(target.created) == 1
