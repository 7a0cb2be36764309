"""
Bidirectional appointment synchronization between the Source scheduler and
the Target CRM calendars.

Public operations (`sync_*`, `resolve_conflict`, `handle_deletion`) never
raise: every failure becomes a failed SyncResult with an `error_type`.
The `push_*` methods are the raising building blocks they share with the
conflict resolver.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Set, Tuple, Union

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_bridge.core.config import Settings, get_settings
from appointment_bridge.core.timeutils import ensure_utc, isoformat_utc, utcnow
from appointment_bridge.schemas.appointment import SourceAppointment, TargetAppointment
from appointment_bridge.schemas.availability import AvailabilityResult
from appointment_bridge.schemas.sync import (
    ConflictStrategy,
    Platform,
    ReconciliationSummary,
    SyncAction,
    SyncDirection,
    SyncErrorType,
    SyncResult,
)
from appointment_bridge.schemas.tenant import IntegrationConfigRead
from appointment_bridge.services import conflict_resolver
from appointment_bridge.services.availability import AvailabilityChecker
from appointment_bridge.services.calendar_mapping import CalendarMappingTable
from appointment_bridge.services.errors import (
    AvailabilityConflictError,
    ConfigurationError,
    DataIntegrityError,
    FieldResolutionError,
    SyncError,
    SyncRecordNotFoundError,
)
from appointment_bridge.services.field_resolution import (
    BOOKING_ID_ALIASES,
    CREATED_TARGET_ID_ALIASES,
    LEAD_ID_ALIASES,
    QUOTE_ID_ALIASES,
    SOURCE_APPOINTMENT_ALIASES,
    normalize_source_appointment,
    normalize_target_appointment,
    resolve_id,
)
from appointment_bridge.services.appointment_mapper import (
    map_source_to_target,
    map_target_to_source,
)
from appointment_bridge.services.integration_settings import (
    require_location,
    require_sync_enabled,
)
from appointment_bridge.services.platform_client import PlatformClientError
from appointment_bridge.services.ports import SourcePort, TargetPort
from appointment_bridge.services.sync_state import SyncSnapshot, SyncStateStore
from appointment_bridge.services.tenant_guard import tenant_guard

logger = logging.getLogger(__name__)

SourceInput = Union[SourceAppointment, Mapping[str, Any]]
TargetInput = Union[TargetAppointment, Mapping[str, Any]]


def _as_source(appointment: SourceInput) -> SourceAppointment:
    if isinstance(appointment, SourceAppointment):
        return appointment
    return normalize_source_appointment(appointment)


def _as_target(appointment: TargetInput) -> TargetAppointment:
    if isinstance(appointment, TargetAppointment):
        return appointment
    return normalize_target_appointment(appointment)


def _is_newer(observed: Optional[datetime], recorded: Optional[datetime]) -> bool:
    """
    True only when the platform reports a modification strictly after the
    recorded one. An appointment without a modification time counts as
    unchanged so repeated passes do not churn.
    """
    if observed is None:
        return False
    if recorded is None:
        return True
    return ensure_utc(observed) > ensure_utc(recorded)


def _describe_conflicts(start: datetime, end: datetime, availability: AvailabilityResult) -> str:
    if not availability.conflicts:
        return (
            f"No resource available for {isoformat_utc(start)} - {isoformat_utc(end)}: "
            "availability could not be verified"
        )
    details = ", ".join(
        f"{c.resource_id}:{c.conflicting_slot.id} ({c.overlap_type.value})"
        for c in availability.conflicts
    )
    return (
        f"No resource available for {isoformat_utc(start)} - {isoformat_utc(end)}; "
        f"conflicting bookings: {details}"
    )


@dataclass
class _PassContext:
    """
    State shared by every push of one reconciliation pass.

    `snapshot` is read once; the handled sets bound each appointment to a
    single push per direction per pass.
    """

    tenant_id: str
    config: IntegrationConfigRead
    mappings: CalendarMappingTable
    snapshot: SyncSnapshot
    summary: ReconciliationSummary
    handled_source: Set[str] = field(default_factory=set)
    handled_target: Set[str] = field(default_factory=set)


class SyncEngine:
    def __init__(
        self,
        db: AsyncSession,
        source: SourcePort,
        target: TargetPort,
        settings: Optional[Settings] = None,
        availability: Optional[AvailabilityChecker] = None,
    ) -> None:
        self.db = db
        self.source = source
        self.target = target
        self.settings = settings or get_settings()
        self.store = SyncStateStore(db)
        self.availability = availability or AvailabilityChecker(source)

    # ------------------------------------------------------------------
    # Single appointment: Source -> Target
    # ------------------------------------------------------------------

    async def sync_source_to_target(
        self,
        appointment: SourceInput,
        tenant_id: str,
        calendar_id: Optional[str] = None,
    ) -> SyncResult:
        source_id = None
        try:
            appt = _as_source(appointment)
            source_id = appt.id
            config = await require_sync_enabled(self.db, tenant_id)
            return await self.push_source_to_target(appt, tenant_id, config, calendar_id=calendar_id)
        except Exception as exc:
            return await self._failure(exc, source_appointment_id=source_id)

    async def push_source_to_target(
        self,
        appointment: SourceAppointment,
        tenant_id: str,
        config: IntegrationConfigRead,
        *,
        calendar_id: Optional[str] = None,
        mappings: Optional[CalendarMappingTable] = None,
    ) -> SyncResult:
        location_id = require_location(config)

        record = await self.store.get_by_source_id(tenant_id, appointment.id)
        if record is not None and record.is_deleted:
            logger.info("Skipping Source appointment %s: link soft-deleted", appointment.id)
            return SyncResult(
                success=True,
                source_appointment_id=appointment.id,
                target_appointment_id=record.target_appointment_id,
                action=SyncAction.SKIPPED,
            )

        if mappings is None:
            mappings = await CalendarMappingTable.load(self.db, tenant_id)
        calendar = (
            calendar_id
            or mappings.calendar_for_resource(appointment.resource_id)
            or config.default_calendar_id
        )
        if not calendar:
            raise ConfigurationError(
                f"No Target calendar for resource '{appointment.resource_id}' "
                "and no default calendar configured"
            )

        payload = map_source_to_target(appointment)

        if record is not None and record.target_appointment_id:
            target_id = record.target_appointment_id
            await self.target.update_calendar_appointment(calendar, target_id, location_id, payload)
            action = SyncAction.UPDATED
        else:
            created = await self.target.create_calendar_appointment(calendar, location_id, payload)
            target_id = resolve_id(
                created, CREATED_TARGET_ID_ALIASES, field="target appointment id", required=False
            )
            if not target_id:
                raise DataIntegrityError(
                    f"Target created an appointment for Source {appointment.id} but returned no id"
                )
            action = SyncAction.CREATED

        await self.store.upsert(
            tenant_id,
            source_appointment_id=appointment.id,
            target_appointment_id=target_id,
            sync_direction=SyncDirection.SOURCE_TO_TARGET,
            conflict_resolution=config.conflict_resolution,
            source_last_modified=appointment.last_modified,
            target_last_modified=utcnow(),
            target_calendar_id=calendar,
            resource_id=appointment.resource_id,
            resource_assignee_id=appointment.assignee_id,
        )
        logger.info(
            "Source appointment %s %s on Target as %s (tenant %s)",
            appointment.id,
            action.value,
            target_id,
            tenant_id,
        )
        return SyncResult(
            success=True,
            source_appointment_id=appointment.id,
            target_appointment_id=target_id,
            action=action,
        )

    # ------------------------------------------------------------------
    # Single appointment: Target -> Source
    # ------------------------------------------------------------------

    async def sync_target_to_source(
        self,
        appointment: TargetInput,
        tenant_id: str,
        calendar_id: Optional[str] = None,
    ) -> SyncResult:
        target_id = None
        try:
            appt = _as_target(appointment)
            target_id = appt.id
            config = await require_sync_enabled(self.db, tenant_id)
            return await self.push_target_to_source(appt, tenant_id, config, calendar_id=calendar_id)
        except Exception as exc:
            return await self._failure(exc, target_appointment_id=target_id)

    async def push_target_to_source(
        self,
        appointment: TargetAppointment,
        tenant_id: str,
        config: IntegrationConfigRead,
        *,
        calendar_id: Optional[str] = None,
        mappings: Optional[CalendarMappingTable] = None,
    ) -> SyncResult:
        record = await self.store.get_by_target_id(tenant_id, appointment.id)
        if record is not None and record.is_deleted:
            logger.info("Skipping Target appointment %s: link soft-deleted", appointment.id)
            return SyncResult(
                success=True,
                source_appointment_id=record.source_appointment_id,
                target_appointment_id=appointment.id,
                action=SyncAction.SKIPPED,
            )

        if mappings is None:
            mappings = await CalendarMappingTable.load(self.db, tenant_id)
        calendar = calendar_id or appointment.calendar_id or config.default_calendar_id
        mapped_resource = mappings.resource_for_calendar(calendar)

        if record is not None and record.source_appointment_id:
            source_id = record.source_appointment_id
            resource_id = mapped_resource or record.resource_id
            await self._ensure_reschedulable(appointment, tenant_id, config, source_id)
            await self.source.update_appointment(
                source_id, map_target_to_source(appointment, resource_id), tenant_id
            )
            action = SyncAction.UPDATED
        else:
            source_id, resource_id = await self._book_on_source(
                appointment, tenant_id, config, mapped_resource
            )
            action = SyncAction.CREATED

        await self.store.upsert(
            tenant_id,
            source_appointment_id=source_id,
            target_appointment_id=appointment.id,
            sync_direction=SyncDirection.TARGET_TO_SOURCE,
            conflict_resolution=config.conflict_resolution,
            source_last_modified=utcnow(),
            target_last_modified=appointment.updated_at,
            target_calendar_id=calendar,
            resource_id=resource_id,
        )
        logger.info(
            "Target appointment %s %s on Source as %s (tenant %s)",
            appointment.id,
            action.value,
            source_id,
            tenant_id,
        )
        return SyncResult(
            success=True,
            source_appointment_id=source_id,
            target_appointment_id=appointment.id,
            action=action,
        )

    async def _ensure_reschedulable(
        self,
        appointment: TargetAppointment,
        tenant_id: str,
        config: IntegrationConfigRead,
        source_id: str,
    ) -> None:
        availability = await self.availability.check_availability(
            appointment.start_time,
            appointment.end_time,
            tenant_id,
            exclude_ids=[source_id],
            buffer_minutes=config.buffer_minutes,
        )
        if self._nothing_bookable(availability):
            raise AvailabilityConflictError(
                _describe_conflicts(appointment.start_time, appointment.end_time, availability),
                availability.conflicts,
            )

    @staticmethod
    def _nothing_bookable(availability: AvailabilityResult) -> bool:
        # A tenant without any resources and without conflicts may still
        # book unassigned; conflicts or a failed check with no free resource may not.
        return not availability.available_resources and not availability.available

    async def _book_on_source(
        self,
        appointment: TargetAppointment,
        tenant_id: str,
        config: IntegrationConfigRead,
        mapped_resource: Optional[str],
    ) -> Tuple[str, Optional[str]]:
        """
        Create a Source booking through Lead > Quote > CalculatePrice > BookQuote.

        The availability check runs after the quote exists and before the
        slot is priced; a pricing rejection is authoritative and aborts.
        Returns (source appointment id, assigned resource id or None).
        """
        if not appointment.email and not appointment.phone:
            raise FieldResolutionError(
                f"Target appointment {appointment.id} has neither email nor phone; "
                "cannot resolve a Source customer"
            )

        start = isoformat_utc(appointment.start_time)
        end = isoformat_utc(appointment.end_time)

        lead = await self.source.find_or_create_lead(
            {
                "FirstName": appointment.first_name or "Calendar",
                "LastName": appointment.last_name or "Customer",
                "Email": appointment.email,
                "Phone": appointment.phone,
                "PostalCode": appointment.postal_code or "00000",
            },
            tenant_id,
        )
        lead_id = resolve_id(lead, LEAD_ID_ALIASES, field="lead id", required=False)
        if not lead_id:
            raise DataIntegrityError("Source did not return a lead id for the customer")

        quote_payload = {
            key: value
            for key, value in {
                "LeadId": lead_id,
                "CustomerInformationId": lead.get("CustomerInformationId"),
                "HomeInformationId": lead.get("HomeInformationId"),
                "ServiceSetId": self.settings.DEFAULT_SERVICE_SET_ID,
                "ScopeGroupId": self.settings.DEFAULT_SCOPE_GROUP_ID,
                "FrequencyId": self.settings.DEFAULT_FREQUENCY_ID,
            }.items()
            if value is not None
        }
        quote = await self.source.create_quote(quote_payload, tenant_id)
        quote_id = resolve_id(quote, QUOTE_ID_ALIASES, field="quote id", required=False)
        if not quote_id:
            raise DataIntegrityError(f"Source did not return a quote id for lead {lead_id}")

        availability = await self.availability.check_availability(
            appointment.start_time,
            appointment.end_time,
            tenant_id,
            buffer_minutes=config.buffer_minutes,
        )
        if self._nothing_bookable(availability):
            raise AvailabilityConflictError(
                _describe_conflicts(appointment.start_time, appointment.end_time, availability),
                availability.conflicts,
            )

        resource_id = self._choose_resource(mapped_resource, availability, appointment.id)

        try:
            await self.source.calculate_price(
                {
                    **quote_payload,
                    "QuoteId": quote_id,
                    "Date": start,
                    "StartTime": start,
                    "EndTime": end,
                },
                tenant_id,
            )
        except PlatformClientError as exc:
            raise AvailabilityConflictError(f"Slot unavailable on Source: {exc}") from exc

        booking_payload = {
            "QuoteId": quote_id,
            "ServiceDate": start,
            "StartTime": start,
            "EndTime": end,
            "Notes": appointment.notes,
            "PaymentMethod": self.settings.DEFAULT_PAYMENT_METHOD,
        }
        if resource_id:
            booking_payload["TeamId"] = resource_id
        booking = await self.source.book_quote(booking_payload, tenant_id)

        source_id = resolve_id(booking, BOOKING_ID_ALIASES, field="booking id", required=False)
        if not source_id:
            logger.warning(
                "Booking for quote %s returned no appointment id; re-querying lead %s",
                quote_id,
                lead_id,
            )
            source_id = await self._recover_booking_id(
                tenant_id, lead_id, quote_id, appointment.start_time
            )
        if not source_id:
            raise DataIntegrityError(
                f"Booking finalized for quote {quote_id} but no Source appointment id could be recovered"
            )
        return source_id, resource_id

    @staticmethod
    def _choose_resource(
        mapped_resource: Optional[str],
        availability: AvailabilityResult,
        target_id: str,
    ) -> Optional[str]:
        free = [r.resource_id for r in availability.available_resources]
        if mapped_resource and mapped_resource in free:
            return mapped_resource
        if mapped_resource:
            logger.warning(
                "Mapped resource %s is busy for Target appointment %s; using another free resource",
                mapped_resource,
                target_id,
            )
        if free:
            return free[0]
        logger.warning("No resource resolved for Target appointment %s; booking unassigned", target_id)
        return None

    async def _recover_booking_id(
        self,
        tenant_id: str,
        lead_id: str,
        quote_id: str,
        start: datetime,
    ) -> Optional[str]:
        recent = await self.source.list_appointments(
            tenant_id,
            {"leadId": lead_id, "startDate": start.date().isoformat()},
        )
        for raw in recent:
            if str(raw.get("QuoteId")) == str(quote_id):
                return resolve_id(
                    raw, SOURCE_APPOINTMENT_ALIASES["id"], field="appointment id", required=False
                )
        return None

    # ------------------------------------------------------------------
    # Conflict resolution and deletion
    # ------------------------------------------------------------------

    async def resolve_conflict(
        self,
        source_appointment: SourceInput,
        target_appointment: TargetInput,
        strategy: Optional[ConflictStrategy],
        tenant_id: str,
    ) -> SyncResult:
        source_id = target_id = None
        try:
            source_appt = _as_source(source_appointment)
            target_appt = _as_target(target_appointment)
            source_id, target_id = source_appt.id, target_appt.id
            config = await require_sync_enabled(self.db, tenant_id)
            return await conflict_resolver.resolve_conflict(
                self, source_appt, target_appt, strategy, tenant_id, config
            )
        except Exception as exc:
            return await self._failure(
                exc, source_appointment_id=source_id, target_appointment_id=target_id
            )

    async def handle_deletion(
        self,
        side: Platform,
        appointment_id: str,
        tenant_id: str,
    ) -> SyncResult:
        """
        Record that an appointment was cancelled/deleted on `side`.

        Only the link is soft-deleted; nothing is removed on the other platform.
        """
        side = Platform(side)
        ids = (
            {"source_appointment_id": str(appointment_id)}
            if side == Platform.SOURCE
            else {"target_appointment_id": str(appointment_id)}
        )
        try:
            record = await self.store.mark_deleted(tenant_id, side, str(appointment_id))
            if record is None:
                raise SyncRecordNotFoundError(
                    f"No sync record for {side.value} appointment {appointment_id}"
                )
        except Exception as exc:
            return await self._failure(exc, **ids)

        logger.info(
            "Soft-deleted link %s <-> %s after deletion on %s (tenant %s)",
            record.source_appointment_id,
            record.target_appointment_id,
            side.value,
            tenant_id,
        )
        return SyncResult(
            success=True,
            source_appointment_id=record.source_appointment_id,
            target_appointment_id=record.target_appointment_id,
            action=SyncAction.DELETED,
        )

    # ------------------------------------------------------------------
    # Full reconciliation
    # ------------------------------------------------------------------

    async def sync_all_appointments(self, tenant_id: str) -> ReconciliationSummary:
        """
        Reconcile every appointment of the tenant in the lookback + future window.

        Routes through the per-resource variant when enabled mappings exist.
        """
        async with tenant_guard.hold(tenant_id):
            summary = ReconciliationSummary(tenant_id=tenant_id)
            try:
                ctx = await self._start_pass(tenant_id, summary)
                if ctx.mappings:
                    await self._reconcile_teams(ctx)
                else:
                    await self._reconcile_default_calendar(ctx)
            except Exception as exc:
                summary.add(await self._failure(exc))
                summary.message = str(exc)
            return self._finish(summary)

    async def sync_all_teams_appointments(self, tenant_id: str) -> ReconciliationSummary:
        async with tenant_guard.hold(tenant_id):
            summary = ReconciliationSummary(tenant_id=tenant_id)
            try:
                ctx = await self._start_pass(tenant_id, summary)
                if not ctx.mappings:
                    summary.message = "No enabled resource-calendar mappings"
                    return summary
                await self._reconcile_teams(ctx)
            except Exception as exc:
                summary.add(await self._failure(exc))
                summary.message = str(exc)
            return self._finish(summary)

    async def _start_pass(self, tenant_id: str, summary: ReconciliationSummary) -> _PassContext:
        config = await require_sync_enabled(self.db, tenant_id)
        require_location(config)
        mappings = await CalendarMappingTable.load(self.db, tenant_id)
        snapshot = await self.store.snapshot(tenant_id)
        return _PassContext(
            tenant_id=tenant_id,
            config=config,
            mappings=mappings,
            snapshot=snapshot,
            summary=summary,
        )

    def _window(self) -> Dict[str, Any]:
        since = utcnow() - timedelta(days=self.settings.RECONCILIATION_LOOKBACK_DAYS)
        return {"startDate": since.date().isoformat()}

    async def _reconcile_default_calendar(self, ctx: _PassContext) -> None:
        calendar_id = ctx.config.default_calendar_id
        if not calendar_id:
            raise ConfigurationError("No default Target calendar configured")

        window = self._window()
        raw_source, raw_target = await asyncio.gather(
            self.source.list_appointments(ctx.tenant_id, window),
            self.target.list_calendar_appointments(
                calendar_id, ctx.config.target_location_id, window
            ),
        )
        await self._reconcile_batch(ctx, raw_source, raw_target, calendar_id)

    async def _reconcile_teams(self, ctx: _PassContext) -> None:
        window = self._window()
        for mapping in ctx.mappings.enabled_mappings():
            resource_id = mapping.resource_id
            calendar_id = mapping.target_calendar_id
            try:
                raw_source, raw_target = await asyncio.gather(
                    self.source.list_resource_appointments(resource_id, ctx.tenant_id, window),
                    self.target.list_calendar_appointments(
                        calendar_id, ctx.config.target_location_id, window
                    ),
                )
            except Exception as exc:
                ctx.summary.add(await self._failure(exc))
                continue

            await self._reconcile_batch(
                ctx, raw_source, raw_target, calendar_id, resource_id=resource_id
            )

    async def _reconcile_batch(
        self,
        ctx: _PassContext,
        raw_source: List[Dict[str, Any]],
        raw_target: List[Dict[str, Any]],
        calendar_id: str,
        resource_id: Optional[str] = None,
    ) -> None:
        targets: Dict[str, TargetAppointment] = {}
        target_order: List[str] = []
        for raw in raw_target:
            try:
                appt = normalize_target_appointment(raw)
            except FieldResolutionError as exc:
                ctx.summary.add(await self._failure(exc))
                continue
            if appt.calendar_id is None:
                appt = appt.model_copy(update={"calendar_id": calendar_id})
            targets[appt.id] = appt
            target_order.append(appt.id)

        for raw in raw_source:
            try:
                appt = normalize_source_appointment(raw)
            except FieldResolutionError as exc:
                ctx.summary.add(await self._failure(exc))
                continue
            if appt.resource_id is None and resource_id is not None:
                appt = appt.model_copy(update={"resource_id": resource_id})
            if appt.id in ctx.handled_source:
                continue

            view = ctx.snapshot.by_source.get(appt.id)
            if view is not None and (
                view.is_deleted or not _is_newer(appt.last_modified, view.source_last_modified)
            ):
                continue

            counterpart = targets.get(view.target_appointment_id) if view is not None else None
            if counterpart is not None and _is_newer(counterpart.updated_at, view.target_last_modified):
                ctx.handled_target.add(counterpart.id)
                result = await self._isolated(
                    conflict_resolver.resolve_conflict(
                        self, appt, counterpart, ctx.config.conflict_resolution, ctx.tenant_id, ctx.config
                    ),
                    source_appointment_id=appt.id,
                    target_appointment_id=counterpart.id,
                )
            else:
                result = await self._isolated(
                    self.push_source_to_target(
                        appt, ctx.tenant_id, ctx.config, calendar_id=calendar_id, mappings=ctx.mappings
                    ),
                    source_appointment_id=appt.id,
                )
            ctx.handled_source.add(appt.id)
            ctx.summary.add(result)

        for target_id in target_order:
            if target_id in ctx.handled_target:
                continue
            appt = targets[target_id]

            view = ctx.snapshot.by_target.get(target_id)
            if view is not None and (
                view.is_deleted or not _is_newer(appt.updated_at, view.target_last_modified)
            ):
                continue

            result = await self._isolated(
                self.push_target_to_source(
                    appt, ctx.tenant_id, ctx.config, calendar_id=calendar_id, mappings=ctx.mappings
                ),
                target_appointment_id=target_id,
            )
            ctx.handled_target.add(target_id)
            ctx.summary.add(result)

    async def _isolated(self, push: Awaitable[SyncResult], **ids: Optional[str]) -> SyncResult:
        """
        Run one push with the per-item timeout; any failure stays with this item.
        """
        timeout = self.settings.SYNC_ITEM_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(push, timeout=timeout)
        except asyncio.TimeoutError:
            await self.store.rollback()
            logger.warning("Appointment push %s timed out after %ss", ids, timeout)
            return SyncResult.failure(
                f"Sync timed out after {timeout}s",
                SyncErrorType.TIMEOUT,
                **ids,
            )
        except Exception as exc:
            return await self._failure(exc, **ids)

    @staticmethod
    def _finish(summary: ReconciliationSummary) -> ReconciliationSummary:
        if summary.message is None:
            summary.message = f"Synced {summary.synced} appointments, {summary.errors} errors"
        logger.info("Reconciliation for tenant %s: %s", summary.tenant_id, summary.message)
        return summary

    # ------------------------------------------------------------------
    # Failure mapping
    # ------------------------------------------------------------------

    async def _failure(self, exc: Exception, **ids: Optional[str]) -> SyncResult:
        await self.store.rollback()

        if isinstance(exc, AvailabilityConflictError):
            logger.warning("Availability conflict: %s", exc)
            return SyncResult.failure(
                str(exc), exc.error_type, conflicts=exc.conflicts, **ids
            )
        if isinstance(exc, (ConfigurationError, FieldResolutionError, SyncRecordNotFoundError)):
            logger.warning("%s: %s", exc.error_type.value, exc)
            return SyncResult.failure(str(exc), exc.error_type, **ids)
        if isinstance(exc, SyncError):
            logger.error("%s: %s", exc.error_type.value, exc)
            return SyncResult.failure(str(exc), exc.error_type, **ids)
        if isinstance(exc, PlatformClientError):
            logger.error("Upstream platform error: %s", exc)
            error_type = (
                SyncErrorType.TIMEOUT
                if isinstance(exc.__cause__, httpx.TimeoutException)
                else SyncErrorType.UPSTREAM
            )
            return SyncResult.failure(str(exc), error_type, **ids)

        logger.exception("Unexpected sync failure")
        return SyncResult.failure(f"Unexpected error: {exc}", SyncErrorType.UPSTREAM, **ids)


def build_sync_engine(db: AsyncSession) -> SyncEngine:
    """
    Engine wired to the shared Source/Target clients from settings.
    """
    from appointment_bridge.services.source_client import get_source_client
    from appointment_bridge.services.target_client import get_target_client

    return SyncEngine(db, get_source_client(), get_target_client())
