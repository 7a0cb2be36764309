from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from appointment_bridge.core.timeutils import ensure_utc
from appointment_bridge.schemas.appointment import SourceAppointment, TargetAppointment
from appointment_bridge.schemas.sync import (
    ConflictStrategy,
    Platform,
    SyncAction,
    SyncDirection,
    SyncResult,
)
from appointment_bridge.schemas.tenant import IntegrationConfigRead
from appointment_bridge.services.errors import SyncRecordNotFoundError

if TYPE_CHECKING:
    from appointment_bridge.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def pick_winning_side(
    strategy: ConflictStrategy,
    source_modified: Optional[datetime],
    target_modified: Optional[datetime],
) -> Platform:
    """
    Decide which side's data is pushed to the other.

    most_recent_wins compares the two timestamps (missing = epoch) and
    picks the strictly newer side. Ties push to Target.
    """
    strategy = ConflictStrategy(strategy)
    if strategy == ConflictStrategy.SOURCE_WINS:
        return Platform.SOURCE
    if strategy == ConflictStrategy.TARGET_WINS:
        return Platform.TARGET

    source_at = source_modified or EPOCH
    target_at = target_modified or EPOCH
    if ensure_utc(target_at) > ensure_utc(source_at):
        return Platform.TARGET
    return Platform.SOURCE


async def resolve_conflict(
    engine: "SyncEngine",
    source_appointment: SourceAppointment,
    target_appointment: TargetAppointment,
    strategy: Optional[ConflictStrategy],
    tenant_id: str,
    config: IntegrationConfigRead,
) -> SyncResult:
    """
    Reconcile an already linked pair that diverged.

    most_recent_wins compares the two timestamps stamped on the SyncRecord,
    not the times the appointments report about themselves.
    After the push both timestamps on the record are set to "now".

    Raises SyncRecordNotFoundError when the two appointments are not linked;
    the engine turns every exception into a failed SyncResult.
    """
    record = await engine.store.get_by_pair(
        tenant_id, source_appointment.id, target_appointment.id
    )
    if record is None:
        raise SyncRecordNotFoundError(
            f"No sync record links Source appointment {source_appointment.id} "
            f"and Target appointment {target_appointment.id}"
        )

    if record.is_deleted:
        return SyncResult(
            success=True,
            source_appointment_id=source_appointment.id,
            target_appointment_id=target_appointment.id,
            action=SyncAction.SKIPPED,
        )

    effective = ConflictStrategy(strategy or record.conflict_resolution)
    winner = pick_winning_side(
        effective,
        record.source_last_modified,
        record.target_last_modified,
    )
    logger.info(
        "Resolving conflict %s <-> %s for tenant %s with %s: %s wins",
        source_appointment.id,
        target_appointment.id,
        tenant_id,
        effective.value,
        winner.value,
    )

    if winner == Platform.SOURCE:
        await engine.push_source_to_target(
            source_appointment,
            tenant_id,
            config,
            calendar_id=record.target_calendar_id or target_appointment.calendar_id,
        )
        direction = SyncDirection.SOURCE_TO_TARGET
    else:
        await engine.push_target_to_source(
            target_appointment,
            tenant_id,
            config,
            calendar_id=record.target_calendar_id or target_appointment.calendar_id,
        )
        direction = SyncDirection.TARGET_TO_SOURCE

    # The push above committed and refreshed the same identity-mapped row.
    await engine.store.mark_reconciled(record, direction, effective)

    return SyncResult(
        success=True,
        source_appointment_id=source_appointment.id,
        target_appointment_id=target_appointment.id,
        action=SyncAction.UPDATED,
    )
