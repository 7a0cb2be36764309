from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_bridge.core.timeutils import ensure_utc, utcnow
from appointment_bridge.models.sync_record import SyncRecord
from appointment_bridge.schemas.sync import ConflictStrategy, Platform, SyncDirection


@dataclass(frozen=True)
class RecordView:
    """
    Frozen copy of a SyncRecord's decision-relevant fields.

    ORM rows live in the session identity map and are refreshed by every
    upsert, so a pass snapshot must hold copies rather than the rows.
    """

    source_appointment_id: Optional[str]
    target_appointment_id: Optional[str]
    target_calendar_id: Optional[str]
    source_last_modified: Optional[datetime]
    target_last_modified: Optional[datetime]
    is_deleted: bool

    @classmethod
    def of(cls, record: SyncRecord) -> "RecordView":
        return cls(
            source_appointment_id=record.source_appointment_id,
            target_appointment_id=record.target_appointment_id,
            target_calendar_id=record.target_calendar_id,
            source_last_modified=ensure_utc(record.source_last_modified),
            target_last_modified=ensure_utc(record.target_last_modified),
            is_deleted=record.deleted_at is not None,
        )


@dataclass
class SyncSnapshot:
    """
    Read-once view of a tenant's SyncRecords for one reconciliation pass.

    Both directions of a pass decide against this snapshot, so a record
    written by the Source loop is not re-read by the Target loop.
    """

    by_source: Dict[str, RecordView] = field(default_factory=dict)
    by_target: Dict[str, RecordView] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: List[SyncRecord]) -> "SyncSnapshot":
        snapshot = cls()
        for record in records:
            view = RecordView.of(record)
            if view.source_appointment_id:
                snapshot.by_source[view.source_appointment_id] = view
            if view.target_appointment_id:
                snapshot.by_target[view.target_appointment_id] = view
        return snapshot


class SyncStateStore:
    """
    Durable store of SyncRecords, scoped per tenant.

    All writes are upserts keyed by the natural id pair, so replaying the
    same push twice leaves exactly one row behind.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_source_id(self, tenant_id: str, source_id: str) -> Optional[SyncRecord]:
        result = await self.db.execute(
            select(SyncRecord).where(
                SyncRecord.tenant_id == tenant_id,
                SyncRecord.source_appointment_id == str(source_id),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_target_id(self, tenant_id: str, target_id: str) -> Optional[SyncRecord]:
        result = await self.db.execute(
            select(SyncRecord).where(
                SyncRecord.tenant_id == tenant_id,
                SyncRecord.target_appointment_id == str(target_id),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_pair(
        self,
        tenant_id: str,
        source_id: str,
        target_id: str,
    ) -> Optional[SyncRecord]:
        result = await self.db.execute(
            select(SyncRecord).where(
                SyncRecord.tenant_id == tenant_id,
                SyncRecord.source_appointment_id == str(source_id),
                SyncRecord.target_appointment_id == str(target_id),
            )
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(self, tenant_id: str) -> List[SyncRecord]:
        result = await self.db.execute(
            select(SyncRecord)
            .where(SyncRecord.tenant_id == tenant_id)
            .order_by(SyncRecord.id.asc())
        )
        return list(result.scalars().all())

    async def snapshot(self, tenant_id: str) -> SyncSnapshot:
        return SyncSnapshot.from_records(await self.list_for_tenant(tenant_id))

    async def upsert(
        self,
        tenant_id: str,
        *,
        source_appointment_id: Optional[str],
        target_appointment_id: Optional[str],
        sync_direction: SyncDirection,
        conflict_resolution: ConflictStrategy,
        source_last_modified: Optional[datetime] = None,
        target_last_modified: Optional[datetime] = None,
        target_calendar_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        resource_assignee_id: Optional[str] = None,
    ) -> SyncRecord:
        """
        Insert or update the record matching either id.

        Matching by either id (not only the full pair) is what keeps one
        row per Source appointment when the Target side is filled in later.
        """
        if not source_appointment_id and not target_appointment_id:
            raise ValueError("A SyncRecord needs at least one appointment id")

        conditions = []
        if source_appointment_id:
            conditions.append(SyncRecord.source_appointment_id == str(source_appointment_id))
        if target_appointment_id:
            conditions.append(SyncRecord.target_appointment_id == str(target_appointment_id))

        result = await self.db.execute(
            select(SyncRecord)
            .where(SyncRecord.tenant_id == tenant_id, or_(*conditions))
            .order_by(SyncRecord.id.asc())
        )
        record = result.scalars().first()

        if record is None:
            record = SyncRecord(tenant_id=tenant_id)
            self.db.add(record)

        if source_appointment_id:
            record.source_appointment_id = str(source_appointment_id)
        if target_appointment_id:
            record.target_appointment_id = str(target_appointment_id)
        if target_calendar_id:
            record.target_calendar_id = str(target_calendar_id)
        if resource_id:
            record.resource_id = str(resource_id)
        if resource_assignee_id:
            record.resource_assignee_id = str(resource_assignee_id)

        record.source_last_modified = source_last_modified or utcnow()
        record.target_last_modified = target_last_modified or utcnow()
        record.sync_direction = SyncDirection(sync_direction).value
        record.conflict_resolution = ConflictStrategy(conflict_resolution).value

        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def mark_reconciled(
        self,
        record: SyncRecord,
        direction: SyncDirection,
        strategy: ConflictStrategy,
    ) -> SyncRecord:
        """
        Stamp both sides as modified "now" after a conflict resolution push.
        """
        now = utcnow()
        record.source_last_modified = now
        record.target_last_modified = now
        record.sync_direction = SyncDirection(direction).value
        record.conflict_resolution = ConflictStrategy(strategy).value
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def mark_deleted(
        self,
        tenant_id: str,
        side: Platform,
        appointment_id: str,
    ) -> Optional[SyncRecord]:
        """
        Soft-delete the record linked to an appointment removed on `side`.

        Returns None when the appointment was never linked.
        """
        if side == Platform.SOURCE:
            record = await self.get_by_source_id(tenant_id, appointment_id)
        else:
            record = await self.get_by_target_id(tenant_id, appointment_id)

        if record is None:
            return None

        if record.deleted_at is None:
            record.deleted_at = utcnow()
            record.deleted_side = Platform(side).value
            await self.db.commit()
            await self.db.refresh(record)
        return record

    async def rollback(self) -> None:
        await self.db.rollback()
