from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)

from appointment_bridge.core.timeutils import utcnow
from appointment_bridge.db.base import Base
from appointment_bridge.schemas.sync import SyncLink, link_from_ids


class SyncRecord(Base):
    """
    Durable link between one Source appointment and one Target appointment.

    Created on the first successful push in either direction, updated on
    every later push or conflict resolution. Rows are never hard-deleted;
    a cancellation seen on one side stamps `deleted_at`/`deleted_side`.
    """

    __tablename__ = "sync_records"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(128), nullable=False, index=True)

    source_appointment_id = Column(String(128), nullable=True, index=True)
    target_appointment_id = Column(String(128), nullable=True, index=True)
    target_calendar_id = Column(String(128), nullable=True)
    resource_id = Column(String(128), nullable=True)
    resource_assignee_id = Column(String(128), nullable=True)

    source_last_modified = Column(DateTime(timezone=True), nullable=True)
    target_last_modified = Column(DateTime(timezone=True), nullable=True)

    sync_direction = Column(String(32), nullable=False, default="bidirectional")
    conflict_resolution = Column(String(32), nullable=False, default="most_recent_wins")

    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_side = Column(String(16), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "source_appointment_id",
            name="uq_sync_records_tenant_source",
        ),
        UniqueConstraint(
            "tenant_id",
            "target_appointment_id",
            name="uq_sync_records_tenant_target",
        ),
        CheckConstraint(
            "source_appointment_id IS NOT NULL OR target_appointment_id IS NOT NULL",
            name="ck_sync_records_has_id",
        ),
    )

    @property
    def link(self) -> SyncLink:
        return link_from_ids(self.source_appointment_id, self.target_appointment_id)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return (
            f"<SyncRecord id={self.id} tenant={self.tenant_id} "
            f"source={self.source_appointment_id} target={self.target_appointment_id} "
            f"direction={self.sync_direction}>"
        )
