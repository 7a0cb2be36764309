from sqlalchemy import Boolean, Column, DateTime, Integer, String

from appointment_bridge.core.timeutils import utcnow
from appointment_bridge.db.base import Base


class ResourceCalendarMapping(Base):
    """
    Routes a Source team/crew to the Target calendar its bookings belong on.

    Owned by configuration; the sync subsystem only reads it. At most one
    enabled row per (tenant_id, resource_id) is kept by the write path.
    """

    __tablename__ = "resource_calendar_mappings"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(128), nullable=False, index=True)

    resource_id = Column(String(128), nullable=False, index=True)
    resource_name = Column(String(255), nullable=True)
    target_calendar_id = Column(String(128), nullable=False, index=True)
    target_calendar_name = Column(String(255), nullable=True)

    enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<ResourceCalendarMapping id={self.id} resource={self.resource_id} "
            f"calendar={self.target_calendar_id} enabled={self.enabled}>"
        )
