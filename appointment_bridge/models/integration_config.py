from sqlalchemy import Boolean, Column, DateTime, Integer, String

from appointment_bridge.core.timeutils import utcnow
from appointment_bridge.db.base import Base


class IntegrationConfig(Base):
    """
    Per-tenant integration settings (one row per tenant).
    """

    __tablename__ = "integration_configs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(128), nullable=False, unique=True, index=True)

    enabled = Column(Boolean, nullable=False, default=False)
    sync_appointments = Column(Boolean, nullable=False, default=False)

    target_location_id = Column(String(128), nullable=True)
    default_calendar_id = Column(String(128), nullable=True)

    conflict_resolution = Column(String(32), nullable=False, default="most_recent_wins")
    buffer_minutes = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<IntegrationConfig tenant={self.tenant_id} enabled={self.enabled} "
            f"sync_appointments={self.sync_appointments}>"
        )
