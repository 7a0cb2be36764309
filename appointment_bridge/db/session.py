import os
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from appointment_bridge.core.config import get_settings
from appointment_bridge.db.base import Base

# Import ORM models so that Base.metadata is aware of them
from appointment_bridge.models.integration_config import IntegrationConfig  # noqa: F401
from appointment_bridge.models.resource_calendar_mapping import ResourceCalendarMapping  # noqa: F401
from appointment_bridge.models.sync_record import SyncRecord  # noqa: F401

settings = get_settings()

# Detect if we're running under pytest
IS_TEST = "PYTEST_CURRENT_TEST" in os.environ


def build_engine(db_url: str, *, pooled: bool = True) -> AsyncEngine:
    """
    Async engine for `db_url`.

    Unpooled engines open a fresh connection per session, which keeps
    connections from leaking across event loops (pytest, TestClient).
    """
    return create_async_engine(
        db_url,
        echo=False,
        poolclass=None if pooled else NullPool,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Reconciliation keeps using rows after commit, so they must not expire.
    return async_sessionmaker(
        bind=bind,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


engine = build_engine(settings.DB_URL, pooled=not IS_TEST)
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_db_for_startup() -> None:
    """
    Create any missing tables (sync_records, resource_calendar_mappings,
    integration_configs) on application startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
