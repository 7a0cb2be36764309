# tests/conftest.py
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker

from appointment_bridge.db.base import Base
from appointment_bridge.db.session import build_engine, build_session_factory
from appointment_bridge.models.integration_config import IntegrationConfig  # noqa: F401
from appointment_bridge.models.resource_calendar_mapping import ResourceCalendarMapping  # noqa: F401
from appointment_bridge.models.sync_record import SyncRecord  # noqa: F401
from appointment_bridge.schemas.sync import ConflictStrategy
from appointment_bridge.schemas.tenant import IntegrationConfigUpdate, ResourceCalendarMappingWrite
from appointment_bridge.services.calendar_mapping import upsert_mapping
from appointment_bridge.services.integration_settings import upsert_integration_config
from appointment_bridge.services.sync_engine import SyncEngine
from fakes import TENANT, FakeSource, FakeTarget


@pytest.fixture
def db_url(tmp_path) -> str:
    """
    Fresh SQLite file per test, schema created with a sync engine so the
    fixture works for both async tests and TestClient-based tests.
    """
    path = tmp_path / "bridge.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def session_factory(db_url) -> async_sessionmaker:
    return build_session_factory(build_engine(db_url, pooled=False))


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def target() -> FakeTarget:
    return FakeTarget()


@pytest.fixture
def engine(db_session, source, target) -> SyncEngine:
    return SyncEngine(db_session, source, target)


@pytest.fixture
def configure_tenant(db_session):
    async def _configure(tenant_id: str = TENANT, **overrides: Any):
        values = {
            "enabled": True,
            "sync_appointments": True,
            "target_location_id": "loc-1",
            "default_calendar_id": "cal-default",
            "conflict_resolution": ConflictStrategy.MOST_RECENT_WINS,
            "buffer_minutes": 0,
            **overrides,
        }
        return await upsert_integration_config(db_session, tenant_id, IntegrationConfigUpdate(**values))

    return _configure


@pytest.fixture
def add_mapping(db_session):
    async def _add(resource_id: str, calendar_id: str, tenant_id: str = TENANT, enabled: bool = True):
        return await upsert_mapping(
            db_session,
            tenant_id,
            ResourceCalendarMappingWrite(
                resource_id=resource_id,
                target_calendar_id=calendar_id,
                enabled=enabled,
            ),
        )

    return _add


@pytest.fixture
def client(session_factory, source, target):
    """
    TestClient wired to the per-test database and the in-memory platforms.

    Used without a `with` block so the startup hook never touches the
    configured DATABASE_URL.
    """
    from fastapi.testclient import TestClient

    from appointment_bridge.api.dependencies.platforms import get_source_port, get_target_port
    from appointment_bridge.db.session import get_db
    from appointment_bridge.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_source_port] = lambda: source
    app.dependency_overrides[get_target_port] = lambda: target
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
