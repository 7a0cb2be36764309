from contextlib import asynccontextmanager

from fastapi import FastAPI

from appointment_bridge.api.routes import availability, health, internal, sync, tenants, webhooks
from appointment_bridge.core.config import get_settings
from appointment_bridge.core.logging import configure_logging
from appointment_bridge.db.session import init_db_for_startup


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover
    await init_db_for_startup()
    yield


def create_app() -> FastAPI:
    """
    Application factory for the Appointment Bridge service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Keeps appointments in sync between the Source field-service scheduler\n"
            "and the Target CRM calendars: per-appointment pushes, webhook intake,\n"
            "scheduled full reconciliation and cross-resource availability checks."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Routers
    app.include_router(health.router)
    app.include_router(internal.router)
    app.include_router(sync.router)
    app.include_router(webhooks.router)
    app.include_router(availability.router)
    app.include_router(tenants.router)

    return app


app = create_app()
