from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from appointment_bridge.core.config import Settings, get_settings


router = APIRouter(tags=["Health"])


class PlatformStatus(BaseModel):
    source_configured: bool = Field(
        ...,
        description="Source base URL and credentials are present in settings.",
    )
    target_configured: bool = Field(
        ...,
        description="Target base URL and private token are present in settings.",
    )


class HealthResponse(BaseModel):
    status: str = Field(..., examples=["ok"])
    app_name: str = Field(..., examples=["Appointment Bridge"])
    environment: str = Field(..., description="local/dev/stage/prod", examples=["local"])
    platforms: PlatformStatus
    timestamp_utc: datetime = Field(..., examples=["2025-01-01T10:30:00Z"])


def _platform_status(settings: Settings) -> PlatformStatus:
    return PlatformStatus(
        source_configured=bool(
            settings.SOURCE_API_BASE_URL and settings.SOURCE_USERNAME and settings.SOURCE_PASSWORD
        ),
        target_configured=bool(settings.TARGET_API_BASE_URL and settings.TARGET_API_TOKEN),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check for the appointment bridge",
    description=(
        "Reports whether each platform is configured, based on settings only.\n\n"
        "Neither platform nor the database is called, so the check stays green "
        "while an upstream is degraded; sync failures surface per appointment instead."
    ),
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        platforms=_platform_status(settings),
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
