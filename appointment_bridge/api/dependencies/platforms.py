from http import HTTPStatus

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_bridge.db.session import get_db
from appointment_bridge.services.availability import AvailabilityChecker
from appointment_bridge.services.platform_client import PlatformClientError
from appointment_bridge.services.ports import SourcePort, TargetPort
from appointment_bridge.services.source_client import get_source_client
from appointment_bridge.services.sync_engine import SyncEngine
from appointment_bridge.services.target_client import get_target_client


def get_source_port() -> SourcePort:
    """
    Shared Source client; overridden with fakes in tests.
    """
    try:
        return get_source_client()
    except (PlatformClientError, ValueError) as exc:
        raise HTTPException(status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def get_target_port() -> TargetPort:
    try:
        return get_target_client()
    except (PlatformClientError, ValueError) as exc:
        raise HTTPException(status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def get_availability_checker(
    source: SourcePort = Depends(get_source_port),
) -> AvailabilityChecker:
    return AvailabilityChecker(source)


def get_sync_engine(
    db: AsyncSession = Depends(get_db),
    source: SourcePort = Depends(get_source_port),
    target: TargetPort = Depends(get_target_port),
) -> SyncEngine:
    return SyncEngine(db, source, target)
