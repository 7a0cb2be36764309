from __future__ import annotations

from typing import Any, Dict, List, Optional

from appointment_bridge.core.config import get_settings
from appointment_bridge.services.platform_client import PlatformClient, PlatformClientError


class TargetClientError(PlatformClientError):
    """
    Raised when the Target CRM calendar API rejects a call or cannot be reached.
    """


class TargetClient(PlatformClient):
    """
    Client for the Target CRM calendar API.

    Uses a static private integration token; every request carries the
    API `Version` header the platform requires.
    """

    error_class = TargetClientError
    platform_name = "Target"

    def __init__(
        self,
        base_url: str,
        token: str,
        api_version: str = "2021-04-15",
        timeout_seconds: float = 30.0,
    ) -> None:
        if not token or not token.strip():
            raise ValueError("token is required")
        super().__init__(base_url, timeout_seconds)
        self._token = token
        self._api_version = api_version

    async def get_access_token(self) -> str:
        return self._token

    def extra_headers(self) -> Dict[str, str]:
        return {"Version": self._api_version}

    async def list_calendar_appointments(
        self,
        calendar_id: str,
        location_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        params = {"calendarId": calendar_id, "locationId": location_id, **(filters or {})}
        payload = await self.get_json("/calendars/events", params=params)
        if isinstance(payload, list):
            return payload
        events = payload.get("events") or payload.get("appointments") or []
        return events if isinstance(events, list) else []

    async def create_calendar_appointment(
        self,
        calendar_id: str,
        location_id: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        body = {**payload, "calendarId": calendar_id, "locationId": location_id}
        return await self.post_json("/calendars/events/appointments", json=body)

    async def update_calendar_appointment(
        self,
        calendar_id: str,
        appointment_id: str,
        location_id: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        body = {**payload, "calendarId": calendar_id, "locationId": location_id}
        return await self.put_json(f"/calendars/events/appointments/{appointment_id}", json=body)


_target_client_instance: Optional[TargetClient] = None


def get_target_client() -> TargetClient:
    """
    Lazily construct the shared TargetClient from application settings.
    """
    global _target_client_instance
    if _target_client_instance is None:
        settings = get_settings()
        if not settings.TARGET_API_BASE_URL or not settings.TARGET_API_TOKEN:
            raise TargetClientError(
                "TARGET_API_BASE_URL and TARGET_API_TOKEN must be configured in "
                "settings to use the shared Target client."
            )
        _target_client_instance = TargetClient(
            base_url=str(settings.TARGET_API_BASE_URL),
            token=settings.TARGET_API_TOKEN,
            api_version=settings.TARGET_API_VERSION,
            timeout_seconds=settings.PLATFORM_TIMEOUT_SECONDS,
        )
    return _target_client_instance
