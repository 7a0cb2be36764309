from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from appointment_bridge.core.config import get_settings
from appointment_bridge.services.field_resolution import LEAD_ID_ALIASES, resolve_id
from appointment_bridge.services.platform_client import PlatformClient, PlatformClientError


class SourceClientError(PlatformClientError):
    """
    Raised when the Source scheduling API rejects a call or cannot be reached.
    """


@dataclass
class _TokenState:
    access_token: str
    expires_at: datetime


def _as_list(payload: Any, *keys: str) -> List[Dict[str, Any]]:
    """
    The Source API wraps collections inconsistently (`Result`, `data`, bare list).
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def _unwrap(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict) and isinstance(payload.get("Result"), dict):
        return payload["Result"]
    return payload if isinstance(payload, dict) else {}


class SourceClient(PlatformClient):
    """
    Client for the Source field-service scheduling API.

    Authentication uses the password grant against `/token`; the token is
    cached in-memory until shortly before it expires.
    """

    error_class = SourceClientError
    platform_name = "Source"

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not username or not password:
            raise ValueError("username and password are required")
        super().__init__(base_url, timeout_seconds)
        self._username = username
        self._password = password
        self._token_state: Optional[_TokenState] = None

    async def _fetch_token(self) -> _TokenState:
        data = {
            "username": self._username,
            "password": self._password,
            "grant_type": "password",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(self._url("/token"), data=data)
        except httpx.HTTPError as exc:
            raise SourceClientError(f"Source authentication failed: {exc}") from exc

        if resp.status_code != 200:
            raise SourceClientError(
                f"Failed to obtain Source token (status={resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )

        payload = resp.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise SourceClientError("Invalid token response from Source (missing access_token)")

        expires_in = payload.get("expires_in")
        if not isinstance(expires_in, (int, float)):
            expires_in = 3600

        # Refresh a minute early to avoid racing the real expiry.
        expires_at = datetime.now(tz=timezone.utc) + timedelta(seconds=float(expires_in) - 60)
        return _TokenState(access_token=access_token, expires_at=expires_at)

    async def get_access_token(self) -> str:
        now = datetime.now(tz=timezone.utc)
        if self._token_state and self._token_state.expires_at > now:
            return self._token_state.access_token

        self._token_state = await self._fetch_token()
        return self._token_state.access_token

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------

    async def list_appointments(
        self,
        tenant_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        params = {"locationId": tenant_id, **(filters or {})}
        payload = await self.get_json("/api/Appointments", params=params)
        return _as_list(payload, "Result", "data", "Appointments")

    async def list_resource_appointments(
        self,
        resource_id: str,
        tenant_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        params = {"locationId": tenant_id, **(filters or {})}
        payload = await self.get_json(f"/api/Teams/{resource_id}/Appointments", params=params)
        return _as_list(payload, "Result", "data", "Appointments")

    async def get_appointment(self, appointment_id: str, tenant_id: str) -> Dict[str, Any]:
        payload = await self.get_json(
            f"/api/Appointments/{appointment_id}",
            params={"locationId": tenant_id},
        )
        return _unwrap(payload)

    async def create_appointment(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        result = await self.post_json(
            "/api/Appointments",
            params={"locationId": tenant_id},
            json=payload,
        )
        return _unwrap(result)

    async def update_appointment(
        self,
        appointment_id: str,
        payload: Dict[str, Any],
        tenant_id: str,
    ) -> Dict[str, Any]:
        result = await self.put_json(
            f"/api/Appointments/{appointment_id}",
            params={"locationId": tenant_id},
            json=payload,
        )
        return _unwrap(result)

    async def list_resources(self, tenant_id: str) -> List[Dict[str, Any]]:
        payload = await self.get_json("/api/Teams", params={"locationId": tenant_id})
        return _as_list(payload, "Result", "data", "Teams")

    # ------------------------------------------------------------------
    # Lead > Quote > Book workflow
    # ------------------------------------------------------------------

    async def search_customers(self, email: str, tenant_id: str) -> List[Dict[str, Any]]:
        payload = await self.get_json(
            "/api/Customers/Search",
            params={"locationId": tenant_id, "searchTerm": email},
        )
        return _as_list(payload, "Result", "data", "Customers")

    async def find_or_create_lead(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """
        Search customers by email first; create a lead only when nobody matches.

        Returns a dict with at least `LeadId`.
        """
        email = payload.get("Email")
        if email:
            matches = await self.search_customers(email, tenant_id)
            if matches:
                match = matches[0]
                return {
                    "LeadId": resolve_id(match, LEAD_ID_ALIASES, field="lead id"),
                    "CustomerInformationId": match.get("CustomerInformationId"),
                    "HomeInformationId": match.get("HomeInformationId"),
                }

        result = await self.post_json(
            "/api/Lead/CreateOrUpdate",
            params={"locationId": tenant_id},
            json={**payload, "AllowDuplicates": False},
        )
        return _unwrap(result)

    async def create_quote(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        result = await self.post_json(
            "/api/Lead/CreateOrUpdateQuote",
            params={"locationId": tenant_id},
            json=payload,
        )
        return _unwrap(result)

    async def calculate_price(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        """
        Price the quote for a concrete interval.

        The Source platform refuses to price blocked or invalid slots, so a
        rejection here (HTTP error or `IsSuccess: false`) is raised as
        SourceClientError and treated by callers as "slot unavailable".
        """
        result = await self.post_json(
            "/api/Lead/CalculatePrice",
            params={"locationId": tenant_id},
            json=payload,
        )
        if isinstance(result, dict) and result.get("IsSuccess") is False:
            raise SourceClientError(result.get("Message") or "Price calculation rejected")
        return _unwrap(result)

    async def book_quote(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]:
        result = await self.post_json(
            "/api/Lead/BookQuote",
            params={"locationId": tenant_id},
            json=payload,
        )
        if isinstance(result, dict) and result.get("IsSuccess") is False:
            raise SourceClientError(result.get("Message") or "Booking rejected")
        return _unwrap(result)


_source_client_instance: Optional[SourceClient] = None


def get_source_client() -> SourceClient:
    """
    Lazily construct the shared SourceClient from application settings.
    """
    global _source_client_instance
    if _source_client_instance is None:
        settings = get_settings()
        if not settings.SOURCE_API_BASE_URL or not settings.SOURCE_USERNAME or not settings.SOURCE_PASSWORD:
            raise SourceClientError(
                "SOURCE_API_BASE_URL, SOURCE_USERNAME and SOURCE_PASSWORD must be "
                "configured in settings to use the shared Source client."
            )
        _source_client_instance = SourceClient(
            base_url=str(settings.SOURCE_API_BASE_URL),
            username=settings.SOURCE_USERNAME,
            password=settings.SOURCE_PASSWORD,
            timeout_seconds=settings.PLATFORM_TIMEOUT_SECONDS,
        )
    return _source_client_instance
