from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


class SourcePort(Protocol):
    """
    Operations the sync subsystem needs from the Source scheduling platform.
    """

    async def list_appointments(
        self, tenant_id: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]: ...

    async def list_resource_appointments(
        self, resource_id: str, tenant_id: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]: ...

    async def get_appointment(self, appointment_id: str, tenant_id: str) -> Dict[str, Any]: ...

    async def create_appointment(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]: ...

    async def update_appointment(
        self, appointment_id: str, payload: Dict[str, Any], tenant_id: str
    ) -> Dict[str, Any]: ...

    async def list_resources(self, tenant_id: str) -> List[Dict[str, Any]]: ...

    async def find_or_create_lead(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]: ...

    async def create_quote(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]: ...

    async def calculate_price(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]: ...

    async def book_quote(self, payload: Dict[str, Any], tenant_id: str) -> Dict[str, Any]: ...


class TargetPort(Protocol):
    """
    Operations the sync subsystem needs from the Target CRM calendars.
    """

    async def list_calendar_appointments(
        self, calendar_id: str, location_id: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]: ...

    async def create_calendar_appointment(
        self, calendar_id: str, location_id: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    async def update_calendar_appointment(
        self, calendar_id: str, appointment_id: str, location_id: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]: ...
