# tests/fakes.py
from typing import Any, Dict, List, Optional

from appointment_bridge.services.target_client import TargetClientError


TENANT = "acme"


class FakeSource:
    """
    In-memory stand-in for the Source scheduling API.

    - `appointments` backs list/get calls.
    - `errors` maps a method name to the exception it should raise.
    - `calls` records (method, args) for assertions.
    """

    def __init__(self) -> None:
        self.appointments: List[Dict[str, Any]] = []
        self.resources: List[Dict[str, Any]] = [{"Id": "R1", "Name": "Team Blue"}]
        self.recovery_appointments: List[Dict[str, Any]] = []
        self.lead_response: Dict[str, Any] = {
            "LeadId": "L1",
            "CustomerInformationId": "C1",
            "HomeInformationId": "H1",
        }
        self.quote_response: Dict[str, Any] = {"QuoteId": "Q1"}
        self.booking_response: Dict[str, Any] = {"AppointmentId": "S-new"}
        self.errors: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self.updated: Dict[str, Dict[str, Any]] = {}

    def _enter(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.errors:
            raise self.errors[name]

    def called(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    async def list_appointments(self, tenant_id: str, filters: Optional[Dict[str, Any]] = None):
        self._enter("list_appointments", tenant_id, filters)
        if filters and "leadId" in filters:
            return list(self.recovery_appointments)
        return list(self.appointments)

    async def list_resource_appointments(
        self, resource_id: str, tenant_id: str, filters: Optional[Dict[str, Any]] = None
    ):
        self._enter("list_resource_appointments", resource_id, tenant_id, filters)
        return [a for a in self.appointments if str(a.get("TeamId")) == str(resource_id)]

    async def get_appointment(self, appointment_id: str, tenant_id: str):
        self._enter("get_appointment", appointment_id, tenant_id)
        for appointment in self.appointments:
            if str(appointment.get("Id")) == str(appointment_id):
                return appointment
        return {}

    async def create_appointment(self, payload: Dict[str, Any], tenant_id: str):
        self._enter("create_appointment", payload, tenant_id)
        return {"Id": "S-created"}

    async def update_appointment(self, appointment_id: str, payload: Dict[str, Any], tenant_id: str):
        self._enter("update_appointment", appointment_id, payload, tenant_id)
        self.updated[appointment_id] = payload
        return {"Id": appointment_id}

    async def list_resources(self, tenant_id: str):
        self._enter("list_resources", tenant_id)
        return list(self.resources)

    async def find_or_create_lead(self, payload: Dict[str, Any], tenant_id: str):
        self._enter("find_or_create_lead", payload, tenant_id)
        return dict(self.lead_response)

    async def create_quote(self, payload: Dict[str, Any], tenant_id: str):
        self._enter("create_quote", payload, tenant_id)
        return dict(self.quote_response)

    async def calculate_price(self, payload: Dict[str, Any], tenant_id: str):
        self._enter("calculate_price", payload, tenant_id)
        return {"IsSuccess": True, "Price": 120}

    async def book_quote(self, payload: Dict[str, Any], tenant_id: str):
        self._enter("book_quote", payload, tenant_id)
        return dict(self.booking_response)


class FakeTarget:
    """
    In-memory stand-in for the Target calendar API.

    `fail_creates` holds 1-based create call numbers that raise.
    """

    def __init__(self) -> None:
        self.events: Dict[str, List[Dict[str, Any]]] = {}
        self.created: List[Dict[str, Any]] = []
        self.updated: List[Dict[str, Any]] = []
        self.fail_creates: set[int] = set()
        self.errors: Dict[str, Exception] = {}
        self._create_calls = 0

    async def list_calendar_appointments(
        self, calendar_id: str, location_id: str, filters: Optional[Dict[str, Any]] = None
    ):
        if "list_calendar_appointments" in self.errors:
            raise self.errors["list_calendar_appointments"]
        return list(self.events.get(calendar_id, []))

    async def create_calendar_appointment(
        self, calendar_id: str, location_id: str, payload: Dict[str, Any]
    ):
        self._create_calls += 1
        if self._create_calls in self.fail_creates:
            raise TargetClientError("Target POST failed (status=500): boom", status_code=500)
        if "create_calendar_appointment" in self.errors:
            raise self.errors["create_calendar_appointment"]
        new_id = f"evt-{self._create_calls}"
        self.created.append(
            {"id": new_id, "calendar_id": calendar_id, "location_id": location_id, "payload": payload}
        )
        return {"id": new_id}

    async def update_calendar_appointment(
        self, calendar_id: str, appointment_id: str, location_id: str, payload: Dict[str, Any]
    ):
        if "update_calendar_appointment" in self.errors:
            raise self.errors["update_calendar_appointment"]
        self.updated.append(
            {"id": appointment_id, "calendar_id": calendar_id, "location_id": location_id, "payload": payload}
        )
        return {"id": appointment_id}


def source_appointment(
    appointment_id: str,
    start: str,
    end: str,
    team_id: Optional[str] = "R1",
    **extra: Any,
) -> Dict[str, Any]:
    payload = {"Id": appointment_id, "ScheduledStart": start, "ScheduledEnd": end, **extra}
    if team_id is not None:
        payload["TeamId"] = team_id
    return payload


def target_appointment(
    appointment_id: str,
    start: str,
    end: str,
    calendar_id: Optional[str] = "cal-default",
    **extra: Any,
) -> Dict[str, Any]:
    payload = {
        "id": appointment_id,
        "startTime": start,
        "endTime": end,
        "contact": {"email": "jane@example.com", "firstName": "Jane", "lastName": "Doe"},
        **extra,
    }
    if calendar_id is not None:
        payload["calendarId"] = calendar_id
    return payload


