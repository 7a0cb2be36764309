# tests/test_health.py
from http import HTTPStatus


def test_health_endpoint_ok(client):
    """
    /health responds with 200 and the expected JSON shape without touching
    the database or either platform.
    """
    response = client.get("/health")

    assert response.status_code == HTTPStatus.OK
    data = response.json()

    assert data["status"] == "ok"
    assert isinstance(data["app_name"], str)
    assert isinstance(data["environment"], str)
    assert "timestamp_utc" in data


def test_health_does_not_call_platforms(client, source):
    client.get("/health")

    assert source.calls == []


def test_health_reports_platform_configuration(monkeypatch, client):
    from appointment_bridge.api.routes import health as health_module
    from appointment_bridge.core.config import Settings

    configured = Settings(
        SOURCE_API_BASE_URL="https://source.example.com",
        SOURCE_USERNAME="svc",
        SOURCE_PASSWORD="pw",
        TARGET_API_BASE_URL=None,
        TARGET_API_TOKEN=None,
    )
    monkeypatch.setattr(health_module, "get_settings", lambda: configured)

    data = client.get("/health").json()

    assert data["platforms"] == {"source_configured": True, "target_configured": False}
