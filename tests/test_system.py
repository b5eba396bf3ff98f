"""Tests for system / health endpoints and configuration defaults."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from pydantic import ValidationError

from solargen.config import Settings, settings
from solargen.db.session import get_db
from solargen.main import app
from solargen.services.anomalies import AnomalyKind


@pytest.fixture
def db_session():
    session = AsyncMock()
    app.dependency_overrides[get_db] = lambda: session
    yield session
    app.dependency_overrides.pop(get_db, None)


# ── GET /health ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ── GET /api/v1/status (auth required) ────────────────────────────────────────

@pytest.mark.asyncio
async def test_status_rejects_missing_key(client: AsyncClient):
    response = await client.get("/api/v1/status")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_status_rejects_wrong_key(client: AsyncClient):
    response = await client.get(
        "/api/v1/status",
        headers={"X-API-Key": "wrong-key"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_status_with_valid_key(client: AsyncClient, auth_headers: dict, db_session):
    response = await client.get("/api/v1/status", headers=auth_headers)
    assert response.status_code == 200

    data = response.json()
    assert data["service"] == settings.app_name
    assert data["version"] == settings.app_version
    assert data["db"] == "ok"

    gen = data["generator"]
    assert gen["serial_number"] == "SU-0001"
    assert gen["rated_capacity_watts"] == settings.rated_capacity_watts
    assert gen["interval_hours"] == 2.0
    assert gen["anomaly_windows"] == len(settings.anomaly_windows)


@pytest.mark.asyncio
async def test_status_reports_db_error(client: AsyncClient, auth_headers: dict, db_session):
    db_session.execute.side_effect = OSError("connection refused")
    response = await client.get("/api/v1/status", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["db"] == "error"


# ── GET /docs (OpenAPI UI) ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_openapi_docs_accessible(client: AsyncClient):
    response = await client.get("/docs")
    assert response.status_code == 200


# ── Config validation ──────────────────────────────────────────────────────────

def test_default_unit():
    assert settings.solar_unit_serial == "SU-0001"
    assert settings.interval_hours == 2.0
    assert settings.drip_interval_hours == 2.0


def test_default_scenario_is_august_nighttime_window():
    [window] = settings.anomaly_windows
    assert window.kind is AnomalyKind.NIGHTTIME_GENERATION
    assert window.start.isoformat() == "2025-08-10T00:00:00+00:00"
    assert window.end.isoformat() == "2025-08-12T23:59:59+00:00"
    assert 2 in window.hours and 20 in window.hours
    assert 12 not in window.hours


@pytest.mark.parametrize(
    "field, value",
    [
        ("rated_capacity_watts", 0),
        ("rated_capacity_watts", -100),
        ("interval_hours", 0),
        ("interval_hours", 25),
        ("drip_interval_hours", 0),
    ],
)
def test_settings_reject_invalid_values(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


def test_anomaly_windows_from_environment(monkeypatch):
    monkeypatch.setenv(
        "ANOMALY_WINDOWS",
        '[{"kind": "FROZEN_GENERATION", "start": "2025-09-01T00:00:00Z",'
        ' "end": "2025-09-02T00:00:00Z"}]',
    )
    [window] = Settings().anomaly_windows
    assert window.kind is AnomalyKind.FROZEN_GENERATION
    assert window.hours is None
