import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)


def _stub_checks(monkeypatch, *, db=None, redis=None, catalog=None):
    async def check_db():
        return db or {"status": "ok"}

    async def check_redis():
        return redis or {"status": "ok"}

    async def check_catalog():
        return catalog or {"status": "ok", "active_plans": 3}

    monkeypatch.setattr(health_module, "_check_db", check_db)
    monkeypatch.setattr(health_module, "_check_redis", check_redis)
    monkeypatch.setattr(health_module, "_check_plan_catalog", check_catalog)


@pytest.fixture(autouse=True)
def _test_environment(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


def test_liveness_needs_no_backing_services() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert payload["version"] == health_module.APP_VERSION
    assert "timestamp" in payload


def test_liveness_echoes_request_id() -> None:
    response = client.get("/api/v1/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"

    unsafe = client.get("/api/v1/health/live", headers={"X-Request-ID": "has spaces in it"})
    assert unsafe.headers["x-request-id"] != "has spaces in it"


def test_readiness_reports_each_dependency(monkeypatch) -> None:
    _stub_checks(monkeypatch)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["ready"] is True
    assert payload["environment"] == "test"
    assert set(payload["checks"]) == {"database", "redis", "plan_catalog"}
    assert payload["checks"]["plan_catalog"]["active_plans"] == 3


@pytest.mark.parametrize(
    "failure",
    [
        {"db": {"status": "error", "error": "unreachable"}},
        {"redis": {"status": "error", "error": "connection refused"}},
        {"catalog": {"status": "error", "error": "no active plans", "active_plans": 0}},
    ],
)
def test_readiness_degrades_when_a_dependency_fails(monkeypatch, failure) -> None:
    _stub_checks(monkeypatch, **failure)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "degraded"
    assert payload["ready"] is False
