"""Integration tests for health and metrics endpoints."""

import pytest
from fastapi.testclient import TestClient

from docchat.api.routes import health as health_routes
from docchat.config import Settings
from docchat.main import app
from docchat.utils.metrics import PrometheusChatMetrics

client = TestClient(app)


def test_health_always_ok() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_healthz_reports_components(monkeypatch: pytest.MonkeyPatch) -> None:
    async def ok(settings: Settings) -> tuple[bool, str]:
        return (True, "ok")

    async def unconfigured(settings: Settings) -> tuple[bool, str]:
        return (True, "not_configured")

    monkeypatch.setattr(health_routes, "check_db", ok)
    monkeypatch.setattr(health_routes, "check_redis", unconfigured)
    monkeypatch.setattr(health_routes, "check_qdrant", unconfigured)

    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "components": {"db": "ok", "redis": "not_configured", "qdrant": "not_configured"},
    }


def test_healthz_degraded_is_503(monkeypatch: pytest.MonkeyPatch) -> None:
    async def ok(settings: Settings) -> tuple[bool, str]:
        return (True, "ok")

    async def down(settings: Settings) -> tuple[bool, str]:
        return (False, "error: ConnectionError")

    monkeypatch.setattr(health_routes, "check_db", ok)
    monkeypatch.setattr(health_routes, "check_redis", down)
    monkeypatch.setattr(health_routes, "check_qdrant", ok)

    response = client.get("/healthz")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["components"]["redis"] == "error: ConnectionError"


@pytest.mark.asyncio
async def test_unconfigured_stores_are_not_checked() -> None:
    settings = Settings(database_url=None, redis_url=None, qdrant_url=None)

    assert await health_routes.check_db(settings) == (True, "not_configured")
    assert await health_routes.check_redis(settings) == (True, "not_configured")
    assert await health_routes.check_qdrant(settings) == (True, "not_configured")


def test_metrics_exposes_chat_counters() -> None:
    PrometheusChatMetrics().inc_question("answered")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "questions_total" in response.text
    assert "document_transitions_total" in response.text
