"""Tests for health, readiness, liveness and metrics endpoints."""

from __future__ import annotations

import time

from unittest.mock import AsyncMock, MagicMock

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_app_settings, get_db
from api.routes.v1.health import router


@pytest.fixture
def pool(mock_db_pool: MagicMock, mock_conn: AsyncMock) -> MagicMock:
    mock_conn.fetchval.return_value = 1
    mock_db_pool.get_size.return_value = 4
    mock_db_pool.get_idle_size.return_value = 3
    mock_db_pool.get_min_size.return_value = 1
    mock_db_pool.get_max_size.return_value = 10
    return mock_db_pool


@pytest.fixture
def client(pool: MagicMock, mock_settings_for_ci: MagicMock) -> TestClient:
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    app.state.started_at = time.monotonic() - 12.0
    app.dependency_overrides[get_db] = lambda: pool
    app.dependency_overrides[get_app_settings] = lambda: mock_settings_for_ci
    return TestClient(app, raise_server_exceptions=False)


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["version"] == "1.0.0"
        assert body["uptime_seconds"] >= 12.0
        assert body["ai"] == {
            "provider": "gemini",
            "models": {"router": "gemini-2.5-flash-lite", "agent": "gemini-2.5-flash"},
        }
        assert body["database"]["healthy"] is True
        assert body["database"]["pool_free"] == 3
        assert body["database"]["pool_used"] == 1

    def test_degraded_when_database_down(self, client: TestClient, mock_conn: AsyncMock) -> None:
        mock_conn.fetchval.side_effect = OSError("connection refused")

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["database"]["error"] == "Database check failed"


class TestProbes:
    def test_ready(self, client: TestClient) -> None:
        response = client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_not_ready(self, client: TestClient, mock_conn: AsyncMock) -> None:
        mock_conn.fetchval.side_effect = OSError("connection refused")

        response = client.get("/api/v1/health/ready")

        assert response.status_code == 503
        assert response.json() == {"ready": False, "error": "connection refused"}

    def test_live(self, client: TestClient) -> None:
        assert client.get("/api/v1/health/live").json() == {"alive": True}


def test_metrics_exposition(client: TestClient) -> None:
    response = client.get("/api/v1/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "supportdesk_" in response.text
