"""Unit tests for the assembled application: health, validation and correlation IDs."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from browsercron.api.dependencies import get_current_user, get_task_service, get_usage_service
from browsercron.main import app


@pytest.fixture
def client(make_user):
    """Application client without lifespan; services are overridden per test."""
    task_service = AsyncMock()
    app.dependency_overrides[get_current_user] = lambda: make_user()
    app.dependency_overrides[get_task_service] = lambda: task_service
    app.dependency_overrides[get_usage_service] = lambda: AsyncMock()
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_reports_database_state(self, client):
        with patch("browsercron.api.routes.db_health_check", new=AsyncMock(return_value=False)):
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "unhealthy"
        assert "timestamp" in data


class TestValidationErrors:
    def test_bad_cron_is_400_with_field(self, client):
        response = client.post(
            "/api/tasks",
            json={"name": "x", "description": "y", "target_site": "z", "cron_schedule": "nope"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Validation error"
        assert "cron_schedule" in data["detail"]
        assert data["correlation_id"]


class TestCorrelationId:
    def test_echoes_supplied_header(self, client):
        with patch("browsercron.api.routes.db_health_check", new=AsyncMock(return_value=True)):
            response = client.get("/health", headers={"X-Correlation-Id": "corr-42"})

        assert response.headers["X-Correlation-Id"] == "corr-42"

    def test_generates_one_when_absent(self, client):
        with patch("browsercron.api.routes.db_health_check", new=AsyncMock(return_value=True)):
            response = client.get("/health")

        assert response.headers["X-Correlation-Id"]
