"""Unit tests for the current user endpoint and bearer authentication."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from browsercron.api.me import router
from browsercron.models.user import Plan


def bearer(sub: str, secret: str = "test-jwt-secret") -> dict:
    token = jwt.encode(
        {"sub": sub, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        secret,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


@pytest.fixture
def user_service():
    service = AsyncMock()
    with patch("browsercron.api.dependencies.UserService", return_value=service):
        yield service


class TestGetMe:
    def test_returns_profile(self, client, user_service, make_user):
        user = make_user(name="Demo User", email="demo@example.com", plan=Plan.PRO)
        user_service.get_by_id.return_value = user

        response = client.get("/api/me", headers=bearer(str(user.id)))

        assert response.status_code == 200
        assert response.json() == {
            "user_id": str(user.id),
            "email": "demo@example.com",
            "name": "Demo User",
            "image": None,
            "plan": "PRO",
            "weekly_digest_enabled": True,
        }
        user_service.get_by_id.assert_awaited_once_with(user.id)

    def test_unknown_user(self, client, user_service):
        user_service.get_by_id.return_value = None

        response = client.get("/api/me", headers=bearer(str(uuid4())))

        assert response.status_code == 401

    def test_bad_signature(self, client, user_service):
        response = client.get("/api/me", headers=bearer(str(uuid4()), secret="another-secret"))

        assert response.status_code == 401
        user_service.get_by_id.assert_not_awaited()

    def test_non_uuid_subject(self, client, user_service):
        response = client.get("/api/me", headers=bearer("not-a-uuid"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token payload"
