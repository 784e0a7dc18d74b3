"""Unit tests for AuthService access token validation."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
import pytest

from browsercron.services.auth_service import JWT_ALGORITHM, AuthService

SECRET = "test-jwt-secret"


def make_token(secret=SECRET, **claims):
    payload = {"sub": str(uuid4()), "exp": datetime.now(timezone.utc) + timedelta(minutes=15)}
    payload.update(claims)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


@pytest.fixture
def auth_service():
    service = AuthService()
    service.settings = service.settings.model_copy(update={"jwt_secret": SECRET})
    return service


class TestValidateAccessToken:
    def test_valid_token(self, auth_service):
        user_id = str(uuid4())
        payload = auth_service.validate_access_token(make_token(sub=user_id))
        assert payload["sub"] == user_id

    def test_expired_token(self, auth_service):
        token = make_token(exp=datetime.now(timezone.utc) - timedelta(seconds=5))
        with pytest.raises(ValueError, match="expired"):
            auth_service.validate_access_token(token)

    def test_wrong_secret(self, auth_service):
        with pytest.raises(ValueError, match="Invalid access token"):
            auth_service.validate_access_token(make_token(secret="other-secret-value"))

    def test_missing_subject(self, auth_service):
        with pytest.raises(ValueError, match="Invalid access token"):
            auth_service.validate_access_token(make_token(sub=None))

    def test_garbage(self, auth_service):
        with pytest.raises(ValueError):
            auth_service.validate_access_token("not-a-jwt")
