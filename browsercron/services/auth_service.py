"""Validation of access tokens issued by the identity provider."""

import jwt
import structlog

from browsercron.config import get_settings

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"


class AuthService:
    """Decodes HS256 bearer tokens signed with the shared JWT secret."""

    def __init__(self):
        self.settings = get_settings()

    def validate_access_token(self, token: str) -> dict:
        """Decode and validate a JWT access token.

        Returns:
            Decoded payload; 'sub' holds the user UUID

        Raises:
            ValueError: If the token is invalid, expired, or malformed
        """
        try:
            return jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise ValueError("Access token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug("access_token_rejected", error=str(e))
            raise ValueError(f"Invalid access token: {e}")
