"""FastAPI dependencies for authentication and service access."""

import secrets
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from browsercron.config import get_settings
from browsercron.models.user import User
from browsercron.services.auth_service import AuthService
from browsercron.services.digest_service import DigestService
from browsercron.services.notification_log_service import NotificationLogService
from browsercron.services.run_orchestrator import RunOrchestrator
from browsercron.services.schedule_service import ScheduleService
from browsercron.services.task_service import TaskService
from browsercron.services.usage_service import UsageService
from browsercron.services.user_service import UserService

bearer_scheme = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> User:
    """Extract and validate the current user from a JWT Bearer token.

    Raises:
        HTTPException 401: If token is invalid, expired, or user not found
    """
    auth_service = AuthService()
    try:
        payload = auth_service.validate_access_token(credentials.credentials)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await UserService().get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Guard for scheduler endpoints: 'Authorization: Bearer <CRON_SECRET>'.

    Raises:
        HTTPException 503: If no cron secret is configured
        HTTPException 401: If the header does not match
    """
    expected = get_settings().cron_secret
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler endpoints are disabled",
        )

    if not authorization or not secrets.compare_digest(authorization, f"Bearer {expected}"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )


# Services are built once in the application lifespan and kept on app.state


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_orchestrator(request: Request) -> RunOrchestrator:
    return request.app.state.orchestrator


def get_log_service(request: Request) -> NotificationLogService:
    return request.app.state.log_service


def get_usage_service(request: Request) -> UsageService:
    return request.app.state.usage_service


def get_schedule_service(request: Request) -> ScheduleService:
    return request.app.state.schedule_service


def get_digest_service(request: Request) -> DigestService:
    return request.app.state.digest_service
