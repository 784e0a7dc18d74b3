"""Notification log API endpoints."""

from fastapi import APIRouter, Depends, Query

from browsercron.api.dependencies import get_current_user, get_log_service
from browsercron.models.user import User
from browsercron.services.notification_log_service import NotificationLogService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    service: NotificationLogService = Depends(get_log_service),
) -> dict:
    """List email notification attempts for the authenticated user."""
    logs, total = await service.list_logs(str(current_user.id), limit=limit, offset=offset)

    return {
        "items": [
            {
                "id": str(log.id),
                "task_id": str(log.task_id) if log.task_id else None,
                "type": log.type.value,
                "email": log.email,
                "subject": log.subject,
                "status": log.status.value,
                "error_msg": log.error_msg,
                "created_at": log.created_at.isoformat(),
            }
            for log in logs
        ],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
