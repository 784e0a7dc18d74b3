"""Append-only log of email notification attempts."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from browsercron.database import get_pool
from browsercron.models.notification import (
    DeliveryStatus,
    NotificationKind,
    NotificationLog,
)

logger = structlog.get_logger(__name__)


def _row_to_log(row) -> NotificationLog:
    return NotificationLog(
        id=row["id"],
        user_id=row["user_id"],
        task_id=row["task_id"],
        type=NotificationKind(row["type"]),
        email=row["email"],
        subject=row["subject"],
        status=DeliveryStatus(row["status"]),
        error_msg=row["error_msg"],
        created_at=row["created_at"],
    )


class NotificationLogService:
    """Records and lists notification delivery attempts."""

    async def record(
        self,
        user_id: UUID,
        kind: NotificationKind,
        email: str,
        subject: str,
        status: DeliveryStatus,
        task_id: Optional[UUID] = None,
        error_msg: Optional[str] = None,
    ) -> NotificationLog:
        """Insert one log row for a delivery attempt."""
        log = NotificationLog(
            id=uuid4(),
            user_id=user_id,
            task_id=task_id,
            type=kind,
            email=email,
            subject=subject,
            status=status,
            error_msg=error_msg,
            created_at=datetime.now(timezone.utc),
        )
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO notification_logs
                (id, user_id, task_id, type, email, subject, status, error_msg, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                log.id,
                log.user_id,
                log.task_id,
                log.type.value,
                log.email,
                log.subject,
                log.status.value,
                log.error_msg,
                log.created_at,
            )

        logger.info(
            "notification_logged",
            user_id=str(user_id),
            type=kind.value,
            status=status.value,
        )
        return log

    async def list_logs(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> tuple[list[NotificationLog], int]:
        """List a user's notification attempts, newest first."""
        pool = await get_pool()
        uid = UUID(user_id)

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, task_id, type, email, subject, status, error_msg, created_at
                FROM notification_logs
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                uid,
                limit,
                offset,
            )
            total = await conn.fetchval(
                "SELECT COUNT(*) FROM notification_logs WHERE user_id = $1",
                uid,
            )

        return [_row_to_log(row) for row in rows], total or 0

    async def was_sent_since(
        self, user_id: UUID, kind: NotificationKind, since: datetime
    ) -> bool:
        """Whether a notification of this kind was delivered since a point in time."""
        pool = await get_pool()
        async with pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM notification_logs
                    WHERE user_id = $1 AND type = $2 AND status = 'sent' AND created_at >= $3
                )
                """,
                user_id,
                kind.value,
                since,
            )
        return bool(found)
