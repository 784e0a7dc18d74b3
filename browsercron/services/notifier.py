"""Email notifications for run outcomes, usage limits and weekly digests.

Every delivery attempt writes exactly one notification log row. Delivery
failures are logged and then re-raised. Without an email client all methods
are no-ops that return None.
"""

from typing import Optional
from uuid import UUID

import structlog

from browsercron.models.notification import (
    DeliveryStatus,
    DigestStats,
    LimitType,
    NotificationKind,
)
from browsercron.models.task import RunStatus, Task, TaskRun
from browsercron.services.email_client import EmailClient
from browsercron.services.email_templates import (
    render_task_email,
    render_usage_limit_alert,
    render_weekly_digest,
)
from browsercron.services.notification_log_service import NotificationLogService

logger = structlog.get_logger(__name__)


class Notifier:
    """Renders notification emails and delivers them through the email client."""

    def __init__(
        self,
        email_client: Optional[EmailClient],
        log_service: NotificationLogService,
        app_url: str,
    ):
        self.email_client = email_client
        self.log_service = log_service
        self.app_url = app_url.rstrip("/")

    @property
    def enabled(self) -> bool:
        return self.email_client is not None

    async def _deliver(
        self,
        user_id: UUID,
        kind: NotificationKind,
        to: str,
        subject: str,
        html: str,
        task_id: Optional[UUID] = None,
    ) -> dict:
        try:
            result = await self.email_client.send(to=to, subject=subject, html=html)
        except Exception as e:
            logger.error(
                "notification_delivery_failed",
                user_id=str(user_id),
                type=kind.value,
                error=str(e),
            )
            await self.log_service.record(
                user_id=user_id,
                kind=kind,
                email=to,
                subject=subject,
                status=DeliveryStatus.FAILED,
                task_id=task_id,
                error_msg=str(e) or "Unknown error",
            )
            raise

        await self.log_service.record(
            user_id=user_id,
            kind=kind,
            email=to,
            subject=subject,
            status=DeliveryStatus.SENT,
            task_id=task_id,
        )
        return result

    async def notify_task_outcome(self, to: str, task: Task, run: TaskRun) -> Optional[dict]:
        """Email the outcome of a finished run."""
        if not self.enabled:
            logger.warning("notifier_disabled_skipping", type="task_outcome", task_id=str(task.id))
            return None

        succeeded = run.status == RunStatus.SUCCESS
        if succeeded:
            kind = NotificationKind.TASK_SUCCESS
            subject = f'✅ Task "{task.name}" completed successfully'
        else:
            kind = NotificationKind.TASK_FAILED
            subject = f'❌ Task "{task.name}" failed'

        html = render_task_email(
            app_url=self.app_url,
            task_name=task.name,
            task_id=str(task.id),
            run_id=str(run.id),
            succeeded=succeeded,
            output=run.output_json,
            error=run.error_msg,
            duration_ms=run.duration_ms,
        )
        return await self._deliver(task.user_id, kind, to, subject, html, task_id=task.id)

    async def notify_usage_limit(
        self,
        to: str,
        user_id: UUID,
        user_name: str,
        limit_type: LimitType,
        current: int,
        limit: int,
        plan: str,
    ) -> Optional[dict]:
        """Warn a user who is approaching a plan limit."""
        if not self.enabled:
            logger.warning("notifier_disabled_skipping", type="usage_limit", user_id=str(user_id))
            return None

        subject = f"⚠️ You're approaching your {limit_type.value} limit ({current}/{limit})"
        html = render_usage_limit_alert(
            app_url=self.app_url,
            user_name=user_name,
            limit_type=limit_type.value,
            current=current,
            limit=limit,
            plan=plan,
        )
        kind = (
            NotificationKind.USAGE_LIMIT_TASKS
            if limit_type == LimitType.TASKS
            else NotificationKind.USAGE_LIMIT_RUNS
        )
        return await self._deliver(user_id, kind, to, subject, html)

    async def notify_weekly_digest(
        self, to: str, user_id: UUID, user_name: str, stats: DigestStats
    ) -> Optional[dict]:
        """Send the weekly run summary."""
        if not self.enabled:
            logger.warning("notifier_disabled_skipping", type="weekly_digest", user_id=str(user_id))
            return None

        subject = "📊 Your Weekly BrowserCron Summary"
        html = render_weekly_digest(app_url=self.app_url, user_name=user_name, stats=stats)
        return await self._deliver(user_id, NotificationKind.WEEKLY_DIGEST, to, subject, html)
