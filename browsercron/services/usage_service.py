"""Plan limits and usage alerts."""

import math
from datetime import datetime, timezone
from typing import Optional

import structlog

from browsercron.models.notification import LimitType, NotificationKind
from browsercron.models.user import Plan, User
from browsercron.services.notification_log_service import NotificationLogService
from browsercron.services.notifier import Notifier
from browsercron.services.task_service import TaskService

logger = structlog.get_logger(__name__)

PLAN_LIMITS: dict[Plan, dict[LimitType, int]] = {
    Plan.FREE: {LimitType.TASKS: 3, LimitType.RUNS: 100},
    Plan.PRO: {LimitType.TASKS: 25, LimitType.RUNS: 1000},
    Plan.BUSINESS: {LimitType.TASKS: 100, LimitType.RUNS: 10000},
}

_ALERT_KINDS = {
    LimitType.TASKS: NotificationKind.USAGE_LIMIT_TASKS,
    LimitType.RUNS: NotificationKind.USAGE_LIMIT_RUNS,
}


def month_start(now: datetime) -> datetime:
    """First instant of now's calendar month (UTC)."""
    return now.astimezone(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class UsageService:
    """Counts usage against plan limits and alerts once per month per limit."""

    def __init__(
        self,
        task_service: TaskService,
        log_service: NotificationLogService,
        notifier: Notifier,
        threshold: float = 0.8,
    ):
        self.task_service = task_service
        self.log_service = log_service
        self.notifier = notifier
        self.threshold = threshold

    @staticmethod
    def limit_for(plan: Plan, limit_type: LimitType) -> int:
        return PLAN_LIMITS[plan][limit_type]

    def alert_level(self, limit: int) -> int:
        """Smallest usage count that triggers an alert."""
        return max(1, math.ceil(limit * self.threshold))

    async def check_task_usage(self, user: User, now: Optional[datetime] = None) -> Optional[dict]:
        """Alert when the user's task count nears the plan limit."""
        current = await self.task_service.count_tasks(str(user.id))
        return await self._check(user, LimitType.TASKS, current, now)

    async def check_run_usage(self, user: User, now: Optional[datetime] = None) -> Optional[dict]:
        """Alert when this month's run count nears the plan limit."""
        now = now or datetime.now(timezone.utc)
        current = await self.task_service.count_runs_since(str(user.id), month_start(now))
        return await self._check(user, LimitType.RUNS, current, now)

    async def _check(
        self,
        user: User,
        limit_type: LimitType,
        current: int,
        now: Optional[datetime],
    ) -> Optional[dict]:
        now = now or datetime.now(timezone.utc)
        limit = self.limit_for(user.plan, limit_type)

        if current < self.alert_level(limit):
            return None

        if not user.email:
            logger.info("usage_alert_skipped_no_email", user_id=str(user.id))
            return None

        if await self.log_service.was_sent_since(user.id, _ALERT_KINDS[limit_type], month_start(now)):
            return None

        logger.info(
            "usage_limit_approaching",
            user_id=str(user.id),
            limit_type=limit_type.value,
            current=current,
            limit=limit,
        )
        return await self.notifier.notify_usage_limit(
            to=user.email,
            user_id=user.id,
            user_name=user.name or user.email,
            limit_type=limit_type,
            current=current,
            limit=limit,
            plan=user.plan.value,
        )
