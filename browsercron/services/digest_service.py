"""Weekly digest statistics and delivery."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from browsercron.models.notification import DigestStats, TaskDigest
from browsercron.services.notifier import Notifier
from browsercron.services.task_service import TaskService
from browsercron.services.user_service import UserService

logger = structlog.get_logger(__name__)

DIGEST_WINDOW = timedelta(days=7)


class DigestService:
    """Builds per-user weekly run statistics and emails them."""

    def __init__(
        self,
        task_service: TaskService,
        user_service: UserService,
        notifier: Notifier,
    ):
        self.task_service = task_service
        self.user_service = user_service
        self.notifier = notifier

    async def build_weekly_stats(
        self, user_id: str, now: Optional[datetime] = None
    ) -> DigestStats:
        """Aggregate runs started in the seven days before now."""
        now = now or datetime.now(timezone.utc)
        rows = await self.task_service.run_counts_by_task(user_id, now - DIGEST_WINDOW)

        stats = DigestStats()
        for row in rows:
            runs = row["runs"]
            stats.total_runs += runs
            stats.successful_runs += row["successful"]
            stats.failed_runs += row["failed"]
            stats.tasks.append(
                TaskDigest(
                    name=row["name"],
                    runs=runs,
                    success_rate=round(row["successful"] / runs * 100) if runs else 0,
                )
            )

        stats.tasks.sort(key=lambda t: t.runs, reverse=True)
        return stats

    async def send_weekly_digests(self, now: Optional[datetime] = None) -> int:
        """Email every digest-enabled user who had runs this week.

        A failed delivery is logged and does not stop the batch.

        Returns:
            Number of digests delivered
        """
        if not self.notifier.enabled:
            logger.warning("weekly_digest_skipped_notifier_disabled")
            return 0

        sent = 0
        for user in await self.user_service.list_digest_recipients():
            stats = await self.build_weekly_stats(str(user.id), now)
            if stats.total_runs == 0:
                continue

            try:
                await self.notifier.notify_weekly_digest(
                    to=user.email,
                    user_id=user.id,
                    user_name=user.name or user.email,
                    stats=stats,
                )
                sent += 1
            except Exception as e:
                logger.error("weekly_digest_failed", user_id=str(user.id), error=str(e))

        logger.info("weekly_digests_sent", count=sent)
        return sent
