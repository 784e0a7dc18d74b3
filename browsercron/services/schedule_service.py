"""Cron schedule evaluation for externally triggered scheduler ticks."""

from datetime import datetime, timezone
from typing import Optional

import structlog
from croniter import croniter

from browsercron.models.task import Task
from browsercron.services.run_orchestrator import RunHandle, RunOrchestrator
from browsercron.services.task_service import TaskService

logger = structlog.get_logger(__name__)


class ScheduleService:
    """Finds tasks whose cron schedule has come due and starts them."""

    def __init__(self, task_service: TaskService, orchestrator: RunOrchestrator):
        self.task_service = task_service
        self.orchestrator = orchestrator

    @staticmethod
    def validate_cron(expression: str) -> bool:
        return croniter.is_valid(expression)

    @staticmethod
    def next_run_after(expression: str, anchor: datetime) -> datetime:
        """Next fire time strictly after anchor."""
        return croniter(expression, anchor).get_next(datetime)

    async def find_due_tasks(self, now: Optional[datetime] = None) -> list[Task]:
        """Active scheduled tasks whose next fire time after their last run has passed.

        Tasks that never ran are anchored at their creation time.
        """
        now = now or datetime.now(timezone.utc)
        due = []

        for task, last_started_at in await self.task_service.list_scheduled_tasks():
            anchor = last_started_at or task.created_at
            try:
                next_run = self.next_run_after(task.cron_schedule, anchor)
            except (ValueError, KeyError) as e:
                logger.warning(
                    "task_schedule_invalid",
                    task_id=str(task.id),
                    cron_schedule=task.cron_schedule,
                    error=str(e),
                )
                continue

            if next_run <= now:
                due.append(task)

        return due

    async def run_due_tasks(self, now: Optional[datetime] = None) -> list[RunHandle]:
        """Start every due task in the background and return the run handles."""
        due = await self.find_due_tasks(now)
        if not due:
            return []

        logger.info("scheduler_found_due_tasks", count=len(due))

        handles = []
        for task in due:
            try:
                handles.append(await self.orchestrator.execute(str(task.id), wait=False))
            except Exception as e:
                logger.error("scheduled_run_start_failed", task_id=str(task.id), error=str(e))

        return handles
