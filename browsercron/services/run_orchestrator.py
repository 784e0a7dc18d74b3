"""Task run orchestration: create a run, execute it, persist the outcome, notify."""

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from browsercron.models.task import RunStatus, Task, TaskRun
from browsercron.services.automation_client import AutomationClient
from browsercron.services.notification_rules import should_notify
from browsercron.services.notifier import Notifier
from browsercron.services.task_service import TaskService
from browsercron.services.usage_service import UsageService
from browsercron.services.user_service import UserService

logger = structlog.get_logger(__name__)


@dataclass
class RunHandle:
    """A started run.

    run is the terminal run when executed with wait=True, otherwise the
    'running' row; completion is the background task finalizing it.
    """

    run: TaskRun
    completion: Optional[asyncio.Task] = None

    async def wait(self) -> TaskRun:
        """Return the terminal run, awaiting background completion if needed."""
        if self.completion is not None:
            self.run = await self.completion
        return self.run


def wants_notification(task: Task, run: TaskRun) -> bool:
    """Decide whether a finished run should be emailed to the task owner."""
    if run.status == RunStatus.SUCCESS:
        return task.notify_on_success or should_notify(task.custom_rules, run.output_json)
    if run.status == RunStatus.FAILED:
        return task.notify_on_failure
    return False


class RunOrchestrator:
    """Coordinates the task store, automation provider and notifier for one run."""

    def __init__(
        self,
        task_service: TaskService,
        automation_client: AutomationClient,
        notifier: Notifier,
        user_service: UserService,
        usage_service: Optional[UsageService] = None,
    ):
        self.task_service = task_service
        self.automation_client = automation_client
        self.notifier = notifier
        self.user_service = user_service
        self.usage_service = usage_service
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def execute(
        self,
        task_id: str,
        user_id: Optional[str] = None,
        wait: bool = True,
    ) -> RunHandle:
        """Start a run of a task.

        Raises:
            TaskNotFoundError: If the task does not exist (no run is created)
        """
        task = await self.task_service.require_task(task_id, user_id)
        run = await self.task_service.create_run(task.id)

        logger.info("task_run_started", task_id=str(task.id), run_id=str(run.id), wait=wait)

        if wait:
            return RunHandle(run=await self._complete(task, run))

        completion = asyncio.create_task(self._complete(task, run))
        self._pending.add(completion)
        completion.add_done_callback(self._on_background_done)
        return RunHandle(run=run, completion=completion)

    async def _complete(self, task: Task, run: TaskRun) -> TaskRun:
        with structlog.contextvars.bound_contextvars(run_id=str(run.id)):
            try:
                await self._check_usage(task)
                result = await self.automation_client.submit_and_await(
                    task.description, start_url=task.start_url
                )
            except BaseException as e:
                # Cancelled or crashed before an outcome; the row must not stay running
                await self._abandon(run, e)
                raise

            if result.succeeded:
                finished = await self.task_service.finish_run(
                    run.id,
                    RunStatus.SUCCESS,
                    output=result.output,
                    logs=result.logs,
                )
            else:
                finished = await self.task_service.finish_run(
                    run.id,
                    RunStatus.FAILED,
                    error=result.error or "Unknown error",
                    logs=result.logs,
                )

            logger.info(
                "task_run_completed",
                task_id=str(task.id),
                status=finished.status.value,
                provider_status=result.status.value,
                duration_ms=finished.duration_ms,
            )

            await self._notify(task, finished)
            return finished

    async def _abandon(self, run: TaskRun, exc: BaseException) -> None:
        if isinstance(exc, asyncio.CancelledError):
            error = "Run was interrupted before completion"
        else:
            error = str(exc) or type(exc).__name__

        try:
            await self.task_service.finish_run(run.id, RunStatus.FAILED, error=error)
        except Exception as write_error:
            logger.error(
                "task_run_abandon_failed",
                run_id=str(run.id),
                error=str(write_error),
            )
            return

        logger.warning("task_run_abandoned", run_id=str(run.id), error=error)

    async def _notify(self, task: Task, run: TaskRun) -> None:
        if not wants_notification(task, run):
            return

        destination = task.notification_email
        if not destination:
            owner = await self.user_service.get_by_id(task.user_id)
            destination = owner.email if owner else None

        if not destination:
            logger.info("run_notification_skipped_no_destination", task_id=str(task.id))
            return

        try:
            await self.notifier.notify_task_outcome(destination, task, run)
        except Exception as e:
            # Already recorded as a failed notification log; the run stays final
            logger.error(
                "run_notification_failed",
                task_id=str(task.id),
                run_id=str(run.id),
                error=str(e),
            )

    async def _check_usage(self, task: Task) -> None:
        if self.usage_service is None:
            return
        try:
            owner = await self.user_service.get_by_id(task.user_id)
            if owner is not None:
                await self.usage_service.check_run_usage(owner)
        except Exception as e:
            logger.warning("run_usage_check_failed", task_id=str(task.id), error=str(e))

    def _on_background_done(self, completion: asyncio.Task) -> None:
        self._pending.discard(completion)
        if completion.cancelled():
            logger.warning("background_run_cancelled")
            return
        exc = completion.exception()
        if exc is not None:
            logger.error(
                "background_run_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def await_pending_runs(self, timeout: float = 10.0) -> None:
        """Wait for background runs to finish. Called during shutdown.

        Runs still in flight after the timeout are cancelled and recorded as
        failed, so no row is left 'running'.
        """
        if not self._pending:
            return

        logger.info("draining_pending_runs", count=len(self._pending))
        _, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        if not still_running:
            return

        logger.warning(
            "pending_runs_timeout",
            remaining=len(still_running),
            timeout=timeout,
        )
        for completion in still_running:
            completion.cancel()
        await asyncio.gather(*still_running, return_exceptions=True)
