"""Task and task run persistence."""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from browsercron.database import get_pool
from browsercron.models.task import RunStatus, Task, TaskCreate, TaskRun, TaskUpdate

logger = structlog.get_logger(__name__)

TASK_COLUMNS = """
    id, user_id, name, description, target_site, cron_schedule, is_active,
    notify_on_success, notify_on_failure, notification_email, custom_rules,
    created_at, updated_at
"""

RUN_COLUMNS = "id, task_id, status, started_at, finished_at, output_json, error_msg, logs"

# Columns a TaskUpdate may touch
UPDATABLE_COLUMNS = (
    "name",
    "description",
    "target_site",
    "cron_schedule",
    "is_active",
    "notify_on_success",
    "notify_on_failure",
    "notification_email",
    "custom_rules",
)

# Columns a TaskUpdate may explicitly clear with null
NULLABLE_COLUMNS = ("cron_schedule", "notification_email")


class TaskNotFoundError(LookupError):
    """Raised when a task does not exist (or is not visible to the caller)."""

    def __init__(self, task_id: Any):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


def _row_to_task(row) -> Task:
    return Task(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        target_site=row["target_site"],
        cron_schedule=row["cron_schedule"],
        is_active=row["is_active"],
        notify_on_success=row["notify_on_success"],
        notify_on_failure=row["notify_on_failure"],
        notification_email=row["notification_email"],
        custom_rules=row["custom_rules"] or [],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_run(row) -> TaskRun:
    return TaskRun(
        id=row["id"],
        task_id=row["task_id"],
        status=RunStatus(row["status"]),
        started_at=row["started_at"],
        finished_at=row["finished_at"],
        output_json=row["output_json"],
        error_msg=row["error_msg"],
        logs=row["logs"],
    )


class TaskService:
    """CRUD for tasks and the two-step write lifecycle of task runs."""

    async def create_task(self, user_id: str, data: TaskCreate) -> Task:
        """Create a task owned by user_id."""
        task_id = uuid4()
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO tasks
                (id, user_id, name, description, target_site, cron_schedule, is_active,
                 notify_on_success, notify_on_failure, notification_email, custom_rules,
                 created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, TRUE, $7, $8, $9, $10, $11, $11)
                RETURNING {TASK_COLUMNS}
                """,
                task_id,
                UUID(user_id),
                data.name,
                data.description,
                data.target_site,
                data.cron_schedule,
                data.notify_on_success,
                data.notify_on_failure,
                data.notification_email,
                [rule.model_dump() for rule in data.custom_rules],
                now,
            )

        logger.info(
            "task_created",
            task_id=str(task_id),
            user_id=user_id,
            cron_schedule=data.cron_schedule,
        )
        return _row_to_task(row)

    async def get_task(self, task_id: str, user_id: Optional[str] = None) -> Optional[Task]:
        """Get a task by ID, scoped to user_id when given."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            if user_id is None:
                row = await conn.fetchrow(
                    f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = $1",
                    UUID(task_id),
                )
            else:
                row = await conn.fetchrow(
                    f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = $1 AND user_id = $2",
                    UUID(task_id),
                    UUID(user_id),
                )

        return _row_to_task(row) if row else None

    async def require_task(self, task_id: str, user_id: Optional[str] = None) -> Task:
        """Like get_task but raises TaskNotFoundError."""
        task = await self.get_task(task_id, user_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def list_tasks(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> tuple[list[Task], int]:
        """List a user's tasks, newest first."""
        pool = await get_pool()
        uid = UUID(user_id)

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TASK_COLUMNS}
                FROM tasks
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                uid,
                limit,
                offset,
            )
            total = await conn.fetchval(
                "SELECT COUNT(*) FROM tasks WHERE user_id = $1",
                uid,
            )

        return [_row_to_task(row) for row in rows], total or 0

    async def count_tasks(self, user_id: str) -> int:
        pool = await get_pool()
        async with pool.acquire() as conn:
            total = await conn.fetchval(
                "SELECT COUNT(*) FROM tasks WHERE user_id = $1",
                UUID(user_id),
            )
        return total or 0

    async def update_task(
        self, task_id: str, user_id: str, changes: TaskUpdate
    ) -> Optional[Task]:
        """Apply the fields set on changes. Returns None if the task is not found."""
        fields = changes.model_dump(exclude_unset=True)
        fields = {
            k: v
            for k, v in fields.items()
            if k in UPDATABLE_COLUMNS and (v is not None or k in NULLABLE_COLUMNS)
        }

        if not fields:
            return await self.get_task(task_id, user_id)

        assignments = []
        params: list = []
        for idx, (column, value) in enumerate(fields.items(), start=1):
            assignments.append(f"{column} = ${idx}")
            params.append(value)

        param_idx = len(params) + 1
        params.extend([UUID(task_id), UUID(user_id)])

        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE tasks
                SET {", ".join(assignments)}, updated_at = NOW()
                WHERE id = ${param_idx} AND user_id = ${param_idx + 1}
                RETURNING {TASK_COLUMNS}
                """,
                *params,
            )

        if row is None:
            return None

        logger.info(
            "task_updated",
            task_id=task_id,
            user_id=user_id,
            fields=sorted(fields),
        )
        return _row_to_task(row)

    async def list_scheduled_tasks(self) -> list[tuple[Task, Optional[datetime]]]:
        """Active tasks with a cron schedule, each with its latest run start."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TASK_COLUMNS},
                       (SELECT MAX(r.started_at) FROM task_runs r WHERE r.task_id = tasks.id)
                           AS last_started_at
                FROM tasks
                WHERE is_active = TRUE AND cron_schedule IS NOT NULL
                ORDER BY created_at ASC
                """
            )

        return [(_row_to_task(row), row["last_started_at"]) for row in rows]

    async def create_run(self, task_id: UUID) -> TaskRun:
        """Insert a run in 'running' state."""
        run_id = uuid4()
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO task_runs (id, task_id, status, started_at)
                VALUES ($1, $2, 'running', $3)
                RETURNING {RUN_COLUMNS}
                """,
                run_id,
                task_id,
                now,
            )

        logger.info("task_run_created", task_id=str(task_id), run_id=str(run_id))
        return _row_to_run(row)

    async def finish_run(
        self,
        run_id: UUID,
        status: RunStatus,
        output: Any = None,
        error: Optional[str] = None,
        logs: Optional[list[str]] = None,
    ) -> TaskRun:
        """Move a running run to a terminal status.

        Raises:
            ValueError: If status is not terminal
            RuntimeError: If the run does not exist or is already terminal
        """
        if status == RunStatus.RUNNING:
            raise ValueError("finish_run requires a terminal status")

        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE task_runs
                SET status = $1, finished_at = $2, output_json = $3,
                    error_msg = $4, logs = $5
                WHERE id = $6 AND status = 'running'
                RETURNING {RUN_COLUMNS}
                """,
                status.value,
                datetime.now(timezone.utc),
                output,
                error,
                "\n".join(logs) if logs else None,
                run_id,
            )

        if row is None:
            raise RuntimeError(f"Task run {run_id} is missing or already finished")

        logger.info("task_run_finished", run_id=str(run_id), status=status.value)
        return _row_to_run(row)

    async def get_run(self, run_id: str) -> Optional[TaskRun]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {RUN_COLUMNS} FROM task_runs WHERE id = $1",
                UUID(run_id),
            )
        return _row_to_run(row) if row else None

    async def list_runs(
        self, task_id: str, limit: int = 20, offset: int = 0
    ) -> tuple[list[TaskRun], int]:
        """Run history for a task, newest first. Ownership is checked by the caller."""
        pool = await get_pool()
        tid = UUID(task_id)

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {RUN_COLUMNS}
                FROM task_runs
                WHERE task_id = $1
                ORDER BY started_at DESC
                LIMIT $2 OFFSET $3
                """,
                tid,
                limit,
                offset,
            )
            total = await conn.fetchval(
                "SELECT COUNT(*) FROM task_runs WHERE task_id = $1",
                tid,
            )

        return [_row_to_run(row) for row in rows], total or 0

    async def count_runs_since(self, user_id: str, since: datetime) -> int:
        """Count runs started by any of the user's tasks since a point in time."""
        pool = await get_pool()
        async with pool.acquire() as conn:
            total = await conn.fetchval(
                """
                SELECT COUNT(*)
                FROM task_runs r
                JOIN tasks t ON t.id = r.task_id
                WHERE t.user_id = $1 AND r.started_at >= $2
                """,
                UUID(user_id),
                since,
            )
        return total or 0

    async def run_counts_by_task(self, user_id: str, since: datetime) -> list[dict]:
        """Per-task run totals since a point in time, busiest first."""
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT t.name,
                       COUNT(*) AS runs,
                       COUNT(*) FILTER (WHERE r.status = 'success') AS successful,
                       COUNT(*) FILTER (WHERE r.status = 'failed') AS failed
                FROM task_runs r
                JOIN tasks t ON t.id = r.task_id
                WHERE t.user_id = $1 AND r.started_at >= $2
                GROUP BY t.id, t.name
                ORDER BY runs DESC, t.name ASC
                """,
                UUID(user_id),
                since,
            )
        return [dict(row) for row in rows]
