"""Task API endpoints: CRUD, run history and manual runs."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from browsercron.api.dependencies import (
    get_current_user,
    get_orchestrator,
    get_task_service,
    get_usage_service,
)
from browsercron.models.task import Task, TaskCreate, TaskRun, TaskUpdate
from browsercron.models.user import User
from browsercron.services.run_orchestrator import RunOrchestrator
from browsercron.services.task_service import TaskNotFoundError, TaskService
from browsercron.services.usage_service import UsageService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


def _format_task(task: Task) -> dict:
    """Format a task for API response."""
    return {
        "id": str(task.id),
        "name": task.name,
        "description": task.description,
        "target_site": task.target_site,
        "cron_schedule": task.cron_schedule,
        "is_active": task.is_active,
        "notify_on_success": task.notify_on_success,
        "notify_on_failure": task.notify_on_failure,
        "notification_email": task.notification_email,
        "custom_rules": [rule.model_dump() for rule in task.custom_rules],
        "created_at": task.created_at.isoformat(),
        "updated_at": task.updated_at.isoformat(),
    }


def _format_run(run: TaskRun) -> dict:
    """Format a task run for API response."""
    return {
        "id": str(run.id),
        "task_id": str(run.task_id),
        "status": run.status.value,
        "started_at": run.started_at.isoformat(),
        "finished_at": run.finished_at.isoformat() if run.finished_at else None,
        "output_json": run.output_json,
        "error_msg": run.error_msg,
        "logs": run.logs,
        "duration_ms": run.duration_ms,
    }


@router.get("")
async def list_tasks(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> dict:
    """List tasks for the authenticated user."""
    tasks, total = await service.list_tasks(str(current_user.id), limit=limit, offset=offset)
    return {
        "items": [_format_task(t) for t in tasks],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
    usage_service: UsageService = Depends(get_usage_service),
) -> dict:
    """Create a task. A usage alert is sent when nearing the plan's task limit."""
    task = await service.create_task(str(current_user.id), body)

    try:
        await usage_service.check_task_usage(current_user)
    except Exception as e:
        logger.warning("task_usage_check_failed", user_id=str(current_user.id), error=str(e))

    return {"task": _format_task(task)}


@router.get("/{task_id}")
async def get_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> dict:
    """Get a single task with its most recent runs."""
    task = await service.get_task(str(task_id), str(current_user.id))
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")

    runs, _ = await service.list_runs(str(task_id), limit=5)

    result = _format_task(task)
    result["recent_runs"] = [_format_run(r) for r in runs]
    return result


@router.patch("/{task_id}")
async def update_task(
    task_id: UUID,
    body: TaskUpdate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> dict:
    """Edit a task: activation, schedule, description or notification settings."""
    task = await service.update_task(str(task_id), str(current_user.id), body)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"task": _format_task(task)}


@router.get("/{task_id}/runs")
async def list_task_runs(
    task_id: UUID,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> dict:
    """Run history for a task."""
    task = await service.get_task(str(task_id), str(current_user.id))
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")

    runs, total = await service.list_runs(str(task_id), limit=limit, offset=offset)
    return {
        "items": [_format_run(r) for r in runs],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/{task_id}/run")
async def run_task(
    task_id: UUID,
    wait: bool = Query(default=True, description="Wait for the run to finish"),
    current_user: User = Depends(get_current_user),
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
):
    """Manually run a task.

    A provider-side failure still returns 200 with status 'failed'; only
    faults outside the provider call produce an error response.
    """
    try:
        handle = await orchestrator.execute(
            str(task_id), user_id=str(current_user.id), wait=wait
        )
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")
    except Exception as e:
        logger.exception("task_run_request_failed", task_id=str(task_id))
        return JSONResponse(
            status_code=500,
            content={"error": str(e) or "Failed to run task"},
        )

    return {
        "task_run": _format_run(handle.run),
        "message": "Task execution finished" if wait else "Task execution started",
    }
