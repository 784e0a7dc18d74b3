"""Endpoints called by the external scheduler."""

import structlog
from fastapi import APIRouter, Depends

from browsercron.api.dependencies import (
    get_digest_service,
    get_schedule_service,
    verify_cron_secret,
)
from browsercron.services.digest_service import DigestService
from browsercron.services.schedule_service import ScheduleService

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["Scheduler"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.post("/tick")
async def scheduler_tick(
    service: ScheduleService = Depends(get_schedule_service),
) -> dict:
    """Start every scheduled task that is due. Runs finish in the background."""
    handles = await service.run_due_tasks()
    logger.info("scheduler_tick", started=len(handles))
    return {
        "started": len(handles),
        "runs": [
            {"id": str(h.run.id), "task_id": str(h.run.task_id), "status": h.run.status.value}
            for h in handles
        ],
    }


@router.post("/weekly-digest")
async def weekly_digest(
    service: DigestService = Depends(get_digest_service),
) -> dict:
    """Send the weekly digest to all opted-in users."""
    sent = await service.send_weekly_digests()
    return {"sent": sent}
