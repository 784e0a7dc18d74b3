"""Notification log and digest models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    """Kinds of email notifications."""

    TASK_SUCCESS = "task_success"
    TASK_FAILED = "task_failed"
    USAGE_LIMIT_TASKS = "usage_limit_tasks"
    USAGE_LIMIT_RUNS = "usage_limit_runs"
    WEEKLY_DIGEST = "weekly_digest"


class DeliveryStatus(str, Enum):
    """Outcome of a delivery attempt."""

    SENT = "sent"
    FAILED = "failed"


class LimitType(str, Enum):
    """Plan limits that trigger usage alerts."""

    TASKS = "tasks"
    RUNS = "runs"


class NotificationLog(BaseModel):
    """One email delivery attempt. Append-only."""

    id: UUID
    user_id: UUID
    task_id: Optional[UUID] = None
    type: NotificationKind
    email: str
    subject: str
    status: DeliveryStatus
    error_msg: Optional[str] = None
    created_at: datetime


class TaskDigest(BaseModel):
    """Per-task line of the weekly digest."""

    name: str
    runs: int
    success_rate: int


class DigestStats(BaseModel):
    """Aggregate run statistics for the weekly digest."""

    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    tasks: list[TaskDigest] = Field(default_factory=list)

    @property
    def success_rate(self) -> int:
        if self.total_runs == 0:
            return 0
        return round(self.successful_runs / self.total_runs * 100)
