"""Task, task run and notification rule models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from croniter import croniter
from pydantic import BaseModel, Field, field_validator


class RunStatus(str, Enum):
    """Task run execution status."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class RuleType(str, Enum):
    """Known notification rule kinds. Other kinds are stored but never match."""

    TEXT_CONTAINS = "text_contains"
    TEXT_NOT_CONTAINS = "text_not_contains"
    OUTPUT_CONTAINS = "output_contains"


class NotificationRule(BaseModel):
    """A substring predicate over a run's output."""

    type: str
    value: str
    # A rule without an explicit enabled flag never fires
    enabled: bool = False


def _validate_cron(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        return None
    if not croniter.is_valid(v):
        raise ValueError(f"Invalid cron expression: {v!r}")
    return v


class Task(BaseModel):
    """A user-defined browser automation job."""

    id: UUID
    user_id: UUID
    name: str
    description: str
    target_site: str
    cron_schedule: Optional[str] = None
    is_active: bool = True
    notify_on_success: bool = False
    notify_on_failure: bool = True
    notification_email: Optional[str] = None
    custom_rules: list[NotificationRule] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @property
    def start_url(self) -> Optional[str]:
        """Target site as a start URL, when it is one."""
        site = self.target_site.strip()
        if site.startswith(("http://", "https://")):
            return site
        return None


class TaskCreate(BaseModel):
    """Request model for creating a task."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=4000)
    target_site: str = Field(..., min_length=1, max_length=500)
    cron_schedule: Optional[str] = None
    notify_on_success: bool = False
    notify_on_failure: bool = True
    notification_email: Optional[str] = None
    custom_rules: list[NotificationRule] = Field(default_factory=list)

    @field_validator("cron_schedule")
    @classmethod
    def cron_schedule_valid(cls, v: Optional[str]) -> Optional[str]:
        """Empty schedules mean manual execution only."""
        return _validate_cron(v)


class TaskUpdate(BaseModel):
    """Request model for editing a task. Unset fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=4000)
    target_site: Optional[str] = Field(default=None, min_length=1, max_length=500)
    cron_schedule: Optional[str] = None
    is_active: Optional[bool] = None
    notify_on_success: Optional[bool] = None
    notify_on_failure: Optional[bool] = None
    notification_email: Optional[str] = None
    custom_rules: Optional[list[NotificationRule]] = None

    @field_validator("cron_schedule")
    @classmethod
    def cron_schedule_valid(cls, v: Optional[str]) -> Optional[str]:
        return _validate_cron(v)


class TaskRun(BaseModel):
    """A single execution attempt of a task."""

    id: UUID
    task_id: UUID
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime
    finished_at: Optional[datetime] = None
    output_json: Optional[Any] = None
    error_msg: Optional[str] = None
    logs: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != RunStatus.RUNNING

    @property
    def duration_ms(self) -> Optional[int]:
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)
