"""Browser automation provider result models."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AutomationStatus(str, Enum):
    """Outcome of a submitted automation task."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    RUNNING = "running"


class AutomationResult(BaseModel):
    """Result of submitting (and optionally awaiting) a provider task.

    Attributes:
        provider_task_id: Provider-side identifier, empty if submission failed
        status: completed, failed, timeout, or running (status lookups only)
        output: Parsed structured output, or raw output when unparsed
        error: Human-readable failure reason
        logs: Provider log lines in order
    """

    provider_task_id: str = ""
    status: AutomationStatus
    output: Optional[Any] = None
    error: Optional[str] = None
    logs: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == AutomationStatus.COMPLETED
