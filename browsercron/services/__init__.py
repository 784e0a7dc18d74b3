"""Services package exports."""

from browsercron.services.logging_service import configure_logging, get_logger
from browsercron.services.notification_rules import should_notify
from browsercron.services.run_orchestrator import RunHandle, RunOrchestrator
from browsercron.services.task_service import TaskNotFoundError, TaskService

__all__ = [
    "RunHandle",
    "RunOrchestrator",
    "TaskNotFoundError",
    "TaskService",
    "configure_logging",
    "get_logger",
    "should_notify",
]
