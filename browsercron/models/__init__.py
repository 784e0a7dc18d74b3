"""Models package exports."""

from browsercron.models.automation import AutomationResult, AutomationStatus
from browsercron.models.notification import (
    DeliveryStatus,
    DigestStats,
    LimitType,
    NotificationKind,
    NotificationLog,
    TaskDigest,
)
from browsercron.models.task import (
    NotificationRule,
    RuleType,
    RunStatus,
    Task,
    TaskCreate,
    TaskRun,
    TaskUpdate,
)
from browsercron.models.user import Plan, User

__all__ = [
    "AutomationResult",
    "AutomationStatus",
    "DeliveryStatus",
    "DigestStats",
    "LimitType",
    "NotificationKind",
    "NotificationLog",
    "NotificationRule",
    "Plan",
    "RuleType",
    "RunStatus",
    "Task",
    "TaskCreate",
    "TaskDigest",
    "TaskRun",
    "TaskUpdate",
    "User",
]
