"""User models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class Plan(str, Enum):
    """Subscription plans."""

    FREE = "FREE"
    PRO = "PRO"
    BUSINESS = "BUSINESS"


class User(BaseModel):
    """An authenticated BrowserCron user."""

    id: UUID
    email: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None
    plan: Plan = Plan.FREE
    weekly_digest_enabled: bool = True
    created_at: datetime
