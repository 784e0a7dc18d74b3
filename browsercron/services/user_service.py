"""User lookup service. Accounts are provisioned by the identity provider."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog

from browsercron.database import get_pool
from browsercron.models.user import Plan, User

logger = structlog.get_logger(__name__)

USER_COLUMNS = "id, email, name, image, plan, weekly_digest_enabled, created_at"


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        image=row["image"],
        plan=Plan(row["plan"] or Plan.FREE.value),
        weekly_digest_enabled=row["weekly_digest_enabled"],
        created_at=row["created_at"],
    )


class UserService:
    """Service for user reads and seeding."""

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID, or None if not found."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        return _row_to_user(row) if row else None

    async def upsert(
        self,
        user_id: UUID,
        email: str,
        name: Optional[str] = None,
        plan: Plan = Plan.FREE,
    ) -> User:
        """Create a user or refresh its name, keyed by email."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO users (id, email, name, plan, created_at)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (email) DO UPDATE SET name = COALESCE(EXCLUDED.name, users.name)
                RETURNING {USER_COLUMNS}
                """,
                user_id,
                email,
                name,
                plan.value,
                datetime.now(timezone.utc),
            )

        logger.info("user_upserted", user_id=str(row["id"]), email=email)
        return _row_to_user(row)

    async def list_digest_recipients(self) -> list[User]:
        """Users with an email address who have the weekly digest enabled."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE weekly_digest_enabled = TRUE AND email IS NOT NULL
                ORDER BY created_at ASC
                """
            )

        return [_row_to_user(row) for row in rows]
