"""Current user endpoint."""

from fastapi import APIRouter, Depends

from browsercron.api.dependencies import get_current_user
from browsercron.models.user import User

router = APIRouter(prefix="/api", tags=["Users"])


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)) -> dict:
    """Profile and plan of the authenticated user."""
    return {
        "user_id": str(current_user.id),
        "email": current_user.email,
        "name": current_user.name,
        "image": current_user.image,
        "plan": current_user.plan.value,
        "weekly_digest_enabled": current_user.weekly_digest_enabled,
    }
