"""Acting-user identity.

Authentication happens in front of this service; it only receives the
already-authenticated user's id in the X-User-Id header and treats it as
an opaque string.
"""
from fastapi import APIRouter, Depends, Header

from app.core.config import settings

router = APIRouter(prefix="/auth", tags=["auth"])


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Dependency returning the acting user's id."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return settings.default_user_id


@router.get("/status")
async def auth_status(user_id: str = Depends(get_current_user_id)):
    """
    Report which user the service considers to be acting.

    Returns the id from the X-User-Id header, or the configured default
    user when the header is missing.
    """
    return {
        "user_id": user_id,
        "is_default_user": user_id == settings.default_user_id,
    }
