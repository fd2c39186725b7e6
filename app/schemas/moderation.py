"""
Pydantic schemas for moderation endpoints.

These schemas handle:
- Kick, suspend/unsuspend, ban/unban, archive requests
- Content deletion requests
- The moderation audit log
"""

from typing import Any

from pydantic import BaseModel, Field

from app.config import settings
from app.schemas.base import UTCDatetimeOptional

# ===== Requests =====


class ModeratorRequest(BaseModel):
    """Fields every moderation request carries."""

    moderator_id: int = Field(..., ge=1, description="Moderator performing the action")
    reason: str | None = Field(None, max_length=500, description="Reason shown in the audit log")


class KickUserRequest(ModeratorRequest):
    """Schema for kicking a user out of one room."""

    user_id: int = Field(..., ge=1)
    room_id: int = Field(..., ge=1)


class SuspendUserRequest(ModeratorRequest):
    """Schema for suspending a user."""

    user_id: int = Field(..., ge=1)
    days: int = Field(..., ge=1, le=settings.MAX_SUSPENSION_DAYS, description="Suspension length")


class UserModerationRequest(ModeratorRequest):
    """Schema for unsuspend, ban and unban."""

    user_id: int = Field(..., ge=1)


# ===== Responses =====


class ModerationActionResponse(BaseModel):
    """Response schema for an audit log record."""

    action_id: int
    moderator_id: int | None
    action_type: str
    target_user_id: int | None = None
    target_room_id: int | None = None
    target_message_id: int | None = None
    reason: str
    details: dict[str, Any] | None = None
    created_at: UTCDatetimeOptional = None

    model_config = {"from_attributes": True}


class ModerationResponse(BaseModel):
    """Response schema for a completed moderation operation."""

    message: str
    action_type: str
    audit_logged: bool
    action_id: int | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ModerationActionListResponse(BaseModel):
    """Response schema for listing audit records."""

    total: int
    page: int
    per_page: int
    items: list[ModerationActionResponse]
