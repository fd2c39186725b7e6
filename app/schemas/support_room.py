"""
Pydantic schemas for support room endpoints.

These schemas handle:
- Joining a room for a (support group, stage) pair
- Leaving a room
- Listing a user's rooms and a room's members
"""

from typing import Literal

from pydantic import BaseModel, Field

from app.models.support_room import SupportRoomBase
from app.schemas.base import UTCDatetime, UTCDatetimeOptional

StageLiteral = Literal["beginner", "intermediate", "advanced"]


# ===== Rooms =====


class SupportRoomResponse(SupportRoomBase):
    """Response schema for a support room."""

    room_id: int
    created_at: UTCDatetimeOptional = None
    archived_at: UTCDatetimeOptional = None

    model_config = {"from_attributes": True}


class MembershipResponse(BaseModel):
    """Response schema for a room membership."""

    membership_id: int
    room_id: int
    user_id: int
    role_in_room: str
    joined_at: UTCDatetime
    left_at: UTCDatetimeOptional = None

    model_config = {"from_attributes": True}


# ===== Join / Leave =====


class JoinRoomRequest(BaseModel):
    """Schema for joining a room."""

    support_group_id: int = Field(..., ge=1, description="Support group to join")
    stage: StageLiteral = Field(..., description="Experience stage within the group")
    user_id: int = Field(..., ge=1, description="User joining the room")


class JoinRoomResponse(BaseModel):
    """Response schema for a successful join (new or existing membership)."""

    outcome: Literal["joined", "already_member"]
    room: SupportRoomResponse
    membership: MembershipResponse | None = None
    attempts: int


class JoinRejectedDetail(BaseModel):
    """Error detail returned with 403 when the user may not join."""

    outcome: Literal["rejected"] = "rejected"
    reason: str
    suspended_until: UTCDatetimeOptional = None
    days_remaining: int | None = None


class LeaveRoomRequest(BaseModel):
    """Schema for leaving a room."""

    user_id: int = Field(..., ge=1, description="User leaving the room")


class LeaveRoomResponse(BaseModel):
    """Response schema after leaving a room."""

    message: str
    room: SupportRoomResponse


# ===== Listings =====


class MyRoomItem(BaseModel):
    """A room the user is currently in."""

    room: SupportRoomResponse
    role_in_room: str
    joined_at: UTCDatetime


class MyRoomsResponse(BaseModel):
    """Response schema for a user's active rooms."""

    total: int
    rooms: list[MyRoomItem]


class RoomMemberItem(BaseModel):
    """An active member of a room."""

    user_id: int
    role_in_room: str
    joined_at: UTCDatetime

    model_config = {"from_attributes": True}


class RoomMembersResponse(BaseModel):
    """Response schema for a room's active members."""

    room_id: int
    total: int
    members: list[RoomMemberItem]


class RoomListResponse(BaseModel):
    """Response schema for the moderator room listing."""

    total: int
    rooms: list[SupportRoomResponse]
