"""
Pydantic schemas for API responses and requests
"""
from app.models.support_room import SupportRoomBase  # Re-export from models
from app.schemas.moderation import (
    KickUserRequest,
    ModerationActionListResponse,
    ModerationActionResponse,
    ModerationResponse,
    ModeratorRequest,
    SuspendUserRequest,
    UserModerationRequest,
)
from app.schemas.support_room import (
    JoinRejectedDetail,
    JoinRoomRequest,
    JoinRoomResponse,
    LeaveRoomRequest,
    LeaveRoomResponse,
    MembershipResponse,
    MyRoomsResponse,
    RoomListResponse,
    RoomMembersResponse,
    SupportRoomResponse,
)

__all__ = [
    # Base models
    "SupportRoomBase",
    # Support rooms
    "JoinRejectedDetail",
    "JoinRoomRequest",
    "JoinRoomResponse",
    "LeaveRoomRequest",
    "LeaveRoomResponse",
    "MembershipResponse",
    "MyRoomsResponse",
    "RoomListResponse",
    "RoomMembersResponse",
    "SupportRoomResponse",
    # Moderation
    "KickUserRequest",
    "ModerationActionListResponse",
    "ModerationActionResponse",
    "ModerationResponse",
    "ModeratorRequest",
    "SuspendUserRequest",
    "UserModerationRequest",
]
