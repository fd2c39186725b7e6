"""
Support room API endpoints.

- POST /support-rooms/join: place a user in a room for (support group, stage)
- POST /support-rooms/{room_id}/leave: leave a room
- GET /support-rooms/my-rooms: a user's active rooms
- GET /support-rooms/{room_id}: room details
- GET /support-rooms/{room_id}/members: a room's active members

The caller's identity is established upstream; user ids arrive already
authenticated.
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query, status

from app.api.dependencies import AllocatorDep, StorageDep
from app.api.errors import service_busy
from app.schemas.support_room import (
    JoinRejectedDetail,
    JoinRoomRequest,
    JoinRoomResponse,
    LeaveRoomRequest,
    LeaveRoomResponse,
    MembershipResponse,
    MyRoomItem,
    MyRoomsResponse,
    RoomMemberItem,
    RoomMembersResponse,
    SupportRoomResponse,
)
from app.services.room_allocator import JoinOutcome, NotAMemberError, RoomNotFoundError
from app.services.room_storage import StorageError
from app.services.user_status import RejectionReason

router = APIRouter(prefix="/support-rooms", tags=["support-rooms"])


@router.post("/join", response_model=JoinRoomResponse)
async def join_room(
    join_data: JoinRoomRequest,
    allocator: AllocatorDep,
) -> JoinRoomResponse:
    """
    Join a room for a support group and stage.

    Returns the existing room if the user is already in one for this pair.
    Responds 403 for banned/suspended users, 404 for unknown users and 503
    when the room could not be allocated right now (safe to retry).
    """
    result = await allocator.join_room(
        join_data.support_group_id, join_data.stage, join_data.user_id
    )

    if result.outcome == JoinOutcome.REJECTED:
        assert result.rejection is not None
        if result.rejection.reason == RejectionReason.USER_NOT_FOUND:
            raise HTTPException(status_code=404, detail="User not found")
        detail = JoinRejectedDetail(
            reason=result.rejection.reason,
            suspended_until=result.rejection.suspended_until,
            days_remaining=result.rejection.days_remaining,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail=detail.model_dump(mode="json")
        )

    if result.outcome == JoinOutcome.SERVER_BUSY:
        raise service_busy("Rooms are busy right now. Please try again shortly.")

    assert result.room is not None
    return JoinRoomResponse(
        outcome=result.outcome,  # type: ignore[arg-type]
        room=SupportRoomResponse.model_validate(result.room),
        membership=(
            MembershipResponse.model_validate(result.membership) if result.membership else None
        ),
        attempts=result.attempts,
    )


@router.post("/{room_id}/leave", response_model=LeaveRoomResponse)
async def leave_room(
    room_id: Annotated[int, Path(description="Room ID")],
    leave_data: LeaveRoomRequest,
    allocator: AllocatorDep,
) -> LeaveRoomResponse:
    """Leave a room. Responds 404 if the user is not an active member."""
    try:
        room = await allocator.leave_room(room_id, leave_data.user_id)
    except NotAMemberError as e:
        raise HTTPException(status_code=404, detail="User is not a member of this room") from e
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail="Room not found") from e
    except StorageError as e:
        raise service_busy() from e

    return LeaveRoomResponse(
        message="Left room successfully",
        room=SupportRoomResponse.model_validate(room),
    )


@router.get("/my-rooms", response_model=MyRoomsResponse)
async def get_my_rooms(
    user_id: Annotated[int, Query(ge=1, description="User whose rooms to list")],
    storage: StorageDep,
) -> MyRoomsResponse:
    """List the rooms a user is currently in, most recently joined first."""
    rows = await storage.list_user_rooms(user_id)
    return MyRoomsResponse(
        total=len(rows),
        rooms=[
            MyRoomItem(
                room=SupportRoomResponse.model_validate(room),
                role_in_room=membership.role_in_room,
                joined_at=membership.joined_at,
            )
            for membership, room in rows
        ],
    )


@router.get("/{room_id}", response_model=SupportRoomResponse)
async def get_room(
    room_id: Annotated[int, Path(description="Room ID")],
    storage: StorageDep,
) -> SupportRoomResponse:
    """Get a room's details."""
    room = await storage.get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return SupportRoomResponse.model_validate(room)


@router.get("/{room_id}/members", response_model=RoomMembersResponse)
async def get_room_members(
    room_id: Annotated[int, Path(description="Room ID")],
    storage: StorageDep,
) -> RoomMembersResponse:
    """List a room's active members in join order."""
    room = await storage.get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")

    memberships = await storage.get_active_memberships_for_room(room_id)
    return RoomMembersResponse(
        room_id=room_id,
        total=len(memberships),
        members=[RoomMemberItem.model_validate(m) for m in memberships],
    )
