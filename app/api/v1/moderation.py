"""
Moderation API endpoints.

These endpoints are moderator-only; privilege is checked before requests
reach this service. They provide:
- Room membership control (kick, archive room)
- User status control (suspend, unsuspend, ban, unban)
- Content removal (message, post, comment)
- The moderation audit log and a moderator view of all rooms
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from app.api.dependencies import ModerationDep, PaginationParams, StorageDep
from app.api.errors import service_busy
from app.schemas.moderation import (
    KickUserRequest,
    ModerationActionListResponse,
    ModerationActionResponse,
    ModeratorRequest,
    ModerationResponse,
    SuspendUserRequest,
    UserModerationRequest,
)
from app.schemas.support_room import RoomListResponse, StageLiteral, SupportRoomResponse
from app.services.moderation import (
    ContentAlreadyDeletedError,
    ContentNotFoundError,
    InvalidSuspensionError,
    ModerationResult,
    RoomArchivedError,
    UserNotFoundError,
)
from app.services.room_allocator import NotAMemberError, RoomNotFoundError
from app.services.room_storage import StorageError

router = APIRouter(prefix="/moderation", tags=["moderation"])


def _to_response(message: str, result: ModerationResult) -> ModerationResponse:
    return ModerationResponse(
        message=message,
        action_type=result.action_type,
        audit_logged=result.audit_logged,
        action_id=result.action.action_id if result.action else None,
        details=result.details,
    )


# ===== Room membership =====


@router.post("/kick-user", response_model=ModerationResponse)
async def kick_user(kick_data: KickUserRequest, moderation: ModerationDep) -> ModerationResponse:
    """Remove a user from one room."""
    try:
        result = await moderation.kick_user(
            kick_data.moderator_id, kick_data.user_id, kick_data.room_id, kick_data.reason
        )
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail="Room not found") from e
    except NotAMemberError as e:
        raise HTTPException(status_code=404, detail="User is not in this room") from e
    except StorageError as e:
        raise service_busy() from e

    return _to_response("User kicked from room", result)


@router.post("/rooms/{room_id}/archive", response_model=ModerationResponse)
async def archive_room(
    room_id: Annotated[int, Path(description="Room ID")],
    archive_data: ModeratorRequest,
    moderation: ModerationDep,
) -> ModerationResponse:
    """Close a room permanently and remove all of its members."""
    try:
        result = await moderation.archive_room(
            archive_data.moderator_id, room_id, archive_data.reason
        )
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail="Room not found") from e
    except RoomArchivedError as e:
        raise HTTPException(status_code=409, detail="Room is already archived") from e
    except StorageError as e:
        raise service_busy() from e

    return _to_response("Room archived", result)


# ===== User status =====


@router.post("/suspend-user", response_model=ModerationResponse)
async def suspend_user(
    suspend_data: SuspendUserRequest, moderation: ModerationDep
) -> ModerationResponse:
    """Suspend a user for a number of days and remove them from every room."""
    try:
        result = await moderation.suspend_user(
            suspend_data.moderator_id, suspend_data.user_id, suspend_data.days, suspend_data.reason
        )
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e
    except StorageError as e:
        raise service_busy() from e
    except InvalidSuspensionError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return _to_response(f"User suspended for {suspend_data.days} days", result)


@router.post("/unsuspend-user", response_model=ModerationResponse)
async def unsuspend_user(
    user_data: UserModerationRequest, moderation: ModerationDep
) -> ModerationResponse:
    """Lift a suspension early. Room memberships are not restored."""
    try:
        result = await moderation.unsuspend_user(
            user_data.moderator_id, user_data.user_id, user_data.reason
        )
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e
    except StorageError as e:
        raise service_busy() from e

    return _to_response("User unsuspended", result)


@router.post("/ban-user", response_model=ModerationResponse)
async def ban_user(
    user_data: UserModerationRequest, moderation: ModerationDep
) -> ModerationResponse:
    """Permanently ban a user and remove them from every room."""
    try:
        result = await moderation.ban_user(
            user_data.moderator_id, user_data.user_id, user_data.reason
        )
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e
    except StorageError as e:
        raise service_busy() from e

    return _to_response("User permanently banned", result)


@router.post("/unban-user", response_model=ModerationResponse)
async def unban_user(
    user_data: UserModerationRequest, moderation: ModerationDep
) -> ModerationResponse:
    """Lift a ban. Room memberships are not restored."""
    try:
        result = await moderation.unban_user(
            user_data.moderator_id, user_data.user_id, user_data.reason
        )
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e
    except StorageError as e:
        raise service_busy() from e

    return _to_response("User unbanned", result)


# ===== Content =====


async def _delete_content(
    moderation: ModerationDep,
    content_type: str,
    content_id: int,
    delete_data: ModeratorRequest,
) -> ModerationResponse:
    try:
        result = await moderation.delete_content(
            delete_data.moderator_id, content_type, content_id, delete_data.reason
        )
    except ContentNotFoundError as e:
        raise HTTPException(status_code=404, detail=f"{content_type.capitalize()} not found") from e
    except ContentAlreadyDeletedError as e:
        raise HTTPException(
            status_code=409, detail=f"{content_type.capitalize()} already deleted"
        ) from e
    except StorageError as e:
        raise service_busy() from e

    return _to_response(f"{content_type.capitalize()} deleted", result)


@router.delete("/message/{message_id}", response_model=ModerationResponse)
async def delete_message(
    message_id: Annotated[int, Path(description="Message ID")],
    delete_data: ModeratorRequest,
    moderation: ModerationDep,
) -> ModerationResponse:
    """Soft-delete a chat message."""
    return await _delete_content(moderation, "message", message_id, delete_data)


@router.delete("/post/{post_id}", response_model=ModerationResponse)
async def delete_post(
    post_id: Annotated[int, Path(description="Post ID")],
    delete_data: ModeratorRequest,
    moderation: ModerationDep,
) -> ModerationResponse:
    """Soft-delete a room post."""
    return await _delete_content(moderation, "post", post_id, delete_data)


@router.delete("/comment/{comment_id}", response_model=ModerationResponse)
async def delete_comment(
    comment_id: Annotated[int, Path(description="Comment ID")],
    delete_data: ModeratorRequest,
    moderation: ModerationDep,
) -> ModerationResponse:
    """Soft-delete a post comment."""
    return await _delete_content(moderation, "comment", comment_id, delete_data)


# ===== Audit log and room overview =====


@router.get("/actions", response_model=ModerationActionListResponse)
async def list_moderation_actions(
    pagination: Annotated[PaginationParams, Depends()],
    storage: StorageDep,
) -> ModerationActionListResponse:
    """List moderation actions, newest first."""
    total, actions = await storage.list_moderation_actions(
        limit=pagination.per_page, offset=pagination.offset
    )
    return ModerationActionListResponse(
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        items=[ModerationActionResponse.model_validate(a) for a in actions],
    )


@router.get("/users/{user_id}/history", response_model=ModerationActionListResponse)
async def get_user_moderation_history(
    user_id: Annotated[int, Path(description="User ID")],
    pagination: Annotated[PaginationParams, Depends()],
    storage: StorageDep,
) -> ModerationActionListResponse:
    """List moderation actions that targeted a user, newest first."""
    total, actions = await storage.list_moderation_actions(
        target_user_id=user_id, limit=pagination.per_page, offset=pagination.offset
    )
    return ModerationActionListResponse(
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        items=[ModerationActionResponse.model_validate(a) for a in actions],
    )


@router.get("/support-rooms", response_model=RoomListResponse)
async def list_support_rooms(
    storage: StorageDep,
    support_group_id: Annotated[int | None, Query(ge=1, description="Filter by group")] = None,
    stage: Annotated[StageLiteral | None, Query(description="Filter by stage")] = None,
    room_status: Annotated[
        str | None, Query(alias="status", pattern="^(open|full|archived)$")
    ] = None,
) -> RoomListResponse:
    """List all rooms, newest first, optionally filtered."""
    rooms = await storage.list_rooms(
        support_group_id=support_group_id, stage=stage, status=room_status
    )
    return RoomListResponse(
        total=len(rooms),
        rooms=[SupportRoomResponse.model_validate(room) for room in rooms],
    )
