"""
Moderation engine.

Moderator-only operations on users, rooms and room content. Callers are
expected to have verified moderator privileges already.

Every successful operation appends exactly one ModerationActions record. The
mutation and the audit record are independent: if writing the record fails the
failure is logged and the mutation stands; if the mutation fails before
changing anything nothing is recorded.

Suspend and ban sweep all of the user's active memberships. A sweep is not
atomic, but each membership transition is idempotent, so an interrupted sweep
can simply be run again. A sweep that stops on a storage error after the status
change went through is still recorded (with `sweep_incomplete` in its details)
before the error is raised to the caller.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from app.config import ModerationActionType, RoomStatus, UserStatus, settings
from app.core.logging import get_logger
from app.models.moderation_action import ModerationActions
from app.models.room_content import PostComments, RoomContentBase, RoomMessages, RoomPosts
from app.models.user import Users
from app.services.room_allocator import (
    NotAMemberError,
    RoomError,
    RoomNotFoundError,
    release_membership,
)
from app.services.room_storage import RoomStorage, StorageConflictError, StorageError
from app.utils import utc_now

logger = get_logger(__name__)


class ModerationError(Exception):
    """Base class for moderation requests that cannot be carried out."""


class UserNotFoundError(ModerationError):
    pass


class InvalidSuspensionError(ModerationError):
    pass


class ContentNotFoundError(ModerationError):
    pass


class ContentAlreadyDeletedError(ModerationError):
    pass


class RoomArchivedError(RoomError):
    """The room is already archived."""


@dataclass
class ModerationResult:
    """What a moderation operation did. `action` is None if the audit write failed."""

    action_type: str
    action: ModerationActions | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def audit_logged(self) -> bool:
        return self.action is not None


CONTENT_TYPES: dict[str, tuple[type[RoomContentBase], str]] = {
    "message": (RoomMessages, ModerationActionType.DELETE_MESSAGE),
    "post": (RoomPosts, ModerationActionType.DELETE_POST),
    "comment": (PostComments, ModerationActionType.DELETE_COMMENT),
}


class ModerationService:
    """Kick/suspend/ban/archive/delete over an injected RoomStorage."""

    def __init__(
        self,
        storage: RoomStorage,
        *,
        default_reason: str | None = None,
        max_suspension_days: int | None = None,
        archive_retries: int | None = None,
    ) -> None:
        self.storage = storage
        self.default_reason = (
            default_reason if default_reason is not None else settings.DEFAULT_MODERATION_REASON
        )
        self.max_suspension_days = (
            max_suspension_days if max_suspension_days is not None else settings.MAX_SUSPENSION_DAYS
        )
        self.archive_retries = (
            archive_retries if archive_retries is not None else settings.JOIN_MAX_RETRIES
        )

    async def _record(
        self,
        moderator_id: int,
        action_type: str,
        reason: str | None,
        *,
        target_user_id: int | None = None,
        target_room_id: int | None = None,
        target_message_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> ModerationResult:
        """Append the audit record for a completed operation. Never raises."""
        action = ModerationActions(
            moderator_id=moderator_id,
            action_type=action_type,
            target_user_id=target_user_id,
            target_room_id=target_room_id,
            target_message_id=target_message_id,
            reason=reason or self.default_reason,
            details=details or {},
        )
        try:
            saved = await self.storage.append_moderation_action(action)
        except StorageError as e:
            logger.warning(
                "moderation_audit_log_failed",
                moderator_id=moderator_id,
                action_type=action_type,
                target_user_id=target_user_id,
                target_room_id=target_room_id,
                target_message_id=target_message_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ModerationResult(action_type=action_type, details=details or {})

        logger.info(
            "moderation_action",
            moderator_id=moderator_id,
            action_type=action_type,
            target_user_id=target_user_id,
            target_room_id=target_room_id,
            target_message_id=target_message_id,
        )
        return ModerationResult(action_type=action_type, action=saved, details=details or {})

    async def _require_user(self, user_id: int) -> Users:
        user = await self.storage.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"user {user_id} not found")
        return user

    async def _sweep_user_memberships(self, user_id: int) -> tuple[int, StorageError | None]:
        """
        End every active membership of the user, freeing each slot.

        Returns the number of rooms left and, if the sweep stopped early, the
        storage error that stopped it. Memberships ended before the error stay
        ended, and running the sweep again picks up the rest.
        """
        removed = 0
        try:
            for membership in await self.storage.get_active_memberships_for_user(user_id):
                if await release_membership(self.storage, membership):
                    removed += 1
        except StorageError as e:
            logger.warning(
                "membership_sweep_incomplete",
                user_id=user_id,
                rooms_removed=removed,
                error=str(e),
                error_type=type(e).__name__,
            )
            return removed, e
        return removed, None

    # ===== Room membership =====

    async def kick_user(
        self, moderator_id: int, user_id: int, room_id: int, reason: str | None = None
    ) -> ModerationResult:
        room = await self.storage.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"room {room_id} not found")

        membership = await self.storage.get_active_membership(room_id, user_id)
        if membership is None or not await release_membership(self.storage, membership):
            raise NotAMemberError(f"user {user_id} is not an active member of room {room_id}")

        return await self._record(
            moderator_id,
            ModerationActionType.KICK,
            reason,
            target_user_id=user_id,
            target_room_id=room_id,
            details={"kicked_at": utc_now().isoformat()},
        )

    # ===== User status =====

    async def suspend_user(
        self, moderator_id: int, user_id: int, days: int, reason: str | None = None
    ) -> ModerationResult:
        if days < 1 or days > self.max_suspension_days:
            raise InvalidSuspensionError(
                f"suspension must last between 1 and {self.max_suspension_days} days"
            )
        await self._require_user(user_id)

        suspended_until = utc_now() + timedelta(days=days)
        await self.storage.set_user_status(
            user_id, UserStatus.SUSPENDED, suspended_until=suspended_until, reason=reason
        )
        rooms_removed, sweep_error = await self._sweep_user_memberships(user_id)

        details: dict[str, Any] = {
            "duration_days": days,
            "suspended_until": suspended_until.isoformat(),
            "rooms_removed": rooms_removed,
        }
        if sweep_error is not None:
            details["sweep_incomplete"] = True
        result = await self._record(
            moderator_id,
            ModerationActionType.SUSPEND,
            reason,
            target_user_id=user_id,
            details=details,
        )
        if sweep_error is not None:
            raise sweep_error
        return result

    async def unsuspend_user(
        self, moderator_id: int, user_id: int, reason: str | None = None
    ) -> ModerationResult:
        """Lift a suspension early. Memberships ended by the suspension stay ended."""
        await self._require_user(user_id)
        await self.storage.set_user_status(user_id, UserStatus.ACTIVE)
        return await self._record(
            moderator_id, ModerationActionType.UNSUSPEND, reason, target_user_id=user_id
        )

    async def ban_user(
        self, moderator_id: int, user_id: int, reason: str | None = None
    ) -> ModerationResult:
        await self._require_user(user_id)
        await self.storage.set_user_status(user_id, UserStatus.BANNED, reason=reason)
        rooms_removed, sweep_error = await self._sweep_user_memberships(user_id)

        details: dict[str, Any] = {"rooms_removed": rooms_removed}
        if sweep_error is not None:
            details["sweep_incomplete"] = True
        result = await self._record(
            moderator_id,
            ModerationActionType.BAN,
            reason,
            target_user_id=user_id,
            details=details,
        )
        if sweep_error is not None:
            raise sweep_error
        return result

    async def unban_user(
        self, moderator_id: int, user_id: int, reason: str | None = None
    ) -> ModerationResult:
        await self._require_user(user_id)
        await self.storage.set_user_status(user_id, UserStatus.ACTIVE)
        return await self._record(
            moderator_id, ModerationActionType.UNBAN, reason, target_user_id=user_id
        )

    # ===== Rooms =====

    async def archive_room(
        self, moderator_id: int, room_id: int, reason: str | None = None
    ) -> ModerationResult:
        """
        Close a room for good and end all of its memberships.

        The member counter is frozen at its value when archived.
        """
        for _ in range(self.archive_retries):
            room = await self.storage.get_room(room_id)
            if room is None:
                raise RoomNotFoundError(f"room {room_id} not found")
            if room.status == RoomStatus.ARCHIVED:
                raise RoomArchivedError(f"room {room_id} is already archived")
            try:
                await self.storage.update_room(
                    room, status=RoomStatus.ARCHIVED, archived_at=utc_now()
                )
                break
            except StorageConflictError:
                continue
        else:
            raise StorageConflictError(f"room {room_id} kept changing while archiving")

        # Memberships this misses are ended when their users next join
        members_removed = 0
        sweep_error: StorageError | None = None
        try:
            for membership in await self.storage.get_active_memberships_for_room(room_id):
                assert membership.membership_id is not None
                if await self.storage.end_membership(membership.membership_id):
                    members_removed += 1
        except StorageError as e:
            logger.warning(
                "membership_sweep_incomplete",
                room_id=room_id,
                members_removed=members_removed,
                error=str(e),
                error_type=type(e).__name__,
            )
            sweep_error = e

        details: dict[str, Any] = {"members_removed": members_removed}
        if sweep_error is not None:
            details["sweep_incomplete"] = True
        result = await self._record(
            moderator_id,
            ModerationActionType.ARCHIVE_ROOM,
            reason,
            target_room_id=room_id,
            details=details,
        )
        if sweep_error is not None:
            raise sweep_error
        return result

    # ===== Content =====

    async def delete_content(
        self, moderator_id: int, content_type: str, content_id: int, reason: str | None = None
    ) -> ModerationResult:
        """Soft-delete a message, post or comment."""
        model, action_type = CONTENT_TYPES[content_type]

        content = await self.storage.get_content(model, content_id)
        if content is None:
            raise ContentNotFoundError(f"{content_type} {content_id} not found")
        if content.deleted_at is not None:
            raise ContentAlreadyDeletedError(f"{content_type} {content_id} is already deleted")

        if not await self.storage.soft_delete_content(
            model, content_id, moderator_id, reason or self.default_reason
        ):
            raise ContentAlreadyDeletedError(f"{content_type} {content_id} is already deleted")

        # Messages also record who wrote them and where
        is_message = content_type == "message"
        return await self._record(
            moderator_id,
            action_type,
            reason,
            target_user_id=content.user_id if is_message else None,
            target_room_id=content.room_id if is_message else None,
            target_message_id=content_id,
            details={"content_type": content_type},
        )

    async def delete_message(
        self, moderator_id: int, message_id: int, reason: str | None = None
    ) -> ModerationResult:
        return await self.delete_content(moderator_id, "message", message_id, reason)

    async def delete_post(
        self, moderator_id: int, post_id: int, reason: str | None = None
    ) -> ModerationResult:
        return await self.delete_content(moderator_id, "post", post_id, reason)

    async def delete_comment(
        self, moderator_id: int, comment_id: int, reason: str | None = None
    ) -> ModerationResult:
        return await self.delete_content(moderator_id, "comment", comment_id, reason)
