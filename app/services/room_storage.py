"""
Room storage: the persistence boundary of the room allocator and moderation engine.

`RoomStorage` is the interface the services depend on; `SqlRoomStorage` implements
it on top of SQLModel tables. Each method runs in its own short transaction
(one session, one commit), so callers compose operations and handle races
themselves:

- create_room fails with StorageConflictError when (group, stage, room_number)
  already exists
- update_room is optimistic on SupportRooms.version and fails with
  StorageConflictError when the row changed since it was read
- create_membership fails with StorageConflictError when the user already has an
  active membership for the room's (group, stage)
- end_membership_and_release stamps left_at and frees the slot in the same
  transaction, so a slot is never held by an ended membership

Database errors never leave this module as raw SQLAlchemy exceptions.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Protocol, TypeVar

from sqlalchemy import Update, case, desc, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import RoomStatus, UserStatus
from app.core.logging import get_logger
from app.models.moderation_action import ModerationActions
from app.models.room_content import RoomContentBase
from app.models.room_member import SupportRoomMembers
from app.models.support_room import SupportRooms
from app.models.user import Users
from app.utils import utc_now

logger = get_logger(__name__)

ContentT = TypeVar("ContentT", bound=RoomContentBase)


class StorageError(Exception):
    """Base class for storage failures."""


class StorageConflictError(StorageError):
    """A write lost a race: duplicate key or optimistic version mismatch."""


class StorageUnavailableError(StorageError):
    """The database could not serve the request (locked, disconnected, ...)."""


def _release_slot_statement(room_id: int) -> Update:
    """member_count - 1 (floored at 0) and full -> open; archived rooms are left alone."""
    return (
        update(SupportRooms)
        .where(
            SupportRooms.room_id == room_id,  # type: ignore[arg-type]
            SupportRooms.status != RoomStatus.ARCHIVED,  # type: ignore[arg-type]
        )
        .values(
            member_count=case(
                (SupportRooms.member_count > 0, SupportRooms.member_count - 1),  # type: ignore[operator]
                else_=0,
            ),
            status=case(
                (SupportRooms.status == RoomStatus.FULL, RoomStatus.OPEN),  # type: ignore[arg-type]
                else_=SupportRooms.status,
            ),
            version=SupportRooms.version + 1,
        )
        .execution_options(synchronize_session=False)
    )


def _end_membership_statement(membership_id: int) -> Update:
    return (
        update(SupportRoomMembers)
        .where(
            SupportRoomMembers.membership_id == membership_id,  # type: ignore[arg-type]
            SupportRoomMembers.left_at.is_(None),  # type: ignore[union-attr]
        )
        .values(left_at=utc_now(), active=None)
        .execution_options(synchronize_session=False)
    )


class RoomStorage(Protocol):
    """Operations the allocator and moderation engine need from the data store."""

    async def get_room(self, room_id: int) -> SupportRooms | None: ...

    async def create_room(
        self, support_group_id: int, stage: str, room_number: int, max_members: int
    ) -> SupportRooms: ...

    async def update_room(self, room: SupportRooms, **values: Any) -> SupportRooms: ...

    async def release_slot(self, room_id: int) -> SupportRooms | None: ...

    async def query_rooms(
        self, support_group_id: int, stage: str, status: str | None = None
    ) -> list[SupportRooms]: ...

    async def list_rooms(
        self,
        support_group_id: int | None = None,
        stage: str | None = None,
        status: str | None = None,
    ) -> list[SupportRooms]: ...

    async def get_active_membership(
        self, room_id: int, user_id: int
    ) -> SupportRoomMembers | None: ...

    async def get_active_memberships_for_user(self, user_id: int) -> list[SupportRoomMembers]: ...

    async def get_active_memberships_for_room(self, room_id: int) -> list[SupportRoomMembers]: ...

    async def list_user_rooms(
        self, user_id: int
    ) -> list[tuple[SupportRoomMembers, SupportRooms]]: ...

    async def create_membership(self, room: SupportRooms, user_id: int) -> SupportRoomMembers: ...

    async def end_membership(self, membership_id: int) -> bool: ...

    async def end_membership_and_release(self, membership_id: int) -> bool: ...

    async def get_user(self, user_id: int) -> Users | None: ...

    async def set_user_status(
        self,
        user_id: int,
        status: str,
        suspended_until: datetime | None = None,
        reason: str | None = None,
    ) -> bool: ...

    async def expire_suspension(self, user_id: int, now: datetime) -> bool: ...

    async def append_moderation_action(self, action: ModerationActions) -> ModerationActions: ...

    async def list_moderation_actions(
        self, *, target_user_id: int | None = None, limit: int = 50, offset: int = 0
    ) -> tuple[int, list[ModerationActions]]: ...

    async def get_content(self, model: type[ContentT], content_id: int) -> ContentT | None: ...

    async def soft_delete_content(
        self, model: type[RoomContentBase], content_id: int, moderator_id: int, reason: str
    ) -> bool: ...


class SqlRoomStorage:
    """RoomStorage backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
            except IntegrityError as e:
                await session.rollback()
                raise StorageConflictError(str(e.orig)) from e
            except OperationalError as e:
                await session.rollback()
                raise StorageUnavailableError(str(e.orig)) from e
            except DBAPIError as e:
                await session.rollback()
                if e.connection_invalidated:
                    raise StorageUnavailableError(str(e.orig)) from e
                raise StorageError(str(e.orig)) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(str(e)) from e

    # ===== Rooms =====

    async def get_room(self, room_id: int) -> SupportRooms | None:
        async with self._session() as session:
            return await session.get(SupportRooms, room_id)

    async def create_room(
        self, support_group_id: int, stage: str, room_number: int, max_members: int
    ) -> SupportRooms:
        room = SupportRooms(
            support_group_id=support_group_id,
            stage=stage,
            room_number=room_number,
            member_count=0,
            max_members=max_members,
            status=RoomStatus.OPEN,
            version=1,
            created_at=utc_now(),
        )
        async with self._session() as session:
            session.add(room)
            await session.commit()
        return room

    async def update_room(self, room: SupportRooms, **values: Any) -> SupportRooms:
        """
        Write `values` to the room if nobody else has written it since `room` was read.

        Returns the room as written. Raises StorageConflictError if the stored
        version no longer matches `room.version`.
        """
        new_version = room.version + 1
        async with self._session() as session:
            result = await session.execute(
                update(SupportRooms)
                .where(
                    SupportRooms.room_id == room.room_id,  # type: ignore[arg-type]
                    SupportRooms.version == room.version,  # type: ignore[arg-type]
                )
                .values(**values, version=new_version)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:  # type: ignore[attr-defined]
            raise StorageConflictError(
                f"room {room.room_id} changed since version {room.version}"
            )
        return SupportRooms(**{**room.model_dump(), **values, "version": new_version})

    async def release_slot(self, room_id: int) -> SupportRooms | None:
        """
        Give one slot back to a room: member_count - 1 (floored at 0), full -> open.

        Archived rooms keep their frozen counter. Returns the room after the update,
        or None if it does not exist.
        """
        async with self._session() as session:
            await session.execute(_release_slot_statement(room_id))
            await session.commit()
            return await session.get(SupportRooms, room_id)

    async def query_rooms(
        self, support_group_id: int, stage: str, status: str | None = None
    ) -> list[SupportRooms]:
        """Rooms for one (group, stage), lowest room_number first."""
        query = select(SupportRooms).where(
            SupportRooms.support_group_id == support_group_id,  # type: ignore[arg-type]
            SupportRooms.stage == stage,  # type: ignore[arg-type]
        )
        if status is not None:
            query = query.where(SupportRooms.status == status)  # type: ignore[arg-type]
        query = query.order_by(SupportRooms.room_number)  # type: ignore[arg-type]

        async with self._session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_rooms(
        self,
        support_group_id: int | None = None,
        stage: str | None = None,
        status: str | None = None,
    ) -> list[SupportRooms]:
        """Moderator view of rooms, newest first."""
        query = select(SupportRooms)
        if support_group_id is not None:
            query = query.where(SupportRooms.support_group_id == support_group_id)  # type: ignore[arg-type]
        if stage is not None:
            query = query.where(SupportRooms.stage == stage)  # type: ignore[arg-type]
        if status is not None:
            query = query.where(SupportRooms.status == status)  # type: ignore[arg-type]
        query = query.order_by(desc(SupportRooms.created_at), desc(SupportRooms.room_id))  # type: ignore[arg-type]

        async with self._session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # ===== Memberships =====

    async def get_active_membership(
        self, room_id: int, user_id: int
    ) -> SupportRoomMembers | None:
        async with self._session() as session:
            result = await session.execute(
                select(SupportRoomMembers).where(
                    SupportRoomMembers.room_id == room_id,  # type: ignore[arg-type]
                    SupportRoomMembers.user_id == user_id,  # type: ignore[arg-type]
                    SupportRoomMembers.left_at.is_(None),  # type: ignore[union-attr]
                )
            )
            return result.scalars().first()

    async def get_active_memberships_for_user(self, user_id: int) -> list[SupportRoomMembers]:
        async with self._session() as session:
            result = await session.execute(
                select(SupportRoomMembers)
                .where(
                    SupportRoomMembers.user_id == user_id,  # type: ignore[arg-type]
                    SupportRoomMembers.left_at.is_(None),  # type: ignore[union-attr]
                )
                .order_by(SupportRoomMembers.membership_id)  # type: ignore[arg-type]
            )
            return list(result.scalars().all())

    async def get_active_memberships_for_room(self, room_id: int) -> list[SupportRoomMembers]:
        async with self._session() as session:
            result = await session.execute(
                select(SupportRoomMembers)
                .where(
                    SupportRoomMembers.room_id == room_id,  # type: ignore[arg-type]
                    SupportRoomMembers.left_at.is_(None),  # type: ignore[union-attr]
                )
                .order_by(SupportRoomMembers.joined_at, SupportRoomMembers.membership_id)  # type: ignore[arg-type]
            )
            return list(result.scalars().all())

    async def list_user_rooms(self, user_id: int) -> list[tuple[SupportRoomMembers, SupportRooms]]:
        """Active memberships of a user with their rooms, most recent join first."""
        async with self._session() as session:
            result = await session.execute(
                select(SupportRoomMembers, SupportRooms)  # type: ignore[call-overload]
                .join(SupportRooms, SupportRoomMembers.room_id == SupportRooms.room_id)
                .where(
                    SupportRoomMembers.user_id == user_id,
                    SupportRoomMembers.left_at.is_(None),  # type: ignore[union-attr]
                )
                .order_by(
                    desc(SupportRoomMembers.joined_at), desc(SupportRoomMembers.membership_id)
                )
            )
            return [(membership, room) for membership, room in result.all()]

    async def create_membership(self, room: SupportRooms, user_id: int) -> SupportRoomMembers:
        assert room.room_id is not None
        membership = SupportRoomMembers(
            room_id=room.room_id,
            user_id=user_id,
            support_group_id=room.support_group_id,
            stage=room.stage,
            joined_at=utc_now(),
            active=1,
        )
        async with self._session() as session:
            session.add(membership)
            await session.commit()
        return membership

    async def end_membership(self, membership_id: int) -> bool:
        """
        Stamp left_at on an active membership.

        Returns False if the membership had already ended, so repeated calls are
        harmless.
        """
        async with self._session() as session:
            result = await session.execute(_end_membership_statement(membership_id))
            await session.commit()
        return bool(result.rowcount == 1)  # type: ignore[attr-defined]

    async def end_membership_and_release(self, membership_id: int) -> bool:
        """
        End an active membership and give its slot back, in one transaction.

        The counter only moves when the membership was still active, so a repeat
        call changes nothing and returns False. If anything fails, neither change
        is kept and the call can simply be made again.
        """
        async with self._session() as session:
            result = await session.execute(_end_membership_statement(membership_id))
            ended = result.rowcount == 1  # type: ignore[attr-defined]
            if ended:
                room_id = await session.scalar(
                    select(SupportRoomMembers.room_id).where(
                        SupportRoomMembers.membership_id == membership_id  # type: ignore[arg-type]
                    )
                )
                await session.execute(_release_slot_statement(room_id))
            await session.commit()
        return bool(ended)

    # ===== Users =====

    async def get_user(self, user_id: int) -> Users | None:
        async with self._session() as session:
            return await session.get(Users, user_id)

    async def set_user_status(
        self,
        user_id: int,
        status: str,
        suspended_until: datetime | None = None,
        reason: str | None = None,
    ) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(Users)
                .where(Users.user_id == user_id)  # type: ignore[arg-type]
                .values(status=status, suspended_until=suspended_until, status_reason=reason)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return bool(result.rowcount == 1)  # type: ignore[attr-defined]

    async def expire_suspension(self, user_id: int, now: datetime) -> bool:
        """
        Reactivate a user whose suspension has run out.

        Only touches the row if it is still suspended with suspended_until <= now,
        so a ban or a fresh suspension issued in the meantime is left alone.
        """
        async with self._session() as session:
            result = await session.execute(
                update(Users)
                .where(
                    Users.user_id == user_id,  # type: ignore[arg-type]
                    Users.status == UserStatus.SUSPENDED,  # type: ignore[arg-type]
                    Users.suspended_until <= now,  # type: ignore[operator]
                )
                .values(status=UserStatus.ACTIVE, suspended_until=None, status_reason=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return bool(result.rowcount == 1)  # type: ignore[attr-defined]

    # ===== Moderation audit log =====

    async def append_moderation_action(self, action: ModerationActions) -> ModerationActions:
        if action.created_at is None:
            action.created_at = utc_now()
        async with self._session() as session:
            session.add(action)
            await session.commit()
        return action

    async def list_moderation_actions(
        self, *, target_user_id: int | None = None, limit: int = 50, offset: int = 0
    ) -> tuple[int, list[ModerationActions]]:
        """Audit records, newest first, with the total count for pagination."""
        query = select(ModerationActions)
        count_query = select(func.count()).select_from(ModerationActions)
        if target_user_id is not None:
            query = query.where(ModerationActions.target_user_id == target_user_id)  # type: ignore[arg-type]
            count_query = count_query.where(
                ModerationActions.target_user_id == target_user_id  # type: ignore[arg-type]
            )
        query = (
            query.order_by(desc(ModerationActions.created_at), desc(ModerationActions.action_id))  # type: ignore[arg-type]
            .offset(offset)
            .limit(limit)
        )

        async with self._session() as session:
            total = (await session.execute(count_query)).scalar() or 0
            result = await session.execute(query)
            return total, list(result.scalars().all())

    # ===== Moderated content =====

    async def get_content(self, model: type[ContentT], content_id: int) -> ContentT | None:
        async with self._session() as session:
            return await session.get(model, content_id)

    async def soft_delete_content(
        self, model: type[RoomContentBase], content_id: int, moderator_id: int, reason: str
    ) -> bool:
        """Stamp deleted_at on a message/post/comment. False if already deleted or missing."""
        async with self._session() as session:
            result = await session.execute(
                update(model)
                .where(
                    model.id == content_id,  # type: ignore[attr-defined]
                    model.deleted_at.is_(None),  # type: ignore[union-attr]
                )
                .values(deleted_at=utc_now(), deleted_by=moderator_id, moderation_reason=reason)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        if result.rowcount == 1:  # type: ignore[attr-defined]
            logger.debug("content_soft_deleted", table=model.__tablename__, content_id=content_id)  # type: ignore[attr-defined]
            return True
        return False
