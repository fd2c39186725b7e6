"""
Room allocator: places a user in a capacity-bounded room for a
(support group, stage) pair, and takes them out again.

A join runs as a bounded series of attempts. Each attempt walks the steps

    CHECK_ELIGIBILITY -> SHORT_CIRCUIT -> FIND_OR_CREATE_ROOM -> RESERVE_SLOT
        -> REGISTER_MEMBERSHIP -> CONFIRM_MEMBERSHIP

where every step either hands over to the next one, finishes the join
(joined / already_member / rejected) or asks for a retry. Retries restart the
whole attempt after an exponential backoff (base_delay * 2**attempt). When the
attempts run out the caller gets `server_busy`, which is always transient.

Storage races are expected and never escape:
- two creators picking the same room_number hit the unique index; the loser retries
- capacity is reserved with a compare-and-swap on the room row, so two joins can
  never both take the last slot
- a slot reserved for a membership that then fails to register is given back
- a membership that lands after an archive or a suspend/ban sweep already ran is
  undone once the room and the user are read again
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from app.config import RoomStatus, settings
from app.core.logging import get_logger
from app.models.room_member import SupportRoomMembers
from app.models.support_room import SupportRooms
from app.services.room_storage import RoomStorage, StorageConflictError, StorageError
from app.services.user_status import Rejection, check_eligibility

logger = get_logger(__name__)


class RoomError(Exception):
    """Base class for room operations that cannot be carried out."""


class RoomNotFoundError(RoomError):
    pass


class NotAMemberError(RoomError):
    """The user has no active membership in the room."""


class JoinOutcome:
    """Join result constants"""

    JOINED = "joined"
    ALREADY_MEMBER = "already_member"
    REJECTED = "rejected"
    SERVER_BUSY = "server_busy"


class JoinStep(str, Enum):
    CHECK_ELIGIBILITY = "check_eligibility"
    SHORT_CIRCUIT = "short_circuit"
    FIND_OR_CREATE_ROOM = "find_or_create_room"
    RESERVE_SLOT = "reserve_slot"
    REGISTER_MEMBERSHIP = "register_membership"
    CONFIRM_MEMBERSHIP = "confirm_membership"


@dataclass
class JoinResult:
    outcome: str
    room: SupportRooms | None = None
    membership: SupportRoomMembers | None = None
    rejection: Rejection | None = None
    attempts: int = 0


@dataclass(frozen=True)
class Retry:
    """Transition that abandons the current attempt."""

    step: JoinStep
    reason: str


@dataclass
class JoinAttempt:
    """State carried between the steps of one attempt."""

    support_group_id: int
    stage: str
    user_id: int
    number: int
    room: SupportRooms | None = None
    slot_reserved: bool = False
    membership: SupportRoomMembers | None = None
    path: list[JoinStep] = field(default_factory=list)


Transition = JoinStep | JoinResult | Retry


async def release_membership(storage: RoomStorage, membership: SupportRoomMembers) -> bool:
    """
    End a membership and give its slot back to the room.

    Both happen in one storage transaction. Returns False (and leaves the
    counter alone) if the membership had already ended, so sweeps can be re-run
    safely.
    """
    assert membership.membership_id is not None
    return await storage.end_membership_and_release(membership.membership_id)


class RoomAllocator:
    """Join/leave logic over an injected RoomStorage."""

    def __init__(
        self,
        storage: RoomStorage,
        *,
        max_members: int | None = None,
        max_retries: int | None = None,
        base_delay_ms: int | None = None,
    ) -> None:
        self.storage = storage
        self.max_members = max_members if max_members is not None else settings.MAX_ROOM_MEMBERS
        self.max_retries = max_retries if max_retries is not None else settings.JOIN_MAX_RETRIES
        self.base_delay_ms = (
            base_delay_ms if base_delay_ms is not None else settings.JOIN_RETRY_BASE_DELAY_MS
        )
        self._steps: dict[JoinStep, Callable[[JoinAttempt], Awaitable[Transition]]] = {
            JoinStep.CHECK_ELIGIBILITY: self.check_eligibility,
            JoinStep.SHORT_CIRCUIT: self.short_circuit,
            JoinStep.FIND_OR_CREATE_ROOM: self.find_or_create_room,
            JoinStep.RESERVE_SLOT: self.reserve_slot,
            JoinStep.REGISTER_MEMBERSHIP: self.register_membership,
            JoinStep.CONFIRM_MEMBERSHIP: self.confirm_membership,
        }

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (0-based) failed attempt."""
        return self.base_delay_ms * (2**attempt) / 1000

    async def join_room(self, support_group_id: int, stage: str, user_id: int) -> JoinResult:
        """
        Put the user in a room for (support_group_id, stage).

        Safe to call repeatedly: a user who is already in a room for the pair gets
        that room back as `already_member` and nothing is written.
        """
        for attempt in range(self.max_retries):
            ctx = JoinAttempt(
                support_group_id=support_group_id,
                stage=stage,
                user_id=user_id,
                number=attempt + 1,
            )
            transition = await self.run_attempt(ctx)

            if isinstance(transition, JoinResult):
                if transition.outcome == JoinOutcome.JOINED:
                    logger.info(
                        "room_joined",
                        user_id=user_id,
                        room_id=transition.room.room_id if transition.room else None,
                        support_group_id=support_group_id,
                        stage=stage,
                        attempts=ctx.number,
                    )
                return transition

            logger.info(
                "room_join_retry",
                user_id=user_id,
                support_group_id=support_group_id,
                stage=stage,
                attempt=ctx.number,
                step=transition.step.value,
                reason=transition.reason,
            )
            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff_delay(attempt))

        logger.warning(
            "room_join_server_busy",
            user_id=user_id,
            support_group_id=support_group_id,
            stage=stage,
            attempts=self.max_retries,
        )
        return JoinResult(outcome=JoinOutcome.SERVER_BUSY, attempts=self.max_retries)

    async def run_attempt(self, ctx: JoinAttempt) -> JoinResult | Retry:
        """Drive one attempt through the steps until it finishes or asks for a retry."""
        step = JoinStep.CHECK_ELIGIBILITY
        while True:
            ctx.path.append(step)
            try:
                transition = await self._steps[step](ctx)
            except StorageError as e:
                if ctx.slot_reserved or ctx.membership is not None:
                    await self.compensate(ctx)
                return Retry(step, f"storage_error: {e}")

            if isinstance(transition, JoinStep):
                step = transition
                continue
            return transition

    # ===== Steps =====

    async def check_eligibility(self, ctx: JoinAttempt) -> Transition:
        eligibility = await check_eligibility(self.storage, ctx.user_id)
        if not eligibility.eligible:
            logger.info(
                "room_join_rejected",
                user_id=ctx.user_id,
                reason=eligibility.rejection.reason if eligibility.rejection else None,
            )
            return JoinResult(
                outcome=JoinOutcome.REJECTED,
                rejection=eligibility.rejection,
                attempts=ctx.number,
            )
        return JoinStep.SHORT_CIRCUIT

    async def short_circuit(self, ctx: JoinAttempt) -> Transition:
        memberships = await self.storage.get_active_memberships_for_user(ctx.user_id)
        for membership in memberships:
            if membership.support_group_id != ctx.support_group_id or membership.stage != ctx.stage:
                continue

            room = await self.storage.get_room(membership.room_id)
            if room is not None and room.status != RoomStatus.ARCHIVED:
                return JoinResult(
                    outcome=JoinOutcome.ALREADY_MEMBER,
                    room=room,
                    membership=membership,
                    attempts=ctx.number,
                )

            # Left over from an interrupted archive sweep; finish it for this row.
            assert membership.membership_id is not None
            await self.storage.end_membership(membership.membership_id)
            logger.info(
                "stale_membership_ended",
                membership_id=membership.membership_id,
                room_id=membership.room_id,
                user_id=ctx.user_id,
            )
        return JoinStep.FIND_OR_CREATE_ROOM

    async def find_or_create_room(self, ctx: JoinAttempt) -> Transition:
        # Candidate and next room number come from the same read, so a new room
        # is only created when every room in that read was unavailable.
        rooms = await self.storage.query_rooms(ctx.support_group_id, ctx.stage)
        candidate = next((room for room in rooms if room.has_capacity), None)
        if candidate is not None:
            ctx.room = candidate
            return JoinStep.RESERVE_SLOT

        next_number = max((room.room_number for room in rooms), default=0) + 1
        try:
            ctx.room = await self.storage.create_room(
                ctx.support_group_id, ctx.stage, next_number, self.max_members
            )
        except StorageConflictError:
            return Retry(JoinStep.FIND_OR_CREATE_ROOM, f"room_number_taken: {next_number}")

        logger.info(
            "room_created",
            room_id=ctx.room.room_id,
            support_group_id=ctx.support_group_id,
            stage=ctx.stage,
            room_number=next_number,
        )
        return JoinStep.RESERVE_SLOT

    async def reserve_slot(self, ctx: JoinAttempt) -> Transition:
        assert ctx.room is not None and ctx.room.room_id is not None
        room_id = ctx.room.room_id

        # Every lost compare-and-swap means another writer got in first; keep going
        # while the room still has space.
        for _ in range(2 * max(ctx.room.max_members, self.max_members)):
            current = await self.storage.get_room(room_id)
            if current is None or not current.has_capacity:
                return Retry(JoinStep.RESERVE_SLOT, "room_unavailable")

            member_count = current.member_count + 1
            status = RoomStatus.FULL if member_count >= current.max_members else RoomStatus.OPEN
            try:
                ctx.room = await self.storage.update_room(
                    current, member_count=member_count, status=status
                )
            except StorageConflictError:
                continue

            ctx.slot_reserved = True
            return JoinStep.REGISTER_MEMBERSHIP

        return Retry(JoinStep.RESERVE_SLOT, "room_contended")

    async def register_membership(self, ctx: JoinAttempt) -> Transition:
        assert ctx.room is not None
        try:
            membership = await self.storage.create_membership(ctx.room, ctx.user_id)
        except StorageError as e:
            await self.compensate(ctx)
            return Retry(JoinStep.REGISTER_MEMBERSHIP, f"membership_not_created: {e}")

        # The slot now belongs to the membership
        ctx.membership = membership
        ctx.slot_reserved = False
        return JoinStep.CONFIRM_MEMBERSHIP

    async def confirm_membership(self, ctx: JoinAttempt) -> Transition:
        """
        Read the room and the user again now that the membership row exists.

        An archive, suspension or ban that swept memberships between the
        eligibility check and the insert could not see this one, so it is undone
        here: an archived room means another attempt, an ineligible user means a
        rejection.
        """
        assert ctx.room is not None and ctx.room.room_id is not None
        room = await self.storage.get_room(ctx.room.room_id)
        if room is None or room.status == RoomStatus.ARCHIVED:
            await self.compensate(ctx)
            return Retry(JoinStep.CONFIRM_MEMBERSHIP, "room_archived")

        eligibility = await check_eligibility(self.storage, ctx.user_id)
        if not eligibility.eligible:
            await self.compensate(ctx)
            logger.info(
                "room_join_rejected",
                user_id=ctx.user_id,
                reason=eligibility.rejection.reason if eligibility.rejection else None,
                room_id=ctx.room.room_id,
            )
            return JoinResult(
                outcome=JoinOutcome.REJECTED,
                rejection=eligibility.rejection,
                attempts=ctx.number,
            )

        return JoinResult(
            outcome=JoinOutcome.JOINED,
            room=ctx.room,
            membership=ctx.membership,
            attempts=ctx.number,
        )

    async def compensate(self, ctx: JoinAttempt) -> None:
        """
        Give back what this attempt holds: an unconfirmed membership together with
        its slot, or a bare reserved slot. Failure is logged, not raised.
        """
        assert ctx.room is not None and ctx.room.room_id is not None
        membership = ctx.membership
        room: SupportRooms | None = None
        try:
            if membership is not None:
                assert membership.membership_id is not None
                await self.storage.end_membership_and_release(membership.membership_id)
            else:
                room = await self.storage.release_slot(ctx.room.room_id)
        except StorageError as e:
            logger.error(
                "slot_compensation_failed",
                room_id=ctx.room.room_id,
                user_id=ctx.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        finally:
            ctx.slot_reserved = False
            ctx.membership = None

        if room is not None:
            ctx.room = room
        logger.info("slot_compensated", room_id=ctx.room.room_id, user_id=ctx.user_id)

    # ===== Leave =====

    async def leave_room(self, room_id: int, user_id: int) -> SupportRooms:
        """
        End the user's active membership in the room and free the slot.

        Raises NotAMemberError if there is no active membership.
        """
        membership = await self.storage.get_active_membership(room_id, user_id)
        if membership is None or not await release_membership(self.storage, membership):
            raise NotAMemberError(f"user {user_id} is not an active member of room {room_id}")

        room = await self.storage.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"room {room_id} not found")

        logger.info("room_left", room_id=room_id, user_id=user_id, member_count=room.member_count)
        return room
