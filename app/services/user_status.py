"""
User status gate.

Decides whether a user may join a support room. Banned users are rejected,
suspended users are rejected until their suspension runs out, and a suspension
that has run out is cleared by whoever notices it first.
"""

import math
from dataclasses import dataclass
from datetime import datetime

from app.config import UserStatus
from app.core.logging import get_logger
from app.models.user import Users
from app.services.room_storage import RoomStorage
from app.utils import utc_now

logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class RejectionReason:
    """Why a join was refused"""

    BANNED = "banned"
    SUSPENDED = "suspended"
    USER_NOT_FOUND = "user_not_found"


@dataclass(frozen=True)
class Rejection:
    reason: str
    suspended_until: datetime | None = None
    days_remaining: int | None = None


@dataclass(frozen=True)
class Eligibility:
    """Outcome of the status gate. `rejection` is None when the user may join."""

    rejection: Rejection | None = None
    reactivated: bool = False

    @property
    def eligible(self) -> bool:
        return self.rejection is None


def days_remaining(suspended_until: datetime, now: datetime) -> int:
    """Whole days left on a suspension, rounded up."""
    return math.ceil((suspended_until - now).total_seconds() / SECONDS_PER_DAY)


def suspension_expired(user: Users, now: datetime) -> bool:
    return (
        user.status == UserStatus.SUSPENDED
        and user.suspended_until is not None
        and now >= user.suspended_until
    )


def effective_status(user: Users, now: datetime | None = None) -> str:
    """The status readers should act on: an expired suspension counts as active."""
    if suspension_expired(user, now or utc_now()):
        return UserStatus.ACTIVE
    return user.status


async def check_eligibility(
    storage: RoomStorage, user_id: int, now: datetime | None = None
) -> Eligibility:
    """
    Check a user's ban/suspension state before a join.

    Not cached: the allocator calls this on every attempt, since a moderator can
    act between retries.
    """
    now = now or utc_now()
    user = await storage.get_user(user_id)

    if user is None:
        return Eligibility(rejection=Rejection(reason=RejectionReason.USER_NOT_FOUND))

    if user.status == UserStatus.BANNED:
        return Eligibility(rejection=Rejection(reason=RejectionReason.BANNED))

    if user.status == UserStatus.SUSPENDED:
        # A suspension without an end date never expires on its own
        if user.suspended_until is None or now < user.suspended_until:
            return Eligibility(
                rejection=Rejection(
                    reason=RejectionReason.SUSPENDED,
                    suspended_until=user.suspended_until,
                    days_remaining=(
                        days_remaining(user.suspended_until, now)
                        if user.suspended_until is not None
                        else None
                    ),
                )
            )

        # Expired: lazily transition back to active
        if not await storage.expire_suspension(user_id, now):
            # Someone changed the row first (another reader expired it, or a
            # moderator acted); decide on the fresh state.
            return await check_eligibility(storage, user_id, now)

        logger.info(
            "suspension_auto_expired",
            user_id=user_id,
            suspended_until=user.suspended_until.isoformat(),
        )
        return Eligibility(reactivated=True)

    return Eligibility()
