"""
SQLModel-based SupportRoomMember model

Memberships are never deleted. Leaving, being kicked, suspended, banned or
having the room archived all stamp `left_at`; a NULL `left_at` means the
membership is active.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from app.config import RoomRole


class SupportRoomMembers(SQLModel, table=True):
    """
    Membership of one user in one support room.

    support_group_id and stage are copied from the room so that the store can
    enforce "at most one active membership per (user, group, stage)" with a
    plain unique index: `active` is 1 while the membership is live and NULL once
    it has ended, and NULLs never collide in a unique index.
    """

    __tablename__ = "support_room_members"

    __table_args__ = (
        ForeignKeyConstraint(
            ["room_id"],
            ["support_rooms.room_id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_support_room_members_room_id",
        ),
        ForeignKeyConstraint(
            ["user_id"],
            ["users.user_id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_support_room_members_user_id",
        ),
        Index(
            "uq_support_room_members_active",
            "user_id",
            "support_group_id",
            "stage",
            "active",
            unique=True,
        ),
        Index("idx_support_room_members_room_left", "room_id", "left_at"),
        Index("idx_support_room_members_user_left", "user_id", "left_at"),
    )

    # Primary key
    membership_id: int | None = Field(default=None, primary_key=True)

    room_id: int
    user_id: int

    # Denormalised from the room
    support_group_id: int
    stage: str = Field(max_length=20)

    role_in_room: str = Field(default=RoomRole.MEMBER, max_length=20)

    joined_at: datetime = Field(sa_type=DateTime)
    left_at: datetime | None = Field(default=None, sa_type=DateTime)

    # 1 while active, NULL after left_at is stamped
    active: int | None = Field(default=1)

    @property
    def is_active(self) -> bool:
        return self.left_at is None
