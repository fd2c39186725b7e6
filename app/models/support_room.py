"""
SQLModel-based SupportRoom models

A support room is a capacity-bounded discussion room for one
(support group, experience stage) pair. Rooms are numbered per pair,
starting at 1, and numbers are never reused:

SupportRoomBase (shared public fields)
    ├─> SupportRooms (database table, adds keys, version and timestamps)
    └─> SupportRoomResponse (API schema, defined in app/schemas)
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel

from app.config import RoomStatus


class SupportRoomBase(SQLModel):
    """
    Base model with shared public fields for SupportRooms.
    """

    support_group_id: int
    stage: str = Field(max_length=20)
    room_number: int = Field(ge=1)

    # Capacity
    member_count: int = Field(default=0, ge=0)
    max_members: int = Field(default=10, ge=1)

    # open -> full -> open ..., archived is terminal
    status: str = Field(default=RoomStatus.OPEN, max_length=20)


class SupportRooms(SupportRoomBase, table=True):
    """
    Database table for support rooms.

    The unique index on (support_group_id, stage, room_number) is what stops two
    concurrent creators from both opening "room N"; the loser gets an
    IntegrityError and retries.

    `version` is bumped on every write to the row and guards optimistic updates
    of member_count/status.
    """

    __tablename__ = "support_rooms"

    __table_args__ = (
        Index(
            "uq_support_rooms_group_stage_number",
            "support_group_id",
            "stage",
            "room_number",
            unique=True,
        ),
        Index("idx_support_rooms_group_stage_status", "support_group_id", "stage", "status"),
    )

    # Primary key
    room_id: int | None = Field(default=None, primary_key=True)

    # Optimistic concurrency token
    version: int = Field(default=1)

    created_at: datetime | None = Field(
        default=None,
        sa_type=DateTime,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )
    archived_at: datetime | None = Field(default=None, sa_type=DateTime)

    @property
    def has_capacity(self) -> bool:
        """True if the room accepts another member right now."""
        return self.status == RoomStatus.OPEN and self.member_count < self.max_members
