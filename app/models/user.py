"""
SQLModel-based User model (community participation subset)

Only the fields the room allocator and moderation engine read or write are
modelled here. Profile, authentication and preference columns belong to the
surrounding account service.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel

from app.config import UserStatus


class UserBase(SQLModel):
    """
    Base model with shared public fields for Users.

    Shared between the database table (Users) and API responses.
    """

    username: str = Field(max_length=30)

    # Participation status: active, suspended or banned
    status: str = Field(default=UserStatus.ACTIVE, max_length=20)
    suspended_until: datetime | None = Field(default=None, sa_type=DateTime)


class Users(UserBase, table=True):
    """
    Database table for users.

    Internal fields (should NOT be exposed via public API):
    - status_reason: Moderator-supplied reason for the current suspension/ban
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_users_username", "username", unique=True),
        Index("idx_users_status", "status"),
    )

    # Primary key
    user_id: int | None = Field(default=None, primary_key=True)

    date_joined: datetime | None = Field(
        default=None,
        sa_type=DateTime,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )

    # Internal moderation fields
    status_reason: str | None = Field(default=None, max_length=500)

    # Note: Relationships are intentionally omitted.
    # Foreign keys are sufficient for queries, and omitting relationships avoids:
    # - Circular import issues
    # - Accidental eager loading
    # - Unwanted auto-serialization in API responses
