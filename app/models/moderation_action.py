"""
SQLModel-based ModerationAction model for audit logging

Every state-changing moderator operation (kick, suspend, unsuspend, ban, unban,
archive_room, delete_message/post/comment) appends exactly one row here.
The table is append-only.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKeyConstraint, Index, text
from sqlmodel import Column, Field, SQLModel


class ModerationActions(SQLModel, table=True):
    """
    Audit log for moderation actions.

    It stores:
    - Who performed the action
    - What type of action (ModerationActionType constants)
    - The targets (user, room and/or content item; at least one is set)
    - The reason given
    - JSON details with context (duration, rooms removed, ...)
    """

    __tablename__ = "moderation_actions"

    __table_args__ = (
        ForeignKeyConstraint(
            ["moderator_id"],
            ["users.user_id"],
            ondelete="SET NULL",
            onupdate="CASCADE",
            name="fk_moderation_actions_moderator_id",
        ),
        Index("idx_moderation_actions_moderator_id", "moderator_id"),
        Index("idx_moderation_actions_target_user_id", "target_user_id"),
        Index("idx_moderation_actions_target_room_id", "target_room_id"),
        Index("idx_moderation_actions_created_at", "created_at"),
        Index("idx_moderation_actions_action_type", "action_type"),
    )

    # Primary key
    action_id: int | None = Field(default=None, primary_key=True)

    # Moderator who performed the action
    moderator_id: int | None = Field(default=None)

    action_type: str = Field(max_length=30)

    # Targets (nullable - not every action has every reference).
    # No foreign keys: audit rows must outlive the rooms and content they point at.
    target_user_id: int | None = Field(default=None)
    target_room_id: int | None = Field(default=None)
    target_message_id: int | None = Field(default=None)

    reason: str = Field(max_length=500)

    # Examples:
    # - suspend: {"duration_days": 7, "suspended_until": "...", "rooms_removed": 3}
    # - archive_room: {"members_removed": 4}
    # - delete_post: {"content_type": "post"}
    details: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    created_at: datetime | None = Field(
        default=None,
        sa_type=DateTime,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )
