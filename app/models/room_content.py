"""
SQLModel-based room content models (messages, posts, comments)

Only the columns moderation needs are modelled: authorship, location and the
soft-delete stamp. Content is never physically removed by moderators.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Text, text
from sqlmodel import Field, SQLModel


class RoomContentBase(SQLModel):
    """Fields shared by every soft-deletable piece of room content."""

    room_id: int | None = Field(default=None)
    user_id: int | None = Field(default=None)
    body: str = Field(default="", sa_type=Text)

    created_at: datetime | None = Field(
        default=None,
        sa_type=DateTime,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )

    # Soft delete
    deleted_at: datetime | None = Field(default=None, sa_type=DateTime)
    deleted_by: int | None = Field(default=None)
    moderation_reason: str | None = Field(default=None, max_length=500)


class RoomMessages(RoomContentBase, table=True):
    """Chat messages posted in a support room."""

    __tablename__ = "room_messages"

    __table_args__ = (Index("idx_room_messages_room_id", "room_id"),)

    id: int | None = Field(default=None, primary_key=True)


class RoomPosts(RoomContentBase, table=True):
    """Longer-form posts on a support room's feed."""

    __tablename__ = "room_posts"

    __table_args__ = (Index("idx_room_posts_room_id", "room_id"),)

    id: int | None = Field(default=None, primary_key=True)


class PostComments(RoomContentBase, table=True):
    """Comments on room posts."""

    __tablename__ = "post_comments"

    __table_args__ = (Index("idx_post_comments_post_id", "post_id"),)

    id: int | None = Field(default=None, primary_key=True)
    post_id: int | None = Field(default=None)
