"""Tests for table definitions shared by every storage backend."""

import pytest
from sqlalchemy import DateTime

from app.models.moderation_action import ModerationActions
from app.models.room_content import PostComments, RoomMessages, RoomPosts
from app.models.room_member import SupportRoomMembers
from app.models.support_room import SupportRooms
from app.models.user import Users
from app.utils import utc_now

TIMESTAMP_COLUMNS = [
    (Users, "suspended_until"),
    (Users, "date_joined"),
    (SupportRooms, "created_at"),
    (SupportRooms, "archived_at"),
    (SupportRoomMembers, "joined_at"),
    (SupportRoomMembers, "left_at"),
    (ModerationActions, "created_at"),
    (RoomMessages, "created_at"),
    (RoomMessages, "deleted_at"),
    (RoomPosts, "deleted_at"),
    (PostComments, "deleted_at"),
]


@pytest.mark.unit
class TestTimestampColumns:
    @pytest.mark.parametrize(("model", "column"), TIMESTAMP_COLUMNS)
    def test_timestamps_are_plain_naive_datetime(self, model, column) -> None:
        """Timestamps are stored as naive UTC, so the column must accept naive values."""
        column_type = model.__table__.c[column].type

        assert type(column_type) is DateTime
        assert column_type.timezone is False

    def test_utc_now_is_naive(self) -> None:
        assert utc_now().tzinfo is None
