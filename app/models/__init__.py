"""
SQLModel table models.

For modifications:
1. Edit the appropriate model file in app/models/
2. Create an Alembic migration to reflect the changes
"""

from app.models.moderation_action import ModerationActions
from app.models.room_content import PostComments, RoomMessages, RoomPosts
from app.models.room_member import SupportRoomMembers
from app.models.support_room import SupportRooms
from app.models.user import Users

__all__ = [
    # Rooms
    "SupportRooms",
    "SupportRoomMembers",
    # Users and moderation
    "Users",
    "ModerationActions",
    # Moderated content
    "RoomMessages",
    "RoomPosts",
    "PostComments",
]
