"""
Shared FastAPI dependencies.

Services are built per request around the storage returned by
get_room_storage; tests override that one dependency to point everything at
a test database.
"""

from typing import Annotated

from fastapi import Depends
from pydantic import BaseModel, Field, computed_field

from app.config import settings
from app.core.database import AsyncSessionLocal
from app.services.moderation import ModerationService
from app.services.room_allocator import RoomAllocator
from app.services.room_storage import RoomStorage, SqlRoomStorage


class PaginationParams(BaseModel):
    """Common pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number")
    per_page: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="Items per page",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def offset(self) -> int:
        """Calculate offset from page and per_page."""
        return (self.page - 1) * self.per_page


def get_room_storage() -> RoomStorage:
    """Storage for rooms, memberships, user status and the audit log."""
    return SqlRoomStorage(AsyncSessionLocal)


def get_room_allocator(
    storage: Annotated[RoomStorage, Depends(get_room_storage)],
) -> RoomAllocator:
    return RoomAllocator(storage)


def get_moderation_service(
    storage: Annotated[RoomStorage, Depends(get_room_storage)],
) -> ModerationService:
    return ModerationService(storage)


StorageDep = Annotated[RoomStorage, Depends(get_room_storage)]
AllocatorDep = Annotated[RoomAllocator, Depends(get_room_allocator)]
ModerationDep = Annotated[ModerationService, Depends(get_moderation_service)]
