"""
API v1 Router
"""

from fastapi import APIRouter

from app.api.v1 import moderation, support_rooms

router = APIRouter()

# Include all endpoint routers
router.include_router(support_rooms.router)
router.include_router(moderation.router)

__all__ = ["router"]
