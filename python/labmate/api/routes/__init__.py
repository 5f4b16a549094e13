"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from labmate.api.routes.chats import router as chats_router
from labmate.api.routes.health import router as health_router
from labmate.api.routes.me import router as me_router
from labmate.api.routes.relay import router as relay_router


def create_api_router() -> APIRouter:
    """Create the API router with all routes registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(chats_router)
    api_router.include_router(relay_router)
    return api_router


__all__ = ["create_api_router"]
