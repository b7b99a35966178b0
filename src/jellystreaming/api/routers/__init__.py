"""API router initialization."""

# Hey future me, this aggregates the sub-routers; main.py mounts api_router under
# settings.api_prefix, so endpoints become /api/views/..., /api/downloads, /api/health.

from fastapi import APIRouter

from jellystreaming.api.routers import downloads, health, views

api_router = APIRouter()

api_router.include_router(views.router, prefix="/views", tags=["Detail Views"])
api_router.include_router(downloads.router, prefix="/downloads", tags=["Downloads"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])

__all__ = ["api_router", "downloads", "health", "views"]
