"""Liveness endpoint."""

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from jellystreaming import __version__

router = APIRouter()


class HealthStatus(BaseModel):
    status: str = Field(description="alive, or starting before the lifespan ran")
    version: str = __version__
    open_views: int = Field(description="Detail views currently open")


@router.get("")
async def health(request: Request) -> HealthStatus:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        return HealthStatus(status="starting", open_views=0)
    return HealthStatus(status="alive", open_views=len(registry))
