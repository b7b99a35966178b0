"""Dependency injection for API endpoints."""

from fastapi import Depends, HTTPException, Request

from jellystreaming.application.services.detail_view_registry import DetailViewRegistry
from jellystreaming.application.workers.reconciliation_poller import (
    ReconciliationPoller,
)
from jellystreaming.domain.ports import IAcquisitionClient


# Hey future me, the registry is built in the lifespan (infrastructure/lifecycle.py) and parked
# on app.state. Tests skip the lifespan and use app.dependency_overrides[get_registry] instead.
def get_registry(request: Request) -> DetailViewRegistry:
    """Get the detail view registry from app state.

    Raises:
        HTTPException: 503 if the app hasn't finished starting
    """
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="View registry not initialized")
    return registry


def get_acquisition_clients(request: Request) -> list[IAcquisitionClient]:
    """Radarr and Sonarr clients, in that order."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return [services.radarr, services.sonarr]


def get_view(
    view_id: str, registry: DetailViewRegistry = Depends(get_registry)
) -> ReconciliationPoller:
    """Resolve the {view_id} path parameter to its poller (404 if unknown)."""
    return registry.get(view_id)
