"""Application lifecycle: wire clients and services at startup, tear them down at shutdown."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass

from fastapi import FastAPI

from jellystreaming.application.services.action_dispatcher import ActionDispatcher
from jellystreaming.application.services.detail_view_registry import DetailViewRegistry
from jellystreaming.application.services.reconciliation_service import (
    ReconciliationService,
)
from jellystreaming.config import Settings, get_settings
from jellystreaming.infrastructure.integrations.jellyfin_client import JellyfinClient
from jellystreaming.infrastructure.integrations.playback import JellyfinPlaybackLauncher
from jellystreaming.infrastructure.integrations.radarr_client import RadarrClient
from jellystreaming.infrastructure.integrations.sonarr_client import SonarrClient
from jellystreaming.infrastructure.integrations.tmdb_client import TMDBClient
from jellystreaming.infrastructure.observability import configure_logging

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything the routes need, built once per process."""

    jellyfin: JellyfinClient
    tmdb: TMDBClient
    radarr: RadarrClient
    sonarr: SonarrClient
    registry: DetailViewRegistry

    async def aclose(self) -> None:
        await self.registry.close_all()
        for client in (self.jellyfin, self.tmdb, self.radarr, self.sonarr):
            await client.close()


def build_services(settings: Settings) -> ServiceContainer:
    """Build HTTP clients, the reconciliation services and the view registry."""
    timeout = settings.http_timeout_seconds
    jellyfin = JellyfinClient(settings.jellyfin, timeout=timeout)
    tmdb = TMDBClient(settings.tmdb, timeout=timeout)
    radarr = RadarrClient(settings.radarr, timeout=timeout)
    sonarr = SonarrClient(settings.sonarr, timeout=timeout)

    service = ReconciliationService(jellyfin, radarr, sonarr)
    dispatcher = ActionDispatcher(
        radarr,
        sonarr,
        tmdb,
        JellyfinPlaybackLauncher(settings.jellyfin),
        settings.radarr,
        settings.sonarr,
    )
    registry = DetailViewRegistry(service, dispatcher, tmdb, settings.reconciliation)
    return ServiceContainer(jellyfin, tmdb, radarr, sonarr, registry)


def _log_unconfigured(container: ServiceContainer) -> None:
    for client in (container.jellyfin, container.tmdb, container.radarr, container.sonarr):
        if not client.is_configured:
            logger.warning(
                "%s is not configured; calls to it will answer 503", client.SERVICE_NAME
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup: logging, clients, services, view registry, idle-view reaper.
    Shutdown: stop the reaper, close every open view (cancels their pollers), close clients.
    """
    settings = getattr(app.state, "settings", None) or get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    container = build_services(settings)
    _log_unconfigured(container)
    app.state.services = container
    app.state.registry = container.registry

    reaper_task = asyncio.create_task(container.registry.run_reaper(), name="view-reaper")
    try:
        yield
    finally:
        logger.info("Shutting down application")
        reaper_task.cancel()
        with suppress(asyncio.CancelledError):
            await reaper_task
        await container.aclose()
        logger.info("Application shutdown complete")


__all__ = ["ServiceContainer", "build_services", "lifespan"]
