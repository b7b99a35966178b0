"""FastAPI application factory."""

import uvicorn
from fastapi import FastAPI

from jellystreaming import __version__
from jellystreaming.api.exception_handlers import register_exception_handlers
from jellystreaming.api.routers import api_router
from jellystreaming.config import Settings, get_settings
from jellystreaming.infrastructure.lifecycle import lifespan
from jellystreaming.infrastructure.observability import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI app.

    Clients, services and the view registry are built in the lifespan, not here, so tests
    can create an app and override get_registry without touching the network.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run("jellystreaming.main:app", host="0.0.0.0", port=8000)  # nosec B104
