"""Global exception handlers: domain exceptions -> JSON `{"detail": ...}` responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from jellystreaming.domain.exceptions import (
    AcquisitionRequestError,
    AuthenticationError,
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    ExternalServiceError,
    InvalidStateException,
    ValidationError,
    ViewLimitExceededError,
)

logger = logging.getLogger(__name__)


def _detail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


# Hey future me, Starlette picks the handler by walking the exception's MRO, so the specific
# AcquisitionRequestError handler wins over the ExternalServiceError one, and DomainException
# is the catch-all for anything we forgot. Register these BEFORE the app serves requests.
def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for every domain exception.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning("Validation error at %s: %s", request.url.path, exc.message)
        return _detail(status.HTTP_422_UNPROCESSABLE_ENTITY, exc.message)

    @app.exception_handler(EntityNotFoundException)
    async def not_found_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        logger.info(
            "Not found at %s: %s %s", request.url.path, exc.entity_type, exc.entity_id
        )
        return _detail(status.HTTP_404_NOT_FOUND, exc.message)

    @app.exception_handler(InvalidStateException)
    async def invalid_state_handler(
        request: Request, exc: InvalidStateException
    ) -> JSONResponse:
        logger.info("Invalid state at %s: %s", request.url.path, exc.message)
        return _detail(status.HTTP_409_CONFLICT, exc.message)

    @app.exception_handler(ViewLimitExceededError)
    async def view_limit_handler(
        request: Request, exc: ViewLimitExceededError
    ) -> JSONResponse:
        logger.warning("View limit reached: %s", exc.message)
        return _detail(status.HTTP_429_TOO_MANY_REQUESTS, exc.message)

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        logger.warning("Collaborator rejected credentials at %s: %s", request.url.path, exc.message)
        return _detail(status.HTTP_401_UNAUTHORIZED, exc.message)

    @app.exception_handler(ConfigurationError)
    async def configuration_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error at %s: %s", request.url.path, exc.message)
        return _detail(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)

    @app.exception_handler(AcquisitionRequestError)
    async def acquisition_request_handler(
        request: Request, exc: AcquisitionRequestError
    ) -> JSONResponse:
        # Already logged at ERROR by the dispatcher
        return _detail(status.HTTP_502_BAD_GATEWAY, exc.message)

    @app.exception_handler(ExternalServiceError)
    async def external_service_handler(
        request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        logger.error(
            "External service error at %s: %s (service=%s, status=%s)",
            request.url.path,
            exc.message,
            exc.service,
            exc.status_code,
        )
        return _detail(status.HTTP_502_BAD_GATEWAY, exc.message)

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        logger.error("Unhandled domain error at %s: %s", request.url.path, exc.message)
        return _detail(status.HTTP_400_BAD_REQUEST, exc.message)


__all__ = ["register_exception_handlers"]
