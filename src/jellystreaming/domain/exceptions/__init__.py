"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so handlers can read it without
    # parsing str(exception). Don't raise this directly - use a specific subclass so callers
    # can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidStateException(DomainException):
    """Raised when an operation is not allowed in the current state.

    Example: asking a detail view to PLAY while the title is still downloading,
    or requesting more seasons for a movie.
    """

    pass


class ValidationError(DomainException):
    """Input validation failed.

    HTTP Status: 422
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when a collaborator service has no URL/API key configured.

    HTTP Status: 503 (Service Unavailable)
    """

    pass


class AuthenticationError(DomainException):
    """A collaborator rejected our credentials (HTTP 401).

    The surrounding shell owns login/redirect handling; we only pass the 401 on.

    HTTP Status: 401
    """

    pass


class ExternalServiceError(DomainException):
    """External service (Jellyfin, Radarr, Sonarr, TMDB) returned an error.

    Raised by the HTTP clients for network failures and non-2xx responses. On
    READ paths the reconciliation service swallows these into "no data this
    tick"; on WRITE paths they propagate to the user.

    HTTP Status: 502 (Bad Gateway)
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class AcquisitionRequestError(ExternalServiceError):
    """A REQUEST (add title / update seasons) was rejected or could not be sent.

    Hey future me - this is the ONE error the user must always see. The view
    stays NOT_REQUESTED so the button is immediately retryable.

    HTTP Status: 502
    """

    pass


class ViewLimitExceededError(DomainException):
    """Too many detail views are open at once.

    HTTP Status: 429
    """

    pass


__all__ = [
    "AcquisitionRequestError",
    "AuthenticationError",
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "InvalidStateException",
    "ValidationError",
    "ViewLimitExceededError",
]
