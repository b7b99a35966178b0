"""Shared httpx plumbing for the collaborator HTTP clients."""

import logging
from typing import Any, ClassVar

import httpx

from jellystreaming.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)


class BaseServiceClient:
    """Lazy httpx.AsyncClient plus error mapping into domain exceptions.

    Hey future me - EVERY collaborator call goes through _request(), so this is the one
    place that decides what a failure means:
    - service not configured     -> ConfigurationError (before any network traffic)
    - network error / timeout    -> ExternalServiceError
    - 401                        -> AuthenticationError (the front-end shell handles login)
    - any other non-2xx          -> ExternalServiceError with the status code
    - 2xx with empty body        -> None
    Subclasses never see httpx exceptions.
    """

    SERVICE_NAME: ClassVar[str] = "service"

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        timeout: float,
        configured: bool,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Service root URL
            headers: Default headers (auth header included)
            timeout: Per-request timeout in seconds
            configured: Whether URL/credentials are set
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self._base_url = base_url
        self._headers = {"Accept": "application/json", **headers}
        self._timeout = timeout
        self._configured = configured
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return self._configured

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            params: Query parameters
            json: JSON body

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            ConfigurationError: Service not configured
            AuthenticationError: Service answered 401
            ExternalServiceError: Network failure, non-2xx or invalid JSON
        """
        if not self._configured:
            raise ConfigurationError(f"{self.SERVICE_NAME} is not configured")

        client = await self._get_client()
        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                f"{self.SERVICE_NAME} request {method} {path} failed: {e}",
                service=self.SERVICE_NAME,
            ) from e

        if response.status_code == 401:
            raise AuthenticationError(f"{self.SERVICE_NAME} rejected our credentials")
        if response.is_error:
            logger.debug(
                "%s %s %s -> %d: %s",
                self.SERVICE_NAME,
                method,
                path,
                response.status_code,
                response.text[:500],
            )
            raise ExternalServiceError(
                f"{self.SERVICE_NAME} returned {response.status_code} for {method} {path}",
                service=self.SERVICE_NAME,
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"{self.SERVICE_NAME} sent invalid JSON for {method} {path}",
                service=self.SERVICE_NAME,
                status_code=response.status_code,
            ) from e


__all__ = ["BaseServiceClient"]
