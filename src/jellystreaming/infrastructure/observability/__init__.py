"""Observability infrastructure for structured logging."""

from jellystreaming.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from jellystreaming.infrastructure.observability.middleware import (
    RequestLoggingMiddleware,
)

__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
]
