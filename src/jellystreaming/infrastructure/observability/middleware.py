"""Request logging middleware with correlation ids."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from jellystreaming.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request/response pair and echo X-Correlation-ID back.

    Hey future me - the browser polls GET /views/{id} every few seconds per open view.
    Those polls are logged at DEBUG, everything else at INFO.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        set_correlation_id(request.headers.get("X-Correlation-ID"))

        method = request.method
        path = request.url.path
        level = logging.DEBUG if method == "GET" and "/views/" in path else logging.INFO

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed: %s %s",
                method,
                path,
                extra={"method": method, "path": path, "error_type": type(e).__name__},
            )
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.log(
            level,
            "%s %s -> %d (%dms)",
            method,
            path,
            response.status_code,
            duration_ms,
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        response.headers["X-Correlation-ID"] = get_correlation_id()
        return response
