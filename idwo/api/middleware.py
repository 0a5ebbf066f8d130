"""
Request logging middleware.

Binds a request id (taken from X-Request-ID or generated) to structlog
contextvars so every log line emitted while handling the request carries it,
and echoes the id back on the response.
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from idwo.utils.logging import (
    bind_contextvars,
    clear_contextvars,
    generate_request_id,
    get_logger,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log request start and completion with timing and a request id."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        path = request.url.path

        clear_contextvars()
        bind_contextvars(request_id=request_id, method=request.method, path=path)

        log = logger.debug if path in QUIET_PATHS else logger.info
        log("request_started", client=request.client.host if request.client else "unknown")
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            clear_contextvars()
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        log(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        clear_contextvars()
        return response
