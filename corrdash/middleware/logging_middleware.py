"""
HTTP request logging middleware.

Binds a request id for the whole request, so the scheduler, fetcher and
provider lines emitted while serving it can be grouped, and logs one
``http_request`` line per request with the upstream queue depth it left
behind.
"""

import re
import time
import uuid
from typing import Any, Dict

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger("http")

REQUEST_ID_HEADER = "x-request-id"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a caller-supplied id when it is safe to log, else mint one."""
    if header_value and _REQUEST_ID_PATTERN.match(header_value):
        return header_value
    return uuid.uuid4().hex[:8]


def _upstream_load(request: Request) -> Dict[str, Any]:
    services = getattr(request.app.state, "services", None)
    if services is None:
        return {}
    return {
        "queue_pending": services.scheduler.pending,
        "cache_entries": services.cache.size(),
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log dashboard requests with timing, status and upstream load."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        # Scheduled upstream calls run in a copy of this context
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            log = logger.info if status_code < 400 else logger.warning
            if status_code >= 500:
                log = logger.error

            log(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=duration_ms,
                **_upstream_load(request),
            )
            structlog.contextvars.clear_contextvars()
