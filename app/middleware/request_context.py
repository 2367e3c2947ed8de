"""
RequestContext Middleware - Adds request tracking to all requests.

Every request gets:
- request_id: taken from an incoming X-Request-ID header or generated
- ip_address: client address of the direct connection

The id is stored in request.state and in the logging context var, so every
log line written while handling the request carries it. It is echoed back
in the X-Request-ID response header.
"""

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.infrastructure.observability.logging import get_logger, log_request, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a request id, log completion with timing, echo the id header."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = request.client.host if request.client else None
        token = request_id_var.set(request_id)

        start_time = time.time()
        try:
            response = await call_next(request)
            log_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 2),
            )
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
