"""Request context middleware, assigns a unique ID to every request.

Concurrent requests interleave their log lines; the request ID ties a
failed certificate email or a rejected check-in back to the request that
triggered it.  The ID lives in a ContextVar (per asyncio task, unlike a
thread-local); the filter installed by setup_logging stamps it on every
record.

Background work spawned from a request (realtime publishes) copies the
context at creation time, so its log lines carry the same ID.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from credhub.core.logging import request_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID, times requests, and logs completion.

    1. Reads X-Request-ID (if the client sent one) or generates a UUID
    2. Stores it in request_id_var
    3. Logs a summary line on completion (method, path, status, duration)
    4. Echoes X-Request-ID on the response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id

        return response
