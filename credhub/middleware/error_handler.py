"""Global exception handlers: consistent JSON error bodies.

Domain errors (credhub.services.errors) carry their own status code and a
machine-readable ``code``; AlreadyCheckedInError adds ``attended_at`` and
``informational`` so scanners can show it as a notice instead of a fault.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from credhub.services.errors import CredentialingError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(CredentialingError)
    async def credentialing_error_handler(
        request: Request, exc: CredentialingError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s %s", exc.code, request.method, request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code, **exc.extra()},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always JSON."""
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "code": "internal_error"},
        )
