"""Health and readiness endpoints.

  /health (liveness):  "Is this process alive?"  Always 200; the body's
                       status field says "ok" or "degraded" and lists
                       per-dependency checks.
  /ready (readiness):  "Can this instance take traffic?"  503 while the
                       database is configured but unreachable.  Redis is
                       not critical: the cache, queue and broker have
                       in-memory fallbacks, so it never blocks readiness.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from credhub.db import engine as db
from credhub.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
        return "ok"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


async def _check_database() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus dependency status.

    Returns 200 even when degraded; a 503 here would make the orchestrator
    restart a container that is only partially impaired.
    """
    checks = {"redis": await _check_redis(), "database": await _check_database()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    """Readiness probe: 503 when the configured database is unreachable."""
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
