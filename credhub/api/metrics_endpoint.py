"""Prometheus metrics endpoint.

Scraped by Prometheus; plain text exposition format, not JSON.

  # HELP certificates_issued_total Certificate issuance calls by outcome
  # TYPE certificates_issued_total counter
  certificates_issued_total{outcome="created"} 12.0

Restrict access in production (scraper IP allowlist or an internal port):
the series reveal request rates and error patterns.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
