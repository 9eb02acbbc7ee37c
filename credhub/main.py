from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from credhub.api.certificates import router as certificates_router
from credhub.api.courses import router as courses_router
from credhub.api.courses import seed_sample_course
from credhub.api.events import router as events_router
from credhub.api.health import router as health_router
from credhub.api.metrics_endpoint import router as metrics_router
from credhub.api.progress import router as progress_router
from credhub.api.users import router as users_router
from credhub.core.config import SETTINGS
from credhub.core.logging import setup_logging
from credhub.db import engine as db
from credhub.db.redis import lifespan_redis
from credhub.middleware.error_handler import register_error_handlers
from credhub.middleware.metrics import MetricsMiddleware
from credhub.middleware.request_context import RequestContextMiddleware
from credhub.repos.provider import memory_repos
from credhub.services.realtime import lifespan_realtime

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order: pending realtime publishes
    # are flushed while Redis is still open.
    async with db.lifespan_db():
        async with lifespan_redis():
            async with lifespan_realtime():
                if db.engine is None and SETTINGS.is_dev:
                    await seed_sample_course(memory_repos())
                yield


app = FastAPI(
    title="credhub",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.public_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) -> Metrics -> CORS -> route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(progress_router)
app.include_router(certificates_router)
app.include_router(events_router)
app.include_router(users_router)

logger.info(
    "credhub started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
