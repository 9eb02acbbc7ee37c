"""Async SQLAlchemy engines and session factories.

When DATABASE_URL is configured, provides:
- async engine for PostgreSQL via asyncpg
- async session factory for request-scoped sessions
- a second, service-level factory for the public verification path
  (SERVICE_DATABASE_URL, defaulting to DATABASE_URL)
- FastAPI lifespan hook for startup/shutdown

When DATABASE_URL is None (no database configured), all exports are None
and the app falls back to in-memory repositories.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from credhub.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


# --- Engines and session factories (None when no DATABASE_URL) ---

engine: AsyncEngine | None = None
service_engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None
service_session_factory: async_sessionmaker[AsyncSession] | None = None

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    if SETTINGS.service_database_url and (
        SETTINGS.service_database_url != SETTINGS.database_url
    ):
        service_engine = create_async_engine(
            SETTINGS.service_database_url, pool_size=2, max_overflow=5
        )
        service_session_factory = async_sessionmaker(
            service_engine, class_=AsyncSession, expire_on_commit=False
        )
    else:
        service_session_factory = async_session_factory


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session that commits on success and rolls back on exception."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engines.

    Call from FastAPI's lifespan context manager.
    """
    if engine is None:
        logger.info("No DATABASE_URL configured, using in-memory repositories")
        yield
        return

    logger.info("Database engine created: %s", engine.url)
    yield
    await engine.dispose()
    if service_engine is not None:
        await service_engine.dispose()
    logger.info("Database engine disposed")
