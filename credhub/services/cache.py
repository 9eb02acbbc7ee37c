"""Read-through cache service.

READ-THROUGH
------------
  Flow:  Client -> Cache -> miss -> DB -> populate cache -> return
         Client -> Cache -> hit  -> return (skip DB entirely)

Used for progress summaries: the course viewer polls them on every lesson
page, and recomputing means loading the course content plus every
lesson_progress row for the student.

INVALIDATION
------------
Two complementary strategies:

  1. TTL: every entry auto-expires, so a missed invalidation heals itself.
  2. Explicit delete: every lesson write drops the student's summary for
     that course immediately, so the next read reflects the write.

Cached values are JSON strings; callers own the (de)serialization.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from credhub.core.metrics import CACHE_OPERATIONS
from credhub.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """In-memory cache for dev and tests, no TTL enforcement.

    The autouse fixture in conftest.py clears the store between tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        value = self._store.get(key)
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        CACHE_OPERATIONS.labels(operation="invalidate").inc()
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Redis-backed cache, shared across all API instances."""

    # Key prefix keeps cache keys apart from task queues and pub/sub
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(f"{self._PREFIX}{key}")
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        CACHE_OPERATIONS.labels(operation="invalidate").inc()
        await self._redis.delete(f"{self._PREFIX}{key}")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
