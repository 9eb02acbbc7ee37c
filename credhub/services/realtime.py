"""Realtime propagation of attendance changes.

Every registration transition is published as

    {"type": "registration_updated", "registration": {...}}

on topic ``event:{event_id}:registrations``.  WebSocket sessions
subscribe to the topic of the event they follow (see
credhub.api.events.live_updates).

Broker backends:
  RedisBroker     - Redis pub/sub, fans out across API instances
  InMemoryBroker  - per-subscriber asyncio queues, single process (dev/tests)

Publishing is fire-and-forget: RealtimePublisher.publish_nowait() schedules
the send and returns; a failure is logged and counted, never raised into
the request that caused the transition.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Protocol
from uuid import UUID

from credhub.core.metrics import REALTIME_PUBLISH_FAILURES
from credhub.db.redis import redis_pool
from credhub.models.event import EventRegistration

logger = logging.getLogger(__name__)


def registration_topic(event_id: UUID) -> str:
    return f"event:{event_id}:registrations"


def registration_payload(registration: EventRegistration) -> dict:
    """Public view of a registration.  The scan token is never included."""
    return {
        "id": str(registration.id),
        "event_id": str(registration.event_id),
        "user_id": str(registration.user_id),
        "state": registration.state,
        "is_attended": registration.is_attended,
        "attended_at": (
            registration.attended_at.isoformat() if registration.attended_at else None
        ),
        "registered_at": registration.registered_at.isoformat(),
        "is_collaborator": registration.is_collaborator,
    }


def registration_message(registration: EventRegistration) -> dict:
    return {
        "type": "registration_updated",
        "registration": registration_payload(registration),
    }


class Subscription(Protocol):
    async def get(self) -> dict:
        """Wait for the next message on the topic."""
        ...

    async def close(self) -> None: ...


class Broker(Protocol):
    async def publish(self, topic: str, message: dict) -> None: ...
    async def subscribe(self, topic: str) -> Subscription: ...


# ---------------------------------------------------------------------------
# In-memory broker
# ---------------------------------------------------------------------------


class _MemorySubscription:
    def __init__(self, broker: InMemoryBroker, topic: str) -> None:
        self._broker = broker
        self.topic = topic
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[dict] = asyncio.Queue()

    def deliver(self, message: dict) -> None:
        # Subscribers may live on another event loop (TestClient portals)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, message)

    async def get(self) -> dict:
        return await self._queue.get()

    async def close(self) -> None:
        self._broker._remove(self)


class InMemoryBroker:
    def __init__(self) -> None:
        self._subscribers: dict[str, set[_MemorySubscription]] = {}

    async def publish(self, topic: str, message: dict) -> None:
        # Round-trip through JSON so payloads behave as they would over Redis
        data = json.loads(json.dumps(message))
        for sub in list(self._subscribers.get(topic, ())):
            try:
                sub.deliver(data)
            except RuntimeError:
                logger.warning("Dropping subscriber on closed loop for %s", topic)
                self._remove(sub)

    async def subscribe(self, topic: str) -> Subscription:
        sub = _MemorySubscription(self, topic)
        self._subscribers.setdefault(topic, set()).add(sub)
        return sub

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def clear(self) -> None:
        self._subscribers.clear()

    def _remove(self, sub: _MemorySubscription) -> None:
        subs = self._subscribers.get(sub.topic)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subscribers[sub.topic]


# ---------------------------------------------------------------------------
# Redis broker
# ---------------------------------------------------------------------------


class _RedisSubscription:
    def __init__(self, pubsub) -> None:
        self._pubsub = pubsub

    async def get(self) -> dict:
        while True:
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message is None:
                continue
            try:
                return json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed realtime message on %s", message.get("channel"))

    async def close(self) -> None:
        await self._pubsub.unsubscribe()
        await self._pubsub.aclose()


class RedisBroker:
    _PREFIX = "realtime:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def publish(self, topic: str, message: dict) -> None:
        await self._redis.publish(f"{self._PREFIX}{topic}", json.dumps(message))

    async def subscribe(self, topic: str) -> Subscription:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(f"{self._PREFIX}{topic}")
        return _RedisSubscription(pubsub)


# ---------------------------------------------------------------------------
# Publisher
# ---------------------------------------------------------------------------


class RealtimePublisher:
    def __init__(self, broker: Broker) -> None:
        self.broker = broker
        self._pending: set[asyncio.Task] = set()

    def publish_nowait(self, topic: str, message: dict) -> None:
        """Schedule a publish on the running loop and return immediately."""
        task = asyncio.get_running_loop().create_task(self._publish(topic, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def publish_registration(self, registration: EventRegistration) -> None:
        self.publish_nowait(
            registration_topic(registration.event_id),
            registration_message(registration),
        )

    async def flush(self) -> None:
        """Wait for every scheduled publish (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _publish(self, topic: str, message: dict) -> None:
        try:
            await self.broker.publish(topic, message)
        except Exception:
            REALTIME_PUBLISH_FAILURES.inc()
            logger.exception("Realtime publish failed on %s", topic)


# ---------------------------------------------------------------------------
# Module-level singletons
# ---------------------------------------------------------------------------

if redis_pool is not None:
    broker: Broker = RedisBroker(redis_pool)
else:
    broker = InMemoryBroker()

publisher = RealtimePublisher(broker)


def get_publisher() -> RealtimePublisher:
    return publisher


@asynccontextmanager
async def lifespan_realtime():
    """Flush in-flight publishes before the process exits."""
    yield
    await publisher.flush()
    logger.info("Realtime publisher flushed")
