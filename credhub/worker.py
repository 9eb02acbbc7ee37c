"""Background worker process.

RUN:  python -m credhub.worker

Same image as the API, different command:
  api:    uvicorn credhub.main:app --host 0.0.0.0 --port 8000
  worker: python -m credhub.worker

The loop polls every registered queue, dispatches each task to its
handler and logs the outcome.  Certificate emails whose first delivery
failed during issuance arrive on ``certificate_notification``; a failed
retry is re-enqueued until MAX_DELIVERY_ATTEMPTS is reached, then dropped
with an error log.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from credhub.core.config import SETTINGS
from credhub.core.logging import setup_logging
from credhub.core.metrics import NOTIFICATION_FAILURES, QUEUE_DEPTH
from credhub.services.errors import NotificationDeliveryError
from credhub.services.notifications import (
    MAX_DELIVERY_ATTEMPTS,
    CertificateEmail,
    certificate_notifier,
)
from credhub.services.task_queue import CERTIFICATE_NOTIFICATION_QUEUE, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("credhub.worker")


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


# ---------------------------------------------------------------------------
# Task handlers
# ---------------------------------------------------------------------------


@register_handler(CERTIFICATE_NOTIFICATION_QUEUE)
async def handle_certificate_notification(payload: dict) -> None:
    """Re-send a certificate email that failed during issuance."""
    email = CertificateEmail.from_payload(payload)
    attempts = int(payload.get("attempts", 0)) + 1
    try:
        await certificate_notifier.deliver(email)
    except NotificationDeliveryError:
        NOTIFICATION_FAILURES.labels(channel="email").inc()
        if attempts >= MAX_DELIVERY_ATTEMPTS:
            logger.error(
                "Certificate email dropped after %d attempts",
                attempts,
                extra={"certificate_number": email.certificate_number},
            )
            return
        await task_queue.enqueue(CERTIFICATE_NOTIFICATION_QUEUE, email.to_payload(attempts))
        logger.warning(
            "Certificate email retry %d failed, re-queued",
            attempts,
            extra={"certificate_number": email.certificate_number},
        )
        return
    logger.info(
        "Certificate email delivered on retry %d",
        attempts,
        extra={"certificate_number": email.certificate_number},
    )


# ---------------------------------------------------------------------------
# Main worker loop
# ---------------------------------------------------------------------------


async def process_one(queue_name: str, timeout: int = 1) -> bool:
    """Dequeue and run at most one task; False when the queue was empty."""
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    QUEUE_DEPTH.labels(queue_name=queue_name).set(
        await task_queue.queue_length(queue_name)
    )
    if task is None:
        return False

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name, extra={"task_id": task.id})
    except Exception:
        logger.exception("Task %s on [%s] failed", task.id, queue_name, extra={"task_id": task.id})
    return True


async def run_worker() -> None:
    """Poll all registered queues and dispatch tasks to handlers."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        for queue_name in queues:
            await process_one(queue_name)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
