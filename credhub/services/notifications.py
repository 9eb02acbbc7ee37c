"""Certificate email notifications.

Provider abstraction:
  ResendProvider  - Resend HTTP API via httpx (RESEND_API_KEY set)
  LogOnlyProvider - logs the message and sends nothing (no key configured)

Delivery is best-effort.  CertificateNotifier.notify() never raises: a
failed send is logged, counted in notification_failures_total and queued
on ``certificate_notification`` for the worker to retry through
CertificateNotifier.deliver().
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from credhub.core.config import SETTINGS
from credhub.core.metrics import NOTIFICATION_FAILURES
from credhub.services.errors import NotificationDeliveryError
from credhub.services.task_queue import (
    CERTIFICATE_NOTIFICATION_QUEUE,
    TaskQueue,
    task_queue,
)

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
MAX_DELIVERY_ATTEMPTS = 5


class EmailProvider(Protocol):
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        """Send one email.  Raises NotificationDeliveryError on failure."""
        ...


class ResendProvider:
    """Send emails via the Resend API."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self._timeout = timeout
        self._transport = transport

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": self.from_address,
                        "to": [to_email],
                        "subject": subject,
                        "html": html_body,
                        "text": text_body,
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(f"resend: {e}") from e
        logger.info("Email sent to=%s subject=%r provider=resend", to_email, subject)


class LogOnlyProvider:
    """Stand-in when no email API key is configured: logs, sends nothing."""

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        logger.info("Email not sent (no provider configured) to=%s subject=%r", to_email, subject)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_STRINGS = {
    "es": {
        "subject": "Tu certificado de {course}",
        "greeting": "Hola {name},",
        "body": "Has completado el curso {course}. Tu certificado ya está disponible.",
        "number": "Número de certificado",
        "cta": "Ver certificado",
    },
    "en": {
        "subject": "Your certificate for {course}",
        "greeting": "Hi {name},",
        "body": "You have completed {course}. Your certificate is ready.",
        "number": "Certificate number",
        "cta": "View certificate",
    },
}


@dataclass(frozen=True, slots=True)
class CertificateEmail:
    to_email: str
    participant_name: str
    course_title: str
    certificate_number: str
    verification_url: str
    locale: str = "es"

    def to_payload(self, attempts: int = 0) -> dict:
        return {
            "to_email": self.to_email,
            "participant_name": self.participant_name,
            "course_title": self.course_title,
            "certificate_number": self.certificate_number,
            "verification_url": self.verification_url,
            "locale": self.locale,
            "attempts": attempts,
        }

    @staticmethod
    def from_payload(payload: dict) -> CertificateEmail:
        return CertificateEmail(
            to_email=payload["to_email"],
            participant_name=payload["participant_name"],
            course_title=payload["course_title"],
            certificate_number=payload["certificate_number"],
            verification_url=payload["verification_url"],
            locale=payload.get("locale", "es"),
        )


def render_certificate_email(email: CertificateEmail) -> tuple[str, str, str]:
    """Return (subject, html_body, text_body); unknown locales fall back to es."""
    t = _STRINGS.get(email.locale.split("-")[0].lower(), _STRINGS["es"])
    subject = t["subject"].format(course=email.course_title)
    text_body = "\n\n".join(
        [
            t["greeting"].format(name=email.participant_name),
            t["body"].format(course=email.course_title),
            f"{t['number']}: {email.certificate_number}",
            f"{t['cta']}: {email.verification_url}",
        ]
    )
    esc = html.escape
    url = esc(email.verification_url, quote=True)
    html_body = (
        "<!DOCTYPE html><html><body style=\"font-family: sans-serif;\">"
        f"<p>{esc(t['greeting'].format(name=email.participant_name))}</p>"
        f"<p>{esc(t['body'].format(course=email.course_title))}</p>"
        f"<p>{esc(t['number'])}: <strong>{esc(email.certificate_number)}</strong></p>"
        f'<p><a href="{url}">{esc(t["cta"])}</a></p>'
        "</body></html>"
    )
    return subject, html_body, text_body


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


class CertificateNotifier:
    def __init__(self, provider: EmailProvider, queue: TaskQueue) -> None:
        self.provider = provider
        self._queue = queue

    async def deliver(self, email: CertificateEmail) -> None:
        """Render and send; raises NotificationDeliveryError on failure."""
        subject, html_body, text_body = render_certificate_email(email)
        await self.provider.send(email.to_email, subject, html_body, text_body)

    async def notify(self, email: CertificateEmail) -> bool:
        """Best-effort send; returns whether the email went out now."""
        try:
            await self.deliver(email)
            return True
        except Exception:
            NOTIFICATION_FAILURES.labels(channel="email").inc()
            logger.exception(
                "Certificate email failed, queued for retry",
                extra={"certificate_number": email.certificate_number},
            )
        try:
            await self._queue.enqueue(CERTIFICATE_NOTIFICATION_QUEUE, email.to_payload())
        except Exception:
            logger.exception(
                "Could not queue certificate email retry",
                extra={"certificate_number": email.certificate_number},
            )
        return False


def _create_provider() -> EmailProvider:
    if SETTINGS.resend_api_key:
        return ResendProvider(SETTINGS.resend_api_key, SETTINGS.email_from)
    return LogOnlyProvider()


certificate_notifier = CertificateNotifier(_create_provider(), task_queue)


def get_notifier() -> CertificateNotifier:
    """FastAPI dependency; tests override it to inject a failing provider."""
    return certificate_notifier
