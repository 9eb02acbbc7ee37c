"""Certificate issuance.

Issuing is idempotent per (student, course): the credential and the
certificate are upserted, and the certificate number minted the first
time is kept on every later issuance so shared verification links stay
valid.  The email notification is best-effort and never fails issuance.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from credhub.core.config import SETTINGS
from credhub.core.metrics import CERTIFICATES_ISSUED
from credhub.models.credential import Certificate, Credential, CredentialMetadata
from credhub.repos.provider import Repos
from credhub.services.errors import NotFoundError
from credhub.services.notifications import CertificateEmail, CertificateNotifier
from credhub.services.qr_service import try_qr_data_uri

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase
_SUFFIX_LEN = 9

CERTIFICATE_NUMBER_RE = re.compile(r"^[A-Z0-9]+-\d+-[A-Z0-9]{9}$")
DEFAULT_PARTICIPANT = "Participant"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def generate_certificate_number(prefix: str, now: datetime) -> str:
    """PREFIX-<epoch millis>-<9 random base36 chars>."""
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(_SUFFIX_LEN))
    return f"{prefix}-{millis}-{suffix}"


def build_verification_url(base_url: str, certificate_number: str) -> str:
    return f"{base_url}/certificates/{certificate_number}"


@dataclass(frozen=True, slots=True)
class EventContext:
    event_id: str | None = None
    event_title: str | None = None
    organizer_name: str | None = None


@dataclass(frozen=True, slots=True)
class IssueContext:
    locale: str = "es"
    student_name: str | None = None
    student_email: str | None = None
    event: EventContext | None = None


@dataclass(frozen=True, slots=True)
class CertificateResult:
    certificate_number: str
    credential_id: UUID
    course_id: UUID
    course_title: str | None
    verification_url: str
    qr_image: str | None
    issued_at: datetime
    expires_at: datetime


class CertificateIssuer:
    def __init__(
        self,
        repos: Repos,
        notifier: CertificateNotifier,
        *,
        base_url: str = SETTINGS.public_base_url,
        prefix: str = SETTINGS.certificate_prefix,
        validity_days: int = SETTINGS.certificate_validity_days,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repos = repos
        self._notifier = notifier
        self._base_url = base_url
        self._prefix = prefix
        self._validity = timedelta(days=validity_days)
        self._clock = clock

    async def issue(
        self,
        student_id: UUID,
        course_id: UUID,
        enrollment_id: UUID,
        context: IssueContext | None = None,
    ) -> CertificateResult:
        context = context or IssueContext()
        course = await self._repos.courses.get(course_id)
        if course is None:
            raise NotFoundError("course not found")
        enrollment = await self._repos.enrollments.get(enrollment_id)
        if (
            enrollment is None
            or enrollment.student_id != student_id
            or enrollment.course_id != course_id
        ):
            logger.warning(
                "Issuance rejected: enrollment %s does not match user=%s",
                enrollment_id,
                student_id,
                extra={"course_id": str(course_id)},
            )
            raise NotFoundError("enrollment not found")

        now = self._clock()
        expires_at = now + self._validity

        existing = await self._repos.credentials.get_for_student(student_id, course_id)
        existing_cert = (
            await self._repos.certificates.get_for_credential(existing.id)
            if existing is not None
            else None
        )
        if existing_cert is not None:
            number = existing_cert.certificate_number
        else:
            number = generate_certificate_number(self._prefix, now)

        participant = await self._participant_name(student_id, context)
        metadata = self._snapshot(number, participant, course.title, context.event)

        credential = await self._repos.credentials.upsert(
            student_id=student_id,
            course_id=course_id,
            issue_date=now,
            expires_at=expires_at,
            metadata=metadata,
        )
        certificate = await self._repos.certificates.upsert_for_credential(
            credential_id=credential.id,
            certificate_number=number,
            issue_date=now,
            expires_at=expires_at,
        )
        if certificate.certificate_number != number:
            # A concurrent issuance stored its number first; that one wins
            logger.info(
                "Certificate number %s kept over %s",
                certificate.certificate_number,
                number,
            )
            metadata = self._snapshot(
                certificate.certificate_number, participant, course.title, context.event
            )
            await self._repos.credentials.update_metadata(credential.id, metadata)

        await self._repos.enrollments.mark_completed(enrollment.id, now)

        outcome = "reissued" if existing_cert is not None else "created"
        CERTIFICATES_ISSUED.labels(outcome=outcome).inc()
        logger.info(
            "Certificate %s %s for user=%s",
            certificate.certificate_number,
            outcome,
            student_id,
            extra={
                "certificate_number": certificate.certificate_number,
                "course_id": str(course_id),
                "user_id": str(student_id),
            },
        )

        if context.student_email:
            await self._notifier.notify(
                CertificateEmail(
                    to_email=context.student_email,
                    participant_name=participant,
                    course_title=course.title,
                    certificate_number=certificate.certificate_number,
                    verification_url=metadata.verification_url,
                    locale=context.locale,
                )
            )

        return CertificateResult(
            certificate_number=certificate.certificate_number,
            credential_id=credential.id,
            course_id=course_id,
            course_title=course.title,
            verification_url=metadata.verification_url,
            qr_image=metadata.qr_image,
            issued_at=certificate.issue_date,
            expires_at=certificate.expires_at,
        )

    async def get_status(
        self, student_id: UUID, course_id: UUID
    ) -> CertificateResult | None:
        credential = await self._repos.credentials.get_for_student(student_id, course_id)
        if credential is None:
            return None
        certificate = await self._repos.certificates.get_for_credential(credential.id)
        if certificate is None:
            return None
        return self._result(credential, certificate)

    async def list_for_student(self, student_id: UUID) -> list[CertificateResult]:
        results = []
        for credential in await self._repos.credentials.list_for_student(student_id):
            certificate = await self._repos.certificates.get_for_credential(credential.id)
            if certificate is not None:
                results.append(self._result(credential, certificate))
        return results

    async def _participant_name(self, student_id: UUID, context: IssueContext) -> str:
        if context.student_name and context.student_name.strip():
            return context.student_name.strip()
        profile = await self._repos.profiles.get(student_id)
        if profile is not None:
            return profile.display_name
        if context.student_email:
            return context.student_email.split("@", 1)[0]
        return DEFAULT_PARTICIPANT

    def _snapshot(
        self,
        number: str,
        participant: str,
        course_title: str,
        event: EventContext | None,
    ) -> CredentialMetadata:
        url = build_verification_url(self._base_url, number)
        return CredentialMetadata(
            participant_name=participant,
            course_title=course_title,
            event_id=event.event_id if event else None,
            event_title=event.event_title if event else None,
            organizer_name=event.organizer_name if event else None,
            verification_url=url,
            qr_image=try_qr_data_uri(url),
        )

    def _result(self, credential: Credential, certificate: Certificate) -> CertificateResult:
        metadata = credential.metadata
        return CertificateResult(
            certificate_number=certificate.certificate_number,
            credential_id=credential.id,
            course_id=credential.course_id,
            course_title=metadata.course_title if metadata else None,
            verification_url=build_verification_url(
                self._base_url, certificate.certificate_number
            ),
            qr_image=metadata.qr_image if metadata else None,
            issued_at=certificate.issue_date,
            expires_at=certificate.expires_at,
        )
