"""Public certificate verification.

Anyone holding a certificate number (printed on the PDF, encoded in the
QR) can resolve it to a human-readable record.  The answer never carries
internal identifiers, and "unknown" and "malformed" numbers are reported
the same way so the endpoint can't be used to probe the number format.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from credhub.core.config import SETTINGS
from credhub.core.metrics import QR_REGENERATIONS
from credhub.repos.provider import Repos
from credhub.services.certificate_service import (
    CERTIFICATE_NUMBER_RE,
    DEFAULT_PARTICIPANT,
    build_verification_url,
)
from credhub.services.errors import NotFoundError
from credhub.services.qr_service import try_qr_data_uri

logger = logging.getLogger(__name__)

DEFAULT_COURSE = "Course"


@dataclass(frozen=True, slots=True)
class VerifiedCertificate:
    certificate_number: str
    participant_name: str
    course_name: str
    event_name: str | None
    organizer_name: str | None
    issue_date: datetime
    expires_at: datetime
    verification_url: str
    qr_image: str | None
    valid: bool


class VerificationReader:
    def __init__(
        self,
        repos: Repos,
        *,
        base_url: str = SETTINGS.public_base_url,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._repos = repos
        self._base_url = base_url
        self._clock = clock

    async def resolve(self, certificate_number: str) -> VerifiedCertificate:
        number = certificate_number.strip()
        if not CERTIFICATE_NUMBER_RE.match(number):
            raise NotFoundError("certificate not found")
        certificate = await self._repos.certificates.get_by_number(number)
        if certificate is None:
            raise NotFoundError("certificate not found")
        credential = await self._repos.credentials.get(certificate.credential_id)
        if credential is None:
            logger.error(
                "Certificate without credential",
                extra={"certificate_number": number},
            )
            raise NotFoundError("certificate not found")

        metadata = credential.metadata
        participant = metadata.participant_name if metadata else None
        course_name = metadata.course_title if metadata else None

        # Snapshot first, live data second, placeholders last
        if not participant:
            profile = await self._repos.profiles.get(credential.student_id)
            participant = profile.display_name if profile else DEFAULT_PARTICIPANT
        if not course_name:
            course = await self._repos.courses.get(credential.course_id)
            course_name = course.title if course else DEFAULT_COURSE

        url = build_verification_url(self._base_url, number)
        qr_image = metadata.qr_image if metadata else None
        if not qr_image:
            QR_REGENERATIONS.inc()
            qr_image = try_qr_data_uri(url)

        return VerifiedCertificate(
            certificate_number=number,
            participant_name=participant,
            course_name=course_name,
            event_name=metadata.event_title if metadata else None,
            organizer_name=metadata.organizer_name if metadata else None,
            issue_date=certificate.issue_date,
            expires_at=certificate.expires_at,
            verification_url=url,
            qr_image=qr_image,
            valid=certificate.expires_at > self._clock(),
        )
