from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)


class CredentialMetadata(BaseModel):
    """Snapshot taken at issuance time and shown on the public page.

    Keeps verification stable when the course title or the student's
    profile changes later.  Stored as JSON; ``schema_version`` gates reads
    of older or foreign shapes.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    schema_version: Literal[1] = 1
    participant_name: str
    course_title: str
    event_id: str | None = None
    event_title: str | None = None
    organizer_name: str | None = None
    verification_url: str
    qr_image: str | None = None  # PNG data URI

    @classmethod
    def load(cls, raw: object) -> CredentialMetadata | None:
        """Parse a stored blob; None when absent or not a known schema."""
        if not raw:
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring unreadable credential metadata: %s", e)
            return None


@dataclass(frozen=True, slots=True)
class Credential:
    """Internal record that a student completed a course.

    Unique per (student_id, course_id).
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    issue_date: datetime
    expires_at: datetime
    status: str = "completed"
    metadata: CredentialMetadata | None = None

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        issue_date: datetime,
        expires_at: datetime,
        metadata: CredentialMetadata | None = None,
    ) -> Credential:
        return Credential(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            issue_date=issue_date,
            expires_at=expires_at,
            metadata=metadata,
        )


@dataclass(frozen=True, slots=True)
class Certificate:
    """Numbered, publicly verifiable artifact; 1:1 with a Credential."""

    id: UUID
    credential_id: UUID
    certificate_number: str
    issue_date: datetime
    expires_at: datetime

    @staticmethod
    def new(
        *,
        credential_id: UUID,
        certificate_number: str,
        issue_date: datetime,
        expires_at: datetime,
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            credential_id=credential_id,
            certificate_number=certificate_number,
            issue_date=issue_date,
            expires_at=expires_at,
        )
