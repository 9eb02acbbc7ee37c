"""Certificate issuance, status and public verification.

  POST /v1/certificates/generate             issue (idempotent per student+course)
  GET  /v1/certificates/status?course_id=    the caller's certificate, or null
  GET  /v1/certificates                      all of the caller's certificates
  GET  /v1/certificates/{certificate_number} public verification, no auth
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from credhub.api.dependencies import require_user
from credhub.models.principal import Principal
from credhub.repos.provider import Repos, get_repos, get_service_repos
from credhub.services.certificate_service import (
    CertificateIssuer,
    CertificateResult,
    EventContext,
    IssueContext,
)
from credhub.services.notifications import CertificateNotifier, get_notifier
from credhub.services.verification_service import VerificationReader

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class EventContextIn(BaseModel):
    event_id: str | None = None
    event_title: str | None = Field(default=None, max_length=500)
    organizer_name: str | None = Field(default=None, max_length=255)


class GenerateCertificateIn(BaseModel):
    course_id: UUID
    enrollment_id: UUID
    locale: str = Field(default="es", max_length=16)
    student_name: str | None = Field(default=None, max_length=255)
    student_email: str | None = Field(default=None, max_length=320)
    event_context: EventContextIn | None = None


class CertificateOut(BaseModel):
    certificate_number: str
    credential_id: str
    course_id: str
    course_title: str | None
    verification_url: str
    qr_image: str | None
    issued_at: datetime
    expires_at: datetime


class CertificateStatusOut(BaseModel):
    certificate: CertificateOut | None


class VerifiedCertificateOut(BaseModel):
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


def _certificate_out(r: CertificateResult) -> CertificateOut:
    return CertificateOut(
        certificate_number=r.certificate_number,
        credential_id=str(r.credential_id),
        course_id=str(r.course_id),
        course_title=r.course_title,
        verification_url=r.verification_url,
        qr_image=r.qr_image,
        issued_at=r.issued_at,
        expires_at=r.expires_at,
    )


@router.post("/generate", response_model=CertificateOut)
async def generate_certificate(
    body: GenerateCertificateIn,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[CertificateNotifier, Depends(get_notifier)],
) -> CertificateOut:
    event = None
    if body.event_context is not None:
        event = EventContext(
            event_id=body.event_context.event_id,
            event_title=body.event_context.event_title,
            organizer_name=body.event_context.organizer_name,
        )
    context = IssueContext(
        locale=body.locale,
        student_name=body.student_name or principal.name,
        student_email=body.student_email or principal.email,
        event=event,
    )
    issuer = CertificateIssuer(repos, notifier)
    result = await issuer.issue(principal.uuid, body.course_id, body.enrollment_id, context)
    return _certificate_out(result)


@router.get("/status", response_model=CertificateStatusOut)
async def certificate_status(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[CertificateNotifier, Depends(get_notifier)],
) -> CertificateStatusOut:
    result = await CertificateIssuer(repos, notifier).get_status(principal.uuid, course_id)
    return CertificateStatusOut(certificate=_certificate_out(result) if result else None)


@router.get("", response_model=list[CertificateOut])
async def my_certificates(
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[CertificateNotifier, Depends(get_notifier)],
) -> list[CertificateOut]:
    results = await CertificateIssuer(repos, notifier).list_for_student(principal.uuid)
    return [_certificate_out(r) for r in results]


@router.get("/{certificate_number}", response_model=VerifiedCertificateOut)
async def verify_certificate(
    certificate_number: str,
    repos: Annotated[Repos, Depends(get_service_repos)],
) -> VerifiedCertificateOut:
    v = await VerificationReader(repos).resolve(certificate_number)
    return VerifiedCertificateOut(
        certificate_number=v.certificate_number,
        participant_name=v.participant_name,
        course_name=v.course_name,
        event_name=v.event_name,
        organizer_name=v.organizer_name,
        issue_date=v.issue_date,
        expires_at=v.expires_at,
        verification_url=v.verification_url,
        qr_image=v.qr_image,
        valid=v.valid,
    )
