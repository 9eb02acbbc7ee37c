"""CertificateIssuer unit tests on in-memory repositories."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from credhub.models.course import Course, Enrollment
from credhub.models.profile import Profile
from credhub.repos.credential_repo import InMemoryCertificateRepo
from credhub.repos.provider import Repos
from credhub.services.certificate_service import (
    CERTIFICATE_NUMBER_RE,
    CertificateIssuer,
    IssueContext,
    generate_certificate_number,
)
from credhub.services.notifications import CertificateNotifier
from credhub.services.task_queue import InMemoryTaskQueue
from tests.conftest import six_lesson_content

_NOW = datetime(2026, 6, 1, 9, 30, tzinfo=UTC)


class _NullProvider:
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        return None


class _StaleReadCertificateRepo(InMemoryCertificateRepo):
    """Never sees an existing certificate on read, like a racing request."""

    async def get_for_credential(self, credential_id):
        return None


async def _setup(repos: Repos) -> tuple[uuid.UUID, Course, Enrollment]:
    student = uuid.uuid4()
    course = Course.new(slug="data", title="Data Literacy", content=six_lesson_content())
    await repos.courses.add(course)
    enrollment = Enrollment.new(student_id=student, course_id=course.id, enrolled_at=_NOW)
    await repos.enrollments.add(enrollment)
    return student, course, enrollment


def _issuer(repos: Repos) -> CertificateIssuer:
    return CertificateIssuer(
        repos,
        CertificateNotifier(_NullProvider(), InMemoryTaskQueue()),
        base_url="https://certs.example.org",
        prefix="HACK",
        validity_days=30,
        clock=lambda: _NOW,
    )


# ---- numbering ----


def test_certificate_number_format() -> None:
    number = generate_certificate_number("EDUC", _NOW)
    assert CERTIFICATE_NUMBER_RE.match(number)
    prefix, millis, suffix = number.split("-")
    assert prefix == "EDUC"
    assert int(millis) == int(_NOW.timestamp() * 1000)
    assert len(suffix) == 9


def test_certificate_numbers_are_random() -> None:
    numbers = {generate_certificate_number("EDUC", _NOW) for _ in range(50)}
    assert len(numbers) == 50


# ---- issuance ----


def test_issue_sets_dates_and_url() -> None:
    async def scenario():
        repos = Repos.in_memory()
        student, course, enrollment = await _setup(repos)
        return await _issuer(repos).issue(student, course.id, enrollment.id)

    result = asyncio.run(scenario())
    assert result.certificate_number.startswith("HACK-")
    assert result.issued_at == _NOW
    assert result.expires_at == _NOW + timedelta(days=30)
    assert result.verification_url == (
        f"https://certs.example.org/certificates/{result.certificate_number}"
    )


def test_reissue_keeps_number_and_refreshes_snapshot() -> None:
    async def scenario():
        repos = Repos.in_memory()
        student, course, enrollment = await _setup(repos)
        issuer = _issuer(repos)
        first = await issuer.issue(
            student, course.id, enrollment.id, IssueContext(student_name="Old Name")
        )
        second = await issuer.issue(
            student, course.id, enrollment.id, IssueContext(student_name="New Name")
        )
        credential = await repos.credentials.get(second.credential_id)
        return first, second, credential

    first, second, credential = asyncio.run(scenario())
    assert second.certificate_number == first.certificate_number
    assert credential.metadata.participant_name == "New Name"


def test_racing_issuance_converges_on_stored_number() -> None:
    async def scenario():
        repos = replace(Repos.in_memory(), certificates=_StaleReadCertificateRepo())
        student, course, enrollment = await _setup(repos)
        issuer = _issuer(repos)
        first = await issuer.issue(student, course.id, enrollment.id)
        second = await issuer.issue(student, course.id, enrollment.id)
        credential = await repos.credentials.get(second.credential_id)
        return first, second, credential

    first, second, credential = asyncio.run(scenario())
    assert second.certificate_number == first.certificate_number
    assert credential.metadata.verification_url.endswith(first.certificate_number)


# ---- participant name ----


def _participant(context: IssueContext, profile: Profile | None = None) -> str:
    async def scenario():
        repos = Repos.in_memory()
        student, course, enrollment = await _setup(repos)
        if profile is not None:
            await repos.profiles.upsert(replace(profile, id=student))
        result = await _issuer(repos).issue(student, course.id, enrollment.id, context)
        credential = await repos.credentials.get(result.credential_id)
        return credential.metadata.participant_name

    return asyncio.run(scenario())


def test_participant_from_request() -> None:
    assert _participant(IssueContext(student_name="  Ada Lovelace ")) == "Ada Lovelace"


def test_participant_from_profile() -> None:
    profile = Profile.new(email="ada@example.org", full_name="Augusta Ada King")
    assert _participant(IssueContext(), profile) == "Augusta Ada King"


def test_participant_from_email() -> None:
    assert _participant(IssueContext(student_email="ada@example.org")) == "ada"


def test_participant_placeholder() -> None:
    assert _participant(IssueContext()) == "Participant"
