"""Certificate issuance, status and listing endpoint tests."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from credhub.core.config import SETTINGS
from credhub.main import app
from credhub.services.certificate_service import CERTIFICATE_NUMBER_RE
from credhub.services.errors import NotificationDeliveryError
from credhub.services.notifications import CertificateNotifier, get_notifier
from credhub.services.task_queue import CERTIFICATE_NOTIFICATION_QUEUE, task_queue
from tests.conftest import (
    auth,
    create_test_course,
    enroll_test_student,
    repos,
    run,
)


class _RecordingProvider:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        self.sent.append((to_email, subject))


class _FailingProvider:
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        raise NotificationDeliveryError("provider down")


def _generate(client: TestClient, token: str, course_id, enrollment_id, **extra):
    return client.post(
        "/v1/certificates/generate",
        json={"course_id": str(course_id), "enrollment_id": str(enrollment_id), **extra},
        headers=auth(token),
    )


# ---- issuance ----


def test_generate_requires_auth(client: TestClient) -> None:
    resp = client.post(
        "/v1/certificates/generate",
        json={"course_id": str(uuid.uuid4()), "enrollment_id": str(uuid.uuid4())},
    )
    assert resp.status_code == 401


def test_generate_issues_certificate(client: TestClient, token: str, user_id: str) -> None:
    course = create_test_course()
    enrollment = enroll_test_student(user_id, course.id)

    resp = _generate(client, token, course.id, enrollment.id, student_name="Ada Lovelace")
    assert resp.status_code == 200
    body = resp.json()
    number = body["certificate_number"]
    assert CERTIFICATE_NUMBER_RE.match(number)
    assert number.startswith(f"{SETTINGS.certificate_prefix}-")
    assert body["verification_url"] == f"{SETTINGS.public_base_url}/certificates/{number}"
    assert body["qr_image"].startswith("data:image/png;base64,")
    assert body["course_title"] == course.title

    stored = run(repos().enrollments.get(enrollment.id))
    assert stored is not None
    assert stored.completed_at is not None


def test_generate_is_idempotent(client: TestClient, token: str, user_id: str) -> None:
    course = create_test_course()
    enrollment = enroll_test_student(user_id, course.id)

    first = _generate(client, token, course.id, enrollment.id).json()
    credential_id = uuid.UUID(first["credential_id"])
    certificate = run(repos().certificates.get_for_credential(credential_id))

    second = _generate(client, token, course.id, enrollment.id).json()

    assert second["certificate_number"] == first["certificate_number"]
    assert second["credential_id"] == first["credential_id"]
    assert len(run(repos().credentials.list_for_student(uuid.UUID(user_id)))) == 1

    # Same certificate row, updated in place
    reissued = run(repos().certificates.get_for_credential(credential_id))
    assert reissued is not None
    assert reissued.id == certificate.id
    assert reissued.certificate_number == first["certificate_number"]
    assert run(repos().certificates.get_by_number(first["certificate_number"])) == reissued


def test_generate_with_foreign_enrollment_is_404(
    client: TestClient, token: str
) -> None:
    course = create_test_course()
    someone_else = enroll_test_student(str(uuid.uuid4()), course.id)
    resp = _generate(client, token, course.id, someone_else.id)
    assert resp.status_code == 404


def test_generate_for_unknown_course_is_404(client: TestClient, token: str) -> None:
    resp = _generate(client, token, uuid.uuid4(), uuid.uuid4())
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


# ---- notification ----


def test_generate_sends_email(client: TestClient, token: str, user_id: str) -> None:
    provider = _RecordingProvider()
    app.dependency_overrides[get_notifier] = lambda: CertificateNotifier(provider, task_queue)
    course = create_test_course()
    enrollment = enroll_test_student(user_id, course.id)

    resp = _generate(
        client, token, course.id, enrollment.id, student_email="ada@example.org", locale="en"
    )
    assert resp.status_code == 200
    assert provider.sent == [("ada@example.org", f"Your certificate for {course.title}")]


def test_email_failure_does_not_fail_issuance(
    client: TestClient, token: str, user_id: str
) -> None:
    app.dependency_overrides[get_notifier] = lambda: CertificateNotifier(
        _FailingProvider(), task_queue
    )
    course = create_test_course()
    enrollment = enroll_test_student(user_id, course.id)

    resp = _generate(client, token, course.id, enrollment.id, student_email="ada@example.org")
    assert resp.status_code == 200
    assert run(task_queue.queue_length(CERTIFICATE_NOTIFICATION_QUEUE)) == 1

    task = run(task_queue.dequeue(CERTIFICATE_NOTIFICATION_QUEUE))
    assert task is not None
    assert task.payload["certificate_number"] == resp.json()["certificate_number"]
    assert task.payload["attempts"] == 0


def test_no_email_without_address(client: TestClient, token: str, user_id: str) -> None:
    provider = _RecordingProvider()
    app.dependency_overrides[get_notifier] = lambda: CertificateNotifier(provider, task_queue)
    course = create_test_course()
    enrollment = enroll_test_student(user_id, course.id)

    _generate(client, token, course.id, enrollment.id)
    assert provider.sent == []


# ---- status and listing ----


def test_status_before_issuance_is_null(client: TestClient, token: str) -> None:
    course = create_test_course()
    resp = client.get(
        "/v1/certificates/status", params={"course_id": str(course.id)}, headers=auth(token)
    )
    assert resp.status_code == 200
    assert resp.json() == {"certificate": None}


def test_status_after_issuance(client: TestClient, token: str, user_id: str) -> None:
    course = create_test_course()
    enrollment = enroll_test_student(user_id, course.id)
    issued = _generate(client, token, course.id, enrollment.id).json()

    resp = client.get(
        "/v1/certificates/status", params={"course_id": str(course.id)}, headers=auth(token)
    )
    cert = resp.json()["certificate"]
    assert cert["certificate_number"] == issued["certificate_number"]
    assert cert["verification_url"] == issued["verification_url"]


def test_list_my_certificates(client: TestClient, token: str, user_id: str) -> None:
    first_course = create_test_course("Data Literacy")
    second_course = create_test_course("Civic Tech")
    for course in (first_course, second_course):
        enrollment = enroll_test_student(user_id, course.id)
        _generate(client, token, course.id, enrollment.id)

    resp = client.get("/v1/certificates", headers=auth(token))
    assert resp.status_code == 200
    assert {c["course_id"] for c in resp.json()} == {
        str(first_course.id),
        str(second_course.id),
    }
