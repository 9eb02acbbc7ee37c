"""Course catalog and enrollment endpoint tests."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from tests.conftest import auth, create_test_course


def test_list_courses_requires_auth(client: TestClient) -> None:
    resp = client.get("/v1/courses")
    assert resp.status_code == 401


def test_list_courses_returns_published(client: TestClient, token: str) -> None:
    course = create_test_course()
    resp = client.get("/v1/courses", headers=auth(token))
    assert resp.status_code == 200
    ids = [c["id"] for c in resp.json()]
    assert str(course.id) in ids


def test_get_course_includes_lesson_tree(client: TestClient, token: str) -> None:
    course = create_test_course()
    resp = client.get(f"/v1/courses/{course.id}", headers=auth(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_lessons"] == 6
    assert [m["id"] for m in body["modules"]] == ["m1", "m2"]
    assert [lesson["id"] for lesson in body["modules"][0]["lessons"]] == ["l1", "l2", "l3"]


def test_get_unknown_course_is_404(client: TestClient, token: str) -> None:
    resp = client.get(f"/v1/courses/{uuid.uuid4()}", headers=auth(token))
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_enroll_creates_enrollment(client: TestClient, token: str, user_id: str) -> None:
    course = create_test_course()
    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=auth(token))
    assert resp.status_code == 201
    body = resp.json()
    assert body["student_id"] == user_id
    assert body["course_id"] == str(course.id)
    assert body["progress_percentage"] == 0
    assert body["completed_at"] is None


def test_enroll_twice_is_409(client: TestClient, token: str) -> None:
    course = create_test_course()
    client.post(f"/v1/courses/{course.id}/enroll", headers=auth(token))
    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=auth(token))
    assert resp.status_code == 409
