from __future__ import annotations

import asyncio
import sys
import uuid
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from credhub.main import app
from credhub.models.course import Course, CourseContent, Enrollment
from credhub.models.profile import Profile
from credhub.repos.provider import Repos, memory_repos, reset_memory_repos
from credhub.services import token_service
from credhub.services.cache import cache_service
from credhub.services.realtime import broker
from credhub.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import credhub` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Fresh in-memory repositories for every test."""
    reset_memory_repos()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "clear"):
        cache_service.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if hasattr(task_queue, "clear"):
        task_queue.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_broker() -> None:
    """Drop realtime subscribers left over from earlier tests."""
    if hasattr(broker, "clear"):
        broker.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_dependency_overrides() -> Iterator[None]:
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> Iterator[TestClient]:
    # Entered as a context manager so every request (and any WebSocket
    # session) shares one event loop; realtime publishes land on it.
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Identity helpers
# ---------------------------------------------------------------------------


def new_user_id() -> str:
    return str(uuid.uuid4())


def mint_token(
    user_id: str | None = None,
    roles: list[str] | None = None,
    name: str | None = None,
    email: str | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(
        sub=user_id or new_user_id(), roles=roles, name=name, email=email
    )


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_id() -> str:
    return new_user_id()


@pytest.fixture
def token(user_id: str) -> str:
    """Token with default role (user)."""
    return mint_token(user_id)


@pytest.fixture
def organizer_id() -> str:
    return new_user_id()


@pytest.fixture
def organizer_token(organizer_id: str) -> str:
    return mint_token(organizer_id, roles=["organizer"])


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(roles=["admin"])


# ---------------------------------------------------------------------------
# Data helpers (write straight into the in-memory repositories)
# ---------------------------------------------------------------------------


def run(coro):
    return asyncio.run(coro)


def repos() -> Repos:
    return memory_repos()


def six_lesson_content() -> CourseContent:
    return CourseContent.from_dict(
        {
            "modules": [
                {
                    "id": "m1",
                    "title": "Basics",
                    "lessons": [{"id": f"l{i}", "title": f"Lesson {i}"} for i in (1, 2, 3)],
                },
                {
                    "id": "m2",
                    "title": "Practice",
                    "lessons": [{"id": f"l{i}", "title": f"Lesson {i}"} for i in (4, 5, 6)],
                },
            ]
        }
    )


def create_test_course(
    title: str = "Data Literacy", content: CourseContent | None = None
) -> Course:
    course = Course.new(
        slug=title.lower().replace(" ", "-"),
        title=title,
        content=content if content is not None else six_lesson_content(),
    )
    run(repos().courses.add(course))
    return course


def enroll_test_student(student_id: str, course_id: uuid.UUID) -> Enrollment:
    enrollment = Enrollment.new(
        student_id=uuid.UUID(student_id),
        course_id=course_id,
        enrolled_at=datetime.now(UTC),
    )
    run(repos().enrollments.add(enrollment))
    return enrollment


def add_test_profile(user_id: str, email: str, full_name: str = "") -> Profile:
    profile = Profile(id=uuid.UUID(user_id), email=email, full_name=full_name)
    run(repos().profiles.upsert(profile))
    return profile


def future(days: int = 7) -> str:
    return (datetime.now(UTC) + timedelta(days=days)).isoformat()


def create_test_event(
    client: TestClient,
    organizer_token: str,
    *,
    max_attendees: int | None = None,
    event_date: str | None = None,
    resources_url: str | None = "https://example.org/slides",
) -> dict:
    resp = client.post(
        "/v1/events",
        json={
            "title": "Community Hack Night",
            "event_date": event_date or future(),
            "location": "Main hall",
            "max_attendees": max_attendees,
            "resources_url": resources_url,
        },
        headers=auth(organizer_token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
