from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from credhub.models.course import Course, Enrollment


class CourseRepo(Protocol):
    async def get(self, course_id: UUID) -> Course | None: ...
    async def get_by_slug(self, slug: str) -> Course | None: ...
    async def list_published(self) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...


class EnrollmentRepo(Protocol):
    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_for_student(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update_progress(self, enrollment_id: UUID, percentage: int) -> None: ...
    async def mark_completed(self, enrollment_id: UUID, completed_at: datetime) -> None: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def get_by_slug(self, slug: str) -> Course | None:
        return next((c for c in self._by_id.values() if c.slug == slug), None)

    async def list_published(self) -> list[Course]:
        return [c for c in self._by_id.values() if c.status == "published"]

    async def add(self, course: Course) -> None:
        if any(c.slug == course.slug for c in self._by_id.values()):
            raise ValueError("slug already exists")
        self._by_id[course.id] = course


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_for_student(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return next(
            (
                e
                for e in self._by_id.values()
                if e.student_id == student_id and e.course_id == course_id
            ),
            None,
        )

    async def add(self, enrollment: Enrollment) -> None:
        if await self.get_for_student(enrollment.student_id, enrollment.course_id):
            raise ValueError("already enrolled")
        self._by_id[enrollment.id] = enrollment

    async def update_progress(self, enrollment_id: UUID, percentage: int) -> None:
        e = self._by_id.get(enrollment_id)
        if e is not None:
            self._by_id[enrollment_id] = replace(e, progress_percentage=percentage)

    async def mark_completed(self, enrollment_id: UUID, completed_at: datetime) -> None:
        e = self._by_id.get(enrollment_id)
        if e is not None:
            self._by_id[enrollment_id] = replace(
                e, completed_at=completed_at, progress_percentage=100
            )
