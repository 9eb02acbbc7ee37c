"""PostgreSQL implementations of CourseRepo and EnrollmentRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from credhub.db.tables import CourseRow, EnrollmentRow
from credhub.models.course import Course, CourseContent, Enrollment


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return _row_to_course(row) if row else None

    async def get_by_slug(self, slug: str) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_course(row) if row else None

    async def list_published(self) -> list[Course]:
        stmt = (
            select(CourseRow)
            .where(CourseRow.status == "published")
            .order_by(CourseRow.title)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                slug=course.slug,
                title=course.title,
                content=course.content.to_dict(),
                status=course.status,
                instructor_id=course.instructor_id,
            )
        )
        await self._session.flush()


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, enrollment_id)
        return _row_to_enrollment(row) if row else None

    async def get_for_student(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row else None

    async def add(self, enrollment: Enrollment) -> None:
        self._session.add(
            EnrollmentRow(
                id=enrollment.id,
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                enrolled_at=enrollment.enrolled_at,
                completed_at=enrollment.completed_at,
                progress_percentage=enrollment.progress_percentage,
            )
        )
        await self._session.flush()

    async def update_progress(self, enrollment_id: UUID, percentage: int) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .values(progress_percentage=percentage)
        )
        await self._session.execute(stmt)

    async def mark_completed(self, enrollment_id: UUID, completed_at: datetime) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .values(completed_at=completed_at, progress_percentage=100)
        )
        await self._session.execute(stmt)


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        content=CourseContent.from_dict(row.content),
        status=row.status,
        instructor_id=row.instructor_id,
    )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        completed_at=row.completed_at,
        progress_percentage=row.progress_percentage,
    )
