"""PostgreSQL implementation of LessonProgressRepo."""

from __future__ import annotations

import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from credhub.db.tables import LessonProgressRow
from credhub.models.progress import LessonProgress


class PgLessonProgressRepo:
    """Satisfies the LessonProgressRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonProgress]:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.student_id == student_id,
            LessonProgressRow.course_id == course_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(r) for r in rows]

    async def upsert(
        self,
        *,
        student_id: UUID,
        course_id: UUID,
        module_id: str,
        lesson_id: str,
        completed: bool,
        now: datetime,
    ) -> LessonProgress:
        completed_at = now if completed else None
        stmt = insert(LessonProgressRow).values(
            id=uuid.uuid4(),
            student_id=student_id,
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            completed=completed,
            completed_at=completed_at,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_lesson_progress_key",
            set_={
                "completed": stmt.excluded.completed,
                "completed_at": stmt.excluded.completed_at,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(LessonProgressRow.id)
        row_id = (await self._session.execute(stmt)).scalar_one()
        row = await self._session.get(LessonProgressRow, row_id, populate_existing=True)
        assert row is not None
        return _row_to_progress(row)


def _row_to_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        module_id=row.module_id,
        lesson_id=row.lesson_id,
        completed=row.completed,
        completed_at=row.completed_at,
        updated_at=row.updated_at,
    )
