from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class LessonProgress:
    """Completion fact for one lesson of one student.

    At most one record per (student_id, course_id, module_id, lesson_id);
    completed and completed_at are always written together.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    module_id: str
    lesson_id: str
    completed: bool
    completed_at: datetime | None
    updated_at: datetime

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        module_id: str,
        lesson_id: str,
        completed: bool,
        now: datetime,
    ) -> LessonProgress:
        return LessonProgress(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            completed=completed,
            completed_at=now if completed else None,
            updated_at=now,
        )

    @property
    def key(self) -> tuple[UUID, UUID, str, str]:
        return (self.student_id, self.course_id, self.module_id, self.lesson_id)


@dataclass(frozen=True, slots=True)
class ProgressStats:
    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    course_completed: bool
