from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from credhub.models.progress import LessonProgress


class LessonProgressRepo(Protocol):
    async def list_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonProgress]: ...
    async def upsert(
        self,
        *,
        student_id: UUID,
        course_id: UUID,
        module_id: str,
        lesson_id: str,
        completed: bool,
        now: datetime,
    ) -> LessonProgress: ...


class InMemoryLessonProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID, str, str], LessonProgress] = {}

    async def list_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonProgress]:
        return [
            p
            for p in self._store.values()
            if p.student_id == student_id and p.course_id == course_id
        ]

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
        key = (student_id, course_id, module_id, lesson_id)
        existing = self._store.get(key)
        if existing is None:
            record = LessonProgress.new(
                student_id=student_id,
                course_id=course_id,
                module_id=module_id,
                lesson_id=lesson_id,
                completed=completed,
                now=now,
            )
        else:
            record = replace(
                existing,
                completed=completed,
                completed_at=now if completed else None,
                updated_at=now,
            )
        self._store[key] = record
        return record
