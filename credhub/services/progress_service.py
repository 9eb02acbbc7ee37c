"""Lesson progress tracking and completion statistics."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from uuid import UUID

from credhub.core.metrics import LESSON_PROGRESS_UPDATES
from credhub.models.course import CourseContent
from credhub.models.progress import LessonProgress, ProgressStats
from credhub.repos.provider import Repos
from credhub.services.cache import CacheService
from credhub.services.errors import NotEnrolledError, NotFoundError

logger = logging.getLogger(__name__)

PROGRESS_CACHE_TTL = 300


def _utcnow() -> datetime:
    return datetime.now(UTC)


def progress_cache_key(student_id: UUID, course_id: UUID) -> str:
    return f"progress:{student_id}:{course_id}"


def round_half_up_percentage(completed: int, total: int) -> int:
    """round(100 * completed / total) with .5 rounding up; 0 when total is 0.

    Integer arithmetic so 4/6 is 67 on every platform.
    """
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def compute_stats(
    content: CourseContent | None, records: Iterable[LessonProgress]
) -> ProgressStats:
    """Aggregate a student's lesson records against the course structure.

    The course content is the denominator.  When it has no lessons (course
    missing or not authored yet) the number of records stands in for it.
    With content available, only completed records whose (module, lesson)
    pair still exists are counted, each lesson once.
    """
    records = list(records)
    known = content.lesson_keys() if content is not None else frozenset()
    if known:
        done = {(r.module_id, r.lesson_id) for r in records if r.completed}
        total = len(known)
        completed = len(done & known)
    else:
        total = len(records)
        completed = sum(1 for r in records if r.completed)
    pct = round_half_up_percentage(completed, total)
    return ProgressStats(
        total_lessons=total,
        completed_lessons=completed,
        progress_percentage=pct,
        course_completed=pct >= 100,
    )


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    records: tuple[LessonProgress, ...]
    stats: ProgressStats


def _encode_snapshot(snapshot: ProgressSnapshot) -> str:
    return json.dumps(
        {
            "records": [
                {
                    **asdict(r),
                    "id": str(r.id),
                    "student_id": str(r.student_id),
                    "course_id": str(r.course_id),
                    "completed_at": r.completed_at.isoformat() if r.completed_at else None,
                    "updated_at": r.updated_at.isoformat(),
                }
                for r in snapshot.records
            ],
            "stats": asdict(snapshot.stats),
        }
    )


def _decode_snapshot(raw: str) -> ProgressSnapshot:
    data = json.loads(raw)
    records = tuple(
        LessonProgress(
            id=UUID(r["id"]),
            student_id=UUID(r["student_id"]),
            course_id=UUID(r["course_id"]),
            module_id=r["module_id"],
            lesson_id=r["lesson_id"],
            completed=r["completed"],
            completed_at=(
                datetime.fromisoformat(r["completed_at"]) if r["completed_at"] else None
            ),
            updated_at=datetime.fromisoformat(r["updated_at"]),
        )
        for r in data["records"]
    )
    return ProgressSnapshot(records=records, stats=ProgressStats(**data["stats"]))


class ProgressTracker:
    def __init__(
        self,
        repos: Repos,
        cache: CacheService,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repos = repos
        self._cache = cache
        self._clock = clock

    async def get_progress(self, student_id: UUID, course_id: UUID) -> ProgressSnapshot:
        key = progress_cache_key(student_id, course_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return _decode_snapshot(cached)

        snapshot = await self._load(student_id, course_id)
        await self._cache.set(key, _encode_snapshot(snapshot), PROGRESS_CACHE_TTL)
        return snapshot

    async def set_lesson_completion(
        self,
        student_id: UUID,
        course_id: UUID,
        module_id: str,
        lesson_id: str,
        completed: bool = True,
    ) -> tuple[LessonProgress, ProgressSnapshot]:
        course = await self._repos.courses.get(course_id)
        if course is None:
            raise NotFoundError("course not found")
        enrollment = await self._repos.enrollments.get_for_student(student_id, course_id)
        if enrollment is None:
            logger.warning(
                "Progress write rejected: user=%s not enrolled",
                student_id,
                extra={"course_id": str(course_id)},
            )
            raise NotEnrolledError()

        if not course.content.has_lesson(module_id, lesson_id):
            logger.info(
                "Progress for unknown lesson %s/%s recorded, not counted",
                module_id,
                lesson_id,
                extra={"course_id": str(course_id)},
            )

        record = await self._repos.progress.upsert(
            student_id=student_id,
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            completed=completed,
            now=self._clock(),
        )
        LESSON_PROGRESS_UPDATES.labels(completed=str(completed).lower()).inc()
        await self._cache.delete(progress_cache_key(student_id, course_id))

        records = await self._repos.progress.list_for_course(student_id, course_id)
        snapshot = ProgressSnapshot(
            records=tuple(records), stats=compute_stats(course.content, records)
        )
        if snapshot.stats.progress_percentage != enrollment.progress_percentage:
            await self._repos.enrollments.update_progress(
                enrollment.id, snapshot.stats.progress_percentage
            )
        logger.info(
            "Lesson %s/%s completed=%s for user=%s (%d%%)",
            module_id,
            lesson_id,
            completed,
            student_id,
            snapshot.stats.progress_percentage,
            extra={"course_id": str(course_id), "user_id": str(student_id)},
        )
        return record, snapshot

    async def _load(self, student_id: UUID, course_id: UUID) -> ProgressSnapshot:
        course = await self._repos.courses.get(course_id)
        records = await self._repos.progress.list_for_course(student_id, course_id)
        content = course.content if course is not None else None
        return ProgressSnapshot(
            records=tuple(records), stats=compute_stats(content, records)
        )
