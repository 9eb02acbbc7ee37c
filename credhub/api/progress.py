"""Lesson progress endpoints consumed by the course viewer.

  GET  /v1/courses/{course_id}/progress   {progress, stats}, read-through cached
  POST /v1/courses/{course_id}/progress   mark a lesson (in)complete, {progress, stats}
                                           where progress is the written record

After a POST whose stats say course_completed, the viewer follows up with
POST /v1/certificates/generate; issuance is never triggered from here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from credhub.api.dependencies import require_user
from credhub.models.principal import Principal
from credhub.models.progress import LessonProgress, ProgressStats
from credhub.repos.provider import Repos, get_repos
from credhub.services.cache import cache_service
from credhub.services.progress_service import ProgressSnapshot, ProgressTracker

router = APIRouter(prefix="/v1/courses", tags=["progress"])


class LessonProgressIn(BaseModel):
    module_id: str = Field(min_length=1, max_length=128)
    lesson_id: str = Field(min_length=1, max_length=128)
    completed: bool = True


class LessonProgressOut(BaseModel):
    module_id: str
    lesson_id: str
    completed: bool
    completed_at: datetime | None
    updated_at: datetime


class StatsOut(BaseModel):
    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    course_completed: bool


class ProgressOut(BaseModel):
    progress: list[LessonProgressOut]
    stats: StatsOut


class LessonProgressWriteOut(BaseModel):
    progress: LessonProgressOut
    stats: StatsOut


def _record_out(r: LessonProgress) -> LessonProgressOut:
    return LessonProgressOut(
        module_id=r.module_id,
        lesson_id=r.lesson_id,
        completed=r.completed,
        completed_at=r.completed_at,
        updated_at=r.updated_at,
    )


def _stats_out(s: ProgressStats) -> StatsOut:
    return StatsOut(
        total_lessons=s.total_lessons,
        completed_lessons=s.completed_lessons,
        progress_percentage=s.progress_percentage,
        course_completed=s.course_completed,
    )


def _progress_out(snapshot: ProgressSnapshot) -> ProgressOut:
    return ProgressOut(
        progress=[_record_out(r) for r in snapshot.records],
        stats=_stats_out(snapshot.stats),
    )


@router.get("/{course_id}/progress", response_model=ProgressOut)
async def get_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> ProgressOut:
    tracker = ProgressTracker(repos, cache_service)
    return _progress_out(await tracker.get_progress(principal.uuid, course_id))


@router.post("/{course_id}/progress", response_model=LessonProgressWriteOut)
async def set_progress(
    course_id: UUID,
    body: LessonProgressIn,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> LessonProgressWriteOut:
    tracker = ProgressTracker(repos, cache_service)
    record, snapshot = await tracker.set_lesson_completion(
        principal.uuid,
        course_id,
        body.module_id,
        body.lesson_id,
        body.completed,
    )
    return LessonProgressWriteOut(
        progress=_record_out(record), stats=_stats_out(snapshot.stats)
    )
