"""Course catalog and enrollment endpoints.

  GET  /v1/courses                     published courses
  GET  /v1/courses/{course_id}         course with its module/lesson tree
  POST /v1/courses/{course_id}/enroll  enroll the caller (201)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from credhub.api.dependencies import require_user
from credhub.models.course import Course, CourseContent, Enrollment
from credhub.models.principal import Principal
from credhub.repos.provider import Repos, get_repos
from credhub.services.errors import NotFoundError

router = APIRouter(prefix="/v1/courses", tags=["courses"])

SAMPLE_COURSE_ID = UUID("00000000-0000-0000-0000-000000000001")


class CourseOut(BaseModel):
    id: str
    slug: str
    title: str
    status: str
    total_lessons: int


class LessonOut(BaseModel):
    id: str
    title: str
    order: int


class ModuleOut(BaseModel):
    id: str
    title: str
    order: int
    lessons: list[LessonOut]


class CourseDetailOut(CourseOut):
    modules: list[ModuleOut]


class EnrollmentOut(BaseModel):
    id: str
    student_id: str
    course_id: str
    enrolled_at: datetime
    completed_at: datetime | None
    progress_percentage: int


def _course_out(course: Course) -> CourseOut:
    return CourseOut(
        id=str(course.id),
        slug=course.slug,
        title=course.title,
        status=course.status,
        total_lessons=course.content.count_total_lessons(),
    )


def _enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=str(e.id),
        student_id=str(e.student_id),
        course_id=str(e.course_id),
        enrolled_at=e.enrolled_at,
        completed_at=e.completed_at,
        progress_percentage=e.progress_percentage,
    )


async def seed_sample_course(repos: Repos) -> None:
    """Seed a sample course for local development."""
    if await repos.courses.get(SAMPLE_COURSE_ID) is not None:
        return
    content = CourseContent.from_dict(
        {
            "modules": [
                {
                    "id": "m1",
                    "title": "Fundamentos",
                    "lessons": [
                        {"id": "l1", "title": "Bienvenida"},
                        {"id": "l2", "title": "Conceptos clave"},
                        {"id": "l3", "title": "Primer ejercicio"},
                    ],
                },
                {
                    "id": "m2",
                    "title": "Práctica",
                    "lessons": [
                        {"id": "l4", "title": "Proyecto guiado"},
                        {"id": "l5", "title": "Revisión"},
                        {"id": "l6", "title": "Cierre"},
                    ],
                },
            ]
        }
    )
    await repos.courses.add(
        Course(
            id=SAMPLE_COURSE_ID,
            slug="hackathon-intro",
            title="Introducción al Hackathon",
            content=content,
            status="published",
        )
    )


@router.get("", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[CourseOut]:
    return [_course_out(c) for c in await repos.courses.list_published()]


@router.get("/{course_id}", response_model=CourseDetailOut)
async def get_course(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseDetailOut:
    course = await repos.courses.get(course_id)
    if course is None:
        raise NotFoundError("course not found")
    return CourseDetailOut(
        **_course_out(course).model_dump(),
        modules=[
            ModuleOut(
                id=m.id,
                title=m.title,
                order=m.order,
                lessons=[
                    LessonOut(id=lesson.id, title=lesson.title, order=lesson.order)
                    for lesson in m.lessons
                ],
            )
            for m in course.content.modules
        ],
    )


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> EnrollmentOut:
    if await repos.courses.get(course_id) is None:
        raise NotFoundError("course not found")
    if await repos.enrollments.get_for_student(principal.uuid, course_id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="already enrolled")

    enrollment = Enrollment.new(
        student_id=principal.uuid,
        course_id=course_id,
        enrolled_at=datetime.now(UTC),
    )
    await repos.enrollments.add(enrollment)
    return _enrollment_out(enrollment)
