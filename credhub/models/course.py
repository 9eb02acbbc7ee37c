from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class CourseLesson:
    id: str
    title: str
    order: int = 0


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: str
    title: str
    lessons: tuple[CourseLesson, ...] = ()
    order: int = 0


@dataclass(frozen=True, slots=True)
class CourseContent:
    """Ordered module/lesson tree authored by the instructor.

    Lesson and module ids are unique within a course.  The lesson count of
    this tree is the denominator for completion percentages.
    """

    modules: tuple[CourseModule, ...] = ()

    @staticmethod
    def from_dict(raw: dict | None) -> CourseContent:
        """Build content from its stored JSON shape.

        Entries without an id are skipped rather than rejected, so a
        half-edited course still yields a usable (smaller) structure.
        """
        if not raw or not isinstance(raw.get("modules"), list):
            return CourseContent()
        modules = []
        for m_pos, m in enumerate(raw["modules"]):
            if not isinstance(m, dict) or not m.get("id"):
                continue
            lessons = tuple(
                CourseLesson(
                    id=str(lesson["id"]),
                    title=str(lesson.get("title", "")),
                    order=int(lesson.get("order", l_pos)),
                )
                for l_pos, lesson in enumerate(m.get("lessons") or [])
                if isinstance(lesson, dict) and lesson.get("id")
            )
            modules.append(
                CourseModule(
                    id=str(m["id"]),
                    title=str(m.get("title", "")),
                    lessons=lessons,
                    order=int(m.get("order", m_pos)),
                )
            )
        return CourseContent(modules=tuple(modules))

    def to_dict(self) -> dict:
        return {
            "modules": [
                {
                    "id": m.id,
                    "title": m.title,
                    "order": m.order,
                    "lessons": [
                        {"id": lesson.id, "title": lesson.title, "order": lesson.order}
                        for lesson in m.lessons
                    ],
                }
                for m in self.modules
            ]
        }

    def count_total_lessons(self) -> int:
        return sum(len(m.lessons) for m in self.modules)

    def lesson_keys(self) -> frozenset[tuple[str, str]]:
        """(module_id, lesson_id) of every lesson in the course."""
        return frozenset((m.id, lesson.id) for m in self.modules for lesson in m.lessons)

    def has_lesson(self, module_id: str, lesson_id: str) -> bool:
        return (module_id, lesson_id) in self.lesson_keys()


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    content: CourseContent = field(default_factory=CourseContent)
    status: str = "draft"  # draft|published|retired
    instructor_id: UUID | None = None

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        content: CourseContent | None = None,
        status: str = "published",
        instructor_id: UUID | None = None,
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            content=content or CourseContent(),
            status=status,
            instructor_id=instructor_id,
        )


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A student's participation in a course.

    progress_percentage and completed_at mirror the progress tracker's
    stats; lesson_progress rows remain the source of truth.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    enrolled_at: datetime
    completed_at: datetime | None = None
    progress_percentage: int = 0

    @staticmethod
    def new(*, student_id: UUID, course_id: UUID, enrolled_at: datetime) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            enrolled_at=enrolled_at,
        )
