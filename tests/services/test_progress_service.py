from __future__ import annotations

import uuid
from datetime import UTC, datetime

import pytest

from credhub.models.course import CourseContent
from credhub.models.progress import LessonProgress
from credhub.services.progress_service import compute_stats, round_half_up_percentage
from tests.conftest import six_lesson_content

_NOW = datetime(2026, 5, 4, 12, 0, tzinfo=UTC)
_STUDENT = uuid.uuid4()
_COURSE = uuid.uuid4()


def _record(lesson_id: str, completed: bool = True, module_id: str = "m1") -> LessonProgress:
    return LessonProgress.new(
        student_id=_STUDENT,
        course_id=_COURSE,
        module_id=module_id,
        lesson_id=lesson_id,
        completed=completed,
        now=_NOW,
    )


# ---- rounding ----


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [
        (0, 6, 0),
        (4, 6, 67),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds up
        (6, 6, 100),
        (0, 0, 0),
    ],
)
def test_round_half_up_percentage(completed: int, total: int, expected: int) -> None:
    assert round_half_up_percentage(completed, total) == expected


# ---- stats against course content ----


def test_stats_use_course_structure_as_denominator() -> None:
    stats = compute_stats(six_lesson_content(), [_record("l1"), _record("l2")])
    assert stats.total_lessons == 6
    assert stats.completed_lessons == 2
    assert stats.progress_percentage == 33
    assert stats.course_completed is False


def test_stats_ignore_incomplete_and_unknown_lessons() -> None:
    records = [_record("l1"), _record("l2", completed=False), _record("retired-lesson")]
    stats = compute_stats(six_lesson_content(), records)
    assert stats.completed_lessons == 1


def test_stats_match_module_and_lesson_together() -> None:
    # l1 lives in m1 and l4 in m2; swapped modules do not resolve
    records = [_record("l1", module_id="m2"), _record("l4", module_id="m1")]
    stats = compute_stats(six_lesson_content(), records)
    assert stats.total_lessons == 6
    assert stats.completed_lessons == 0


def test_stats_complete_course() -> None:
    records = [_record(f"l{i}", module_id="m1" if i <= 3 else "m2") for i in range(1, 7)]
    stats = compute_stats(six_lesson_content(), records)
    assert stats.progress_percentage == 100
    assert stats.course_completed is True


def test_stats_fall_back_to_record_count_without_content() -> None:
    records = [_record("a"), _record("b"), _record("c", completed=False)]
    stats = compute_stats(None, records)
    assert stats.total_lessons == 3
    assert stats.completed_lessons == 2
    assert stats.progress_percentage == 67


def test_stats_fall_back_for_empty_content() -> None:
    stats = compute_stats(CourseContent(), [_record("a")])
    assert stats.total_lessons == 1
    assert stats.course_completed is True


def test_stats_with_nothing_recorded() -> None:
    stats = compute_stats(None, [])
    assert stats.total_lessons == 0
    assert stats.progress_percentage == 0
    assert stats.course_completed is False


# ---- course content parsing ----


def test_content_skips_entries_without_ids() -> None:
    content = CourseContent.from_dict(
        {
            "modules": [
                {"id": "m1", "lessons": [{"id": "l1"}, {"title": "draft, no id"}]},
                {"title": "module without id", "lessons": [{"id": "x"}]},
            ]
        }
    )
    assert content.count_total_lessons() == 1
    assert content.has_lesson("m1", "l1")
    assert not content.has_lesson("m2", "l1")


@pytest.mark.parametrize("raw", [None, {}, {"modules": "nope"}])
def test_content_from_unusable_json_is_empty(raw) -> None:
    assert CourseContent.from_dict(raw).count_total_lessons() == 0
