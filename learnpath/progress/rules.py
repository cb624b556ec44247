"""Completion aggregation and prerequisite rules.

Pure functions over a ``CourseOutline``; no I/O. Used by the progress
tracker, by the attempt grader (test prerequisite before taking a test) and
by the certification gate (completion check).

Prerequisites:
- Lesson: every lesson of the same section with a lower position is completed
- Test: every published test of the course created earlier has an attempt
- Lesson material: every lesson of earlier sections, and every lower
  position lesson of the same section, is completed
"""

from collections.abc import Iterable
from uuid import UUID

from learnpath.courses.models import ContentKind, CourseOutline, Lesson, Test

from .models import CourseProgress, SectionProgress


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class PrerequisiteNotMetError(ProgressError):
    """An earlier content item blocks this one."""

    def __init__(self, kind: ContentKind, content_id: UUID, order: int):
        self.kind = kind
        self.content_id = content_id
        self.order = order
        super().__init__(
            f"Complete {kind.value} {content_id} (order {order}) first",
            "prerequisite_not_met",
        )


# ==============================================================================
# Aggregation
# ==============================================================================


def completion_percentage(completed: int, total: int) -> int:
    """Whole percentage rounded half up; 0 when there is nothing to complete."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def compute_course_progress(
    outline: CourseOutline, completed_ids: Iterable[UUID]
) -> CourseProgress:
    """Aggregate completion over every lesson and test of the course.

    Tests count regardless of publication state.
    """
    completed_set = set(completed_ids)
    sections = []
    completed_total = 0
    items_total = 0

    for section in outline.sections:
        item_ids = [item.id for item in section.items]
        done = sum(1 for item_id in item_ids if item_id in completed_set)
        sections.append(
            SectionProgress(
                section_id=section.section.id,
                title=section.section.title,
                completed=done,
                total=len(item_ids),
                percentage=completion_percentage(done, len(item_ids)),
            )
        )
        completed_total += done
        items_total += len(item_ids)

    return CourseProgress(
        course_id=outline.course.id,
        completed_items=completed_total,
        total_items=items_total,
        percentage=completion_percentage(completed_total, items_total),
        is_completed=items_total > 0 and completed_total == items_total,
        sections=tuple(sections),
    )


# ==============================================================================
# Prerequisites
# ==============================================================================


def check_lesson_prerequisite(
    outline: CourseOutline, lesson: Lesson, completed_ids: Iterable[UUID]
) -> None:
    """Raise if a lower position lesson of the same section is incomplete.

    Raises:
        PrerequisiteNotMetError: Naming the first blocking lesson
    """
    completed_set = set(completed_ids)
    section = outline.section(lesson.section_id)
    if section is None:
        return

    for sibling in section.lessons:
        if sibling.position >= lesson.position:
            break
        if sibling.id not in completed_set:
            raise PrerequisiteNotMetError(ContentKind.LESSON, sibling.id, sibling.position)


def tests_before(outline: CourseOutline, test: Test) -> list[Test]:
    """Published tests of the course created before ``test``, oldest first."""
    earlier = [
        t
        for t in outline.tests
        if t.id != test.id and t.is_published and t.created_at < test.created_at
    ]
    return sorted(earlier, key=lambda t: t.created_at)


def check_test_prerequisite(
    outline: CourseOutline, test: Test, attempted_test_ids: Iterable[UUID]
) -> None:
    """Raise if an earlier published test has no attempt.

    Raises:
        PrerequisiteNotMetError: Naming the oldest unattempted test
    """
    attempted = set(attempted_test_ids)
    for earlier in tests_before(outline, test):
        if earlier.id not in attempted:
            raise PrerequisiteNotMetError(ContentKind.TEST, earlier.id, earlier.position)


def check_material_prerequisite(
    outline: CourseOutline, lesson: Lesson, completed_ids: Iterable[UUID]
) -> None:
    """Raise unless all lessons before this one, across sections, are completed.

    Raises:
        PrerequisiteNotMetError: Naming the first blocking lesson
    """
    completed_set = set(completed_ids)
    for section in outline.sections:
        same_section = section.section.id == lesson.section_id
        for other in section.lessons:
            if same_section and other.position >= lesson.position:
                return
            if other.id not in completed_set:
                raise PrerequisiteNotMetError(ContentKind.LESSON, other.id, other.position)
        if same_section:
            return
