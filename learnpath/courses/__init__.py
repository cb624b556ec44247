"""Course content graph module.

Provides:
- Courses with ordered sections
- Ordered lessons and tests per section
- Test questions (multiple choice, true/false, short answer)
"""

from .models import (
    COURSES_TABLES_CQL,
    ContentKind,
    ContentStatus,
    Course,
    CourseOutline,
    Lesson,
    QuestionType,
    Section,
    Test,
    TestDefinition,
)


__all__ = [
    "COURSES_TABLES_CQL",
    "ContentKind",
    "ContentStatus",
    "Course",
    "CourseOutline",
    "Lesson",
    "QuestionType",
    "Section",
    "Test",
    "TestDefinition",
]
