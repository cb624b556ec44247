"""Database models for the course content graph.

Cassandra table definitions for:
- Courses: Main course table
- Sections: Ordered sections per course
- Lessons / Tests: Ordered content per section (independent orderings)
- Content items: Lookup from a lesson/test id to its course and section
- Test questions: Ordered questions with options or reference answers

Content and questions are tagged unions (one dataclass per kind) so that
option/answer presence is part of the type rather than a nullable column
checked at runtime.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID


class ContentStatus(str, Enum):
    """Course publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentKind(str, Enum):
    """Kind of a trackable content item."""

    LESSON = "lesson"
    TEST = "test"


class QuestionType(str, Enum):
    """Test question type (immutable after creation)."""

    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    status TEXT,
    creator_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Sections ordered by position inside the course partition
COURSE_SECTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_sections (
    course_id UUID,
    position INT,
    section_id UUID,
    title TEXT,
    created_at TIMESTAMP,
    PRIMARY KEY ((course_id), position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

# One partition per course so the whole outline loads in one query
COURSE_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_lessons (
    course_id UUID,
    section_id UUID,
    position INT,
    lesson_id UUID,
    title TEXT,
    content TEXT,
    content_url TEXT,
    created_at TIMESTAMP,
    PRIMARY KEY ((course_id), section_id, position)
) WITH CLUSTERING ORDER BY (section_id ASC, position ASC)
"""

COURSE_TESTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_tests (
    course_id UUID,
    section_id UUID,
    position INT,
    test_id UUID,
    title TEXT,
    total_marks INT,
    passing_score INT,
    time_limit INT,
    is_published BOOLEAN,
    created_at TIMESTAMP,
    PRIMARY KEY ((course_id), section_id, position)
) WITH CLUSTERING ORDER BY (section_id ASC, position ASC)
"""

# Lookup: content id -> location in the course partition
CONTENT_ITEMS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_items (
    content_id UUID PRIMARY KEY,
    kind TEXT,
    course_id UUID,
    section_id UUID,
    position INT
)
"""

TEST_QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.test_questions (
    test_id UUID,
    position INT,
    question_id UUID,
    question_type TEXT,
    text TEXT,
    marks INT,
    option_ids LIST<UUID>,
    option_texts LIST<TEXT>,
    correct_option_ids SET<UUID>,
    reference_answers LIST<TEXT>,
    PRIMARY KEY ((test_id), position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_SECTIONS_TABLE_CQL,
    COURSE_LESSONS_TABLE_CQL,
    COURSE_TESTS_TABLE_CQL,
    CONTENT_ITEMS_TABLE_CQL,
    TEST_QUESTIONS_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class Course:
    """Course aggregate root."""

    id: UUID
    title: str
    creator_id: UUID
    description: str | None = None
    status: ContentStatus = ContentStatus.DRAFT
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title,
            creator_id=row.creator_id,
            description=row.description,
            status=ContentStatus(row.status or ContentStatus.DRAFT.value),
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at),
        )


@dataclass
class Section:
    """Ordered section of a course."""

    id: UUID
    course_id: UUID
    title: str
    position: int
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Section":
        """Create instance from Cassandra row."""
        return cls(
            id=row.section_id,
            course_id=row.course_id,
            title=row.title,
            position=row.position,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )


@dataclass(frozen=True)
class Lesson:
    """Lesson content item."""

    kind: ClassVar[ContentKind] = ContentKind.LESSON

    id: UUID
    course_id: UUID
    section_id: UUID
    position: int
    title: str
    created_at: datetime
    content: str | None = None
    content_url: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create instance from Cassandra row."""
        return cls(
            id=row.lesson_id,
            course_id=row.course_id,
            section_id=row.section_id,
            position=row.position,
            title=row.title,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            content=row.content,
            content_url=row.content_url,
        )


@dataclass(frozen=True)
class Test:
    """Test content item (questions are loaded separately)."""

    __test__ = False

    kind: ClassVar[ContentKind] = ContentKind.TEST

    id: UUID
    course_id: UUID
    section_id: UUID
    position: int
    title: str
    total_marks: int
    passing_score: int
    created_at: datetime
    time_limit: int | None = None
    is_published: bool = False

    @classmethod
    def from_row(cls, row: Any) -> "Test":
        """Create instance from Cassandra row."""
        return cls(
            id=row.test_id,
            course_id=row.course_id,
            section_id=row.section_id,
            position=row.position,
            title=row.title,
            total_marks=row.total_marks or 0,
            passing_score=row.passing_score or 0,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            time_limit=row.time_limit,
            is_published=bool(row.is_published),
        )


ContentItem = Lesson | Test


@dataclass(frozen=True)
class ContentRef:
    """Location of a content item, from the content_items lookup."""

    content_id: UUID
    kind: ContentKind
    course_id: UUID
    section_id: UUID
    position: int

    @classmethod
    def from_row(cls, row: Any) -> "ContentRef":
        """Create instance from Cassandra row."""
        return cls(
            content_id=row.content_id,
            kind=ContentKind(row.kind),
            course_id=row.course_id,
            section_id=row.section_id,
            position=row.position,
        )


# ==============================================================================
# Questions
# ==============================================================================


@dataclass(frozen=True)
class Option:
    """Answer option of an objective question."""

    id: UUID
    text: str
    is_correct: bool


@dataclass(frozen=True)
class McqQuestion:
    """Multiple choice question (one or more correct options)."""

    question_type: ClassVar[QuestionType] = QuestionType.MCQ

    id: UUID
    test_id: UUID
    position: int
    text: str
    marks: int
    options: tuple[Option, ...]

    @property
    def correct_option_ids(self) -> frozenset[UUID]:
        return frozenset(o.id for o in self.options if o.is_correct)


@dataclass(frozen=True)
class TrueFalseQuestion:
    """True/false question (two options, one correct)."""

    question_type: ClassVar[QuestionType] = QuestionType.TRUE_FALSE

    id: UUID
    test_id: UUID
    position: int
    text: str
    marks: int
    options: tuple[Option, ...]

    @property
    def correct_option_ids(self) -> frozenset[UUID]:
        return frozenset(o.id for o in self.options if o.is_correct)


@dataclass(frozen=True)
class ShortAnswerQuestion:
    """Free text question graded manually against reference answers."""

    question_type: ClassVar[QuestionType] = QuestionType.SHORT_ANSWER

    id: UUID
    test_id: UUID
    position: int
    text: str
    marks: int
    reference_answers: tuple[str, ...]


Question = McqQuestion | TrueFalseQuestion | ShortAnswerQuestion
ObjectiveQuestion = McqQuestion | TrueFalseQuestion


def question_from_row(row: Any) -> Question:
    """Build the question variant matching the stored type."""
    question_type = QuestionType(row.question_type)

    if question_type == QuestionType.SHORT_ANSWER:
        return ShortAnswerQuestion(
            id=row.question_id,
            test_id=row.test_id,
            position=row.position,
            text=row.text,
            marks=row.marks or 0,
            reference_answers=tuple(row.reference_answers or ()),
        )

    correct = set(row.correct_option_ids or ())
    options = tuple(
        Option(id=option_id, text=option_text, is_correct=option_id in correct)
        for option_id, option_text in zip(
            row.option_ids or (), row.option_texts or (), strict=True
        )
    )
    variant = McqQuestion if question_type == QuestionType.MCQ else TrueFalseQuestion
    return variant(
        id=row.question_id,
        test_id=row.test_id,
        position=row.position,
        text=row.text,
        marks=row.marks or 0,
        options=options,
    )


def question_row_values(question: Question) -> list[Any]:
    """Column values for inserting a question into test_questions."""
    if isinstance(question, ShortAnswerQuestion):
        option_ids: list[UUID] = []
        option_texts: list[str] = []
        correct_ids: set[UUID] = set()
        reference_answers = list(question.reference_answers)
    else:
        option_ids = [o.id for o in question.options]
        option_texts = [o.text for o in question.options]
        correct_ids = set(question.correct_option_ids)
        reference_answers = []

    return [
        question.test_id,
        question.position,
        question.id,
        question.question_type.value,
        question.text,
        question.marks,
        option_ids,
        option_texts,
        correct_ids,
        reference_answers,
    ]


# ==============================================================================
# Aggregates
# ==============================================================================


@dataclass
class TestDefinition:
    """A test together with its ordered questions."""

    __test__ = False

    test: Test
    questions: list[Question]

    @property
    def question_by_id(self) -> dict[UUID, Question]:
        return {q.id: q for q in self.questions}


@dataclass
class SectionOutline:
    """A section with its lessons and tests, each ordered by position."""

    section: Section
    lessons: list[Lesson] = field(default_factory=list)
    tests: list[Test] = field(default_factory=list)

    @property
    def items(self) -> list[ContentItem]:
        return [*self.lessons, *self.tests]


@dataclass
class CourseOutline:
    """Full ordered structure of a course."""

    course: Course
    sections: list[SectionOutline] = field(default_factory=list)

    @property
    def lessons(self) -> list[Lesson]:
        return [lesson for s in self.sections for lesson in s.lessons]

    @property
    def tests(self) -> list[Test]:
        return [test for s in self.sections for test in s.tests]

    @property
    def items(self) -> list[ContentItem]:
        return [item for s in self.sections for item in s.items]

    def section(self, section_id: UUID) -> SectionOutline | None:
        for section in self.sections:
            if section.section.id == section_id:
                return section
        return None

    def find_item(self, content_id: UUID) -> ContentItem | None:
        for item in self.items:
            if item.id == content_id:
                return item
        return None
