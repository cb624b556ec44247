"""Database models for test attempts.

Tables:
- test_attempts: one partition per (user_id, test_id). Attempt fields are
  STATIC columns; each clustering row is one response. A single partition
  lets submission and grading run as conditional batches.
- test_attempts_by_id: lookup from attempt_id to its partition
- test_attempts_by_user: a learner's attempts
- test_attempts_by_course: attempts of a course, for graders

Lookup rows carry only keys; listings load each attempt from its partition
so status and score are never read from a copy.

Attempt and response ids are name-based (uuid5), so the attempt id of a
(user, test) pair is stable.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid5

from learnpath.courses.models import QuestionType


class AttemptStatus(str, Enum):
    """Attempt lifecycle (GRADED is terminal)."""

    UNDER_REVIEW = "under_review"
    GRADED = "graded"


class ResponseStatus(str, Enum):
    """Response lifecycle."""

    SUBMITTED = "submitted"
    AUTO_GRADED = "auto_graded"
    MANUAL_GRADED = "manual_graded"


TERMINAL_RESPONSE_STATUSES = frozenset(
    {ResponseStatus.AUTO_GRADED, ResponseStatus.MANUAL_GRADED}
)


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


def attempt_id_for(user_id: UUID, test_id: UUID) -> UUID:
    """Stable attempt id of a (user, test) pair."""
    return uuid5(user_id, str(test_id))


def response_id_for(attempt_id: UUID, question_id: UUID) -> UUID:
    """Stable response id of a question within an attempt."""
    return uuid5(attempt_id, str(question_id))


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

TEST_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.test_attempts (
    user_id UUID,
    test_id UUID,
    response_id UUID,
    attempt_id UUID STATIC,
    course_id UUID STATIC,
    status TEXT STATIC,
    score INT STATIC,
    percentage DOUBLE STATIC,
    is_passed BOOLEAN STATIC,
    total_marks INT STATIC,
    passing_score INT STATIC,
    time_spent INT STATIC,
    completed_at TIMESTAMP STATIC,
    graded_at TIMESTAMP STATIC,
    revision INT STATIC,
    question_id UUID,
    question_type TEXT,
    max_marks INT,
    selected_options LIST<UUID>,
    short_answer TEXT,
    response_status TEXT,
    is_correct BOOLEAN,
    marks_obtained INT,
    instructor_notes TEXT,
    graded_by UUID,
    response_time_spent INT,
    PRIMARY KEY ((user_id, test_id), response_id)
)
"""

# Lookup: attempt id -> partition
TEST_ATTEMPTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.test_attempts_by_id (
    attempt_id UUID PRIMARY KEY,
    user_id UUID,
    test_id UUID,
    course_id UUID
)
"""

TEST_ATTEMPTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.test_attempts_by_user (
    user_id UUID,
    attempt_id UUID,
    test_id UUID,
    course_id UUID,
    PRIMARY KEY (user_id, attempt_id)
)
"""

TEST_ATTEMPTS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.test_attempts_by_course (
    course_id UUID,
    attempt_id UUID,
    user_id UUID,
    test_id UUID,
    PRIMARY KEY (course_id, attempt_id)
)
"""

ATTEMPTS_TABLES_CQL = [
    TEST_ATTEMPTS_TABLE_CQL,
    TEST_ATTEMPTS_BY_ID_TABLE_CQL,
    TEST_ATTEMPTS_BY_USER_TABLE_CQL,
    TEST_ATTEMPTS_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class UserResponse:
    """One answer to one question within an attempt."""

    id: UUID
    question_id: UUID
    question_type: QuestionType
    max_marks: int
    status: ResponseStatus = ResponseStatus.SUBMITTED
    selected_options: tuple[UUID, ...] = ()
    short_answer: str | None = None
    is_correct: bool | None = None
    marks_obtained: int | None = None
    instructor_notes: str | None = None
    graded_by: UUID | None = None
    time_spent: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RESPONSE_STATUSES

    @classmethod
    def from_row(cls, row: Any) -> "UserResponse":
        """Create instance from a clustering row of test_attempts."""
        return cls(
            id=row.response_id,
            question_id=row.question_id,
            question_type=QuestionType(row.question_type),
            max_marks=row.max_marks or 0,
            status=ResponseStatus(row.response_status),
            selected_options=tuple(row.selected_options or ()),
            short_answer=row.short_answer,
            is_correct=row.is_correct,
            marks_obtained=row.marks_obtained,
            instructor_notes=row.instructor_notes,
            graded_by=row.graded_by,
            time_spent=row.response_time_spent,
        )


@dataclass
class TestAttempt:
    """A user's single submission against a test."""

    __test__ = False

    id: UUID
    user_id: UUID
    test_id: UUID
    course_id: UUID
    status: AttemptStatus
    score: int
    percentage: float
    is_passed: bool
    total_marks: int
    passing_score: int
    completed_at: datetime
    time_spent: int | None = None
    graded_at: datetime | None = None
    revision: int = 0
    responses: list[UserResponse] = field(default_factory=list)

    def response(self, response_id: UUID) -> UserResponse | None:
        for response in self.responses:
            if response.id == response_id:
                return response
        return None

    @classmethod
    def from_rows(cls, rows: list[Any]) -> "TestAttempt | None":
        """Build the attempt from all rows of its partition.

        Static columns repeat on every row; rows without a response_id carry
        only the static part.
        """
        if not rows:
            return None
        head = rows[0]
        if head.attempt_id is None:
            return None

        return cls(
            id=head.attempt_id,
            user_id=head.user_id,
            test_id=head.test_id,
            course_id=head.course_id,
            status=AttemptStatus(head.status),
            score=head.score or 0,
            percentage=head.percentage or 0.0,
            is_passed=bool(head.is_passed),
            total_marks=head.total_marks or 0,
            passing_score=head.passing_score or 0,
            completed_at=ensure_utc_aware(head.completed_at) or datetime.now(UTC),
            time_spent=head.time_spent,
            graded_at=ensure_utc_aware(head.graded_at),
            revision=head.revision or 0,
            responses=[
                UserResponse.from_row(r) for r in rows if r.response_id is not None
            ],
        )
