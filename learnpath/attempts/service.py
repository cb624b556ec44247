"""Test attempt service layer.

Business logic for:
- Single attempt submission per (user, test) with auto-grading of
  objective questions
- Manual grading of short answers
- Attempt state machine: UNDER_REVIEW -> GRADED once every response is
  terminal
- Test prerequisite check before a learner opens a test
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra.query import BatchType

from learnpath.auth.permissions import ActorKind
from learnpath.core.database.batch import BatchEntry, execute_batch
from learnpath.courses.models import (
    Question,
    QuestionType,
    ShortAnswerQuestion,
    TestDefinition,
)
from learnpath.progress.rules import check_test_prerequisite, tests_before

from .models import (
    AttemptStatus,
    ResponseStatus,
    TestAttempt,
    UserResponse,
    attempt_id_for,
    response_id_for,
)
from .schemas import GradingInput, ResponseInput


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnpath.courses.service import CourseService
    from learnpath.enrollments.service import EnrollmentService

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class AttemptError(Exception):
    """Base attempt error."""

    def __init__(self, message: str, code: str = "attempt_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class AttemptNotFoundError(AttemptError):
    """Attempt not found."""

    def __init__(self, message: str = "Test attempt not found"):
        super().__init__(message, "attempt_not_found")


class ResponseNotFoundError(AttemptError):
    """Response not found in attempt."""

    def __init__(self, message: str = "Response not found"):
        super().__init__(message, "response_not_found")


class DuplicateAttemptError(AttemptError):
    """User already submitted this test."""

    def __init__(self, message: str = "You have already submitted this test"):
        super().__init__(message, "duplicate_attempt")


class InvalidQuestionError(AttemptError):
    """Responses reference questions outside the test or repeat them."""

    def __init__(self, question_ids: list[UUID], message: str = "Invalid question IDs"):
        self.question_ids = question_ids
        super().__init__(message, "invalid_question")


class InvalidGradingTargetError(AttemptError):
    """Only short answer responses can be graded manually."""

    def __init__(
        self, message: str = "Cannot manually grade non-short answer questions"
    ):
        super().__init__(message, "invalid_grading_target")


class AlreadyGradedError(AttemptError):
    """Response was already graded manually."""

    def __init__(self, message: str = "Response already graded"):
        super().__init__(message, "already_graded")


class MarksExceededError(AttemptError):
    """Marks outside 0..question maximum."""

    def __init__(self, message: str = "Marks exceed question maximum"):
        super().__init__(message, "marks_exceeded")


class GradingConflictError(AttemptError):
    """Attempt changed concurrently while grading."""

    def __init__(self, message: str = "Attempt was modified concurrently, retry"):
        super().__init__(message, "grading_conflict")


# ==============================================================================
# Grading Functions
# ==============================================================================


@dataclass(frozen=True)
class AttemptSummary:
    """Score totals derived from responses."""

    score: int
    percentage: float
    is_passed: bool
    status: AttemptStatus


def options_match(selected: set[UUID], correct: frozenset[UUID]) -> bool:
    """Exact set equality: any missing or extra option is wrong."""
    return set(selected) == set(correct)


def summarize(
    responses: list[UserResponse], total_marks: int, passing_score: int
) -> AttemptSummary:
    """Recompute score, percentage, pass flag and status from responses."""
    score = sum(r.marks_obtained or 0 for r in responses)
    percentage = score / total_marks * 100 if total_marks else 0.0
    status = (
        AttemptStatus.GRADED
        if all(r.is_terminal for r in responses)
        else AttemptStatus.UNDER_REVIEW
    )
    return AttemptSummary(
        score=score,
        percentage=percentage,
        is_passed=percentage >= passing_score,
        status=status,
    )


def validate_responses(
    responses: list[ResponseInput], questions: dict[UUID, Question]
) -> None:
    """Check responses against the test's questions.

    Raises:
        InvalidQuestionError: Empty list, unknown ids, duplicates, repeated
            option ids, or an answer of the wrong kind for the question type
    """
    if not responses:
        raise InvalidQuestionError([], "At least one response is required")

    seen: set[UUID] = set()
    unknown: list[UUID] = []
    duplicated: list[UUID] = []
    mismatched: list[UUID] = []
    repeated: list[UUID] = []

    for response in responses:
        question_id = response.question_id
        if question_id in seen:
            duplicated.append(question_id)
        seen.add(question_id)

        question = questions.get(question_id)
        if question is None:
            unknown.append(question_id)
        elif isinstance(question, ShortAnswerQuestion):
            if response.selected_options:
                mismatched.append(question_id)
        elif response.short_answer is not None:
            mismatched.append(question_id)

        options = response.selected_options or []
        if len(set(options)) != len(options):
            repeated.append(question_id)

    if unknown:
        ids = ", ".join(str(i) for i in unknown)
        raise InvalidQuestionError(unknown, f"Invalid question IDs: {ids}")
    if duplicated:
        ids = ", ".join(str(i) for i in duplicated)
        raise InvalidQuestionError(duplicated, f"Duplicate responses for: {ids}")
    if mismatched:
        ids = ", ".join(str(i) for i in mismatched)
        raise InvalidQuestionError(mismatched, f"Answer kind does not match: {ids}")
    if repeated:
        ids = ", ".join(str(i) for i in repeated)
        raise InvalidQuestionError(repeated, f"Repeated options for: {ids}")


def grade_response(
    attempt_id: UUID, question: Question, data: ResponseInput
) -> UserResponse:
    """Build a response, auto-grading objective questions."""
    response_id = response_id_for(attempt_id, question.id)

    if isinstance(question, ShortAnswerQuestion):
        return UserResponse(
            id=response_id,
            question_id=question.id,
            question_type=question.question_type,
            max_marks=question.marks,
            status=ResponseStatus.SUBMITTED,
            short_answer=data.short_answer,
            time_spent=data.time_spent,
        )

    selected = tuple(data.selected_options or ())
    is_correct = options_match(set(selected), question.correct_option_ids)
    return UserResponse(
        id=response_id,
        question_id=question.id,
        question_type=question.question_type,
        max_marks=question.marks,
        status=ResponseStatus.AUTO_GRADED,
        selected_options=selected,
        is_correct=is_correct,
        marks_obtained=question.marks if is_correct else 0,
        time_spent=data.time_spent,
    )


def validate_gradings(
    attempt: TestAttempt, gradings: list[GradingInput]
) -> list[tuple[UserResponse, GradingInput]]:
    """Validate every grading before anything is written.

    Raises:
        ResponseNotFoundError: If a response is not part of the attempt
        InvalidGradingTargetError: If a response is objective or repeated
        AlreadyGradedError: If a response was graded manually before
        MarksExceededError: If marks exceed the question maximum
    """
    targets = []
    seen: set[UUID] = set()

    for grading in gradings:
        if grading.response_id in seen:
            msg = f"Response {grading.response_id} graded twice"
            raise InvalidGradingTargetError(msg)
        seen.add(grading.response_id)

        response = attempt.response(grading.response_id)
        if response is None:
            raise ResponseNotFoundError(f"Response not found: {grading.response_id}")
        if response.question_type != QuestionType.SHORT_ANSWER:
            raise InvalidGradingTargetError
        if response.status == ResponseStatus.MANUAL_GRADED:
            raise AlreadyGradedError
        if grading.marks < 0 or grading.marks > response.max_marks:
            msg = f"Marks cannot exceed question maximum of {response.max_marks}"
            raise MarksExceededError(msg)

        targets.append((response, grading))

    return targets


# ==============================================================================
# Attempt Service
# ==============================================================================


class AttemptService:
    """Service for test attempts and grading."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: "CourseService",
        enrollment_service: "EnrollmentService",
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self.enrollment_service = enrollment_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_attempt_rows = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.test_attempts
            WHERE user_id = ? AND test_id = ?
        """)

        self._get_attempt_head = self.session.prepare(f"""
            SELECT attempt_id FROM {self.keyspace}.test_attempts
            WHERE user_id = ? AND test_id = ? LIMIT 1
        """)

        self._get_attempt_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.test_attempts_by_id WHERE attempt_id = ?
        """)

        # Static part; the condition guards one attempt per (user, test)
        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.test_attempts
            (user_id, test_id, attempt_id, course_id, status, score, percentage,
             is_passed, total_marks, passing_score, time_spent, completed_at,
             graded_at, revision)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._insert_response = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.test_attempts
            (user_id, test_id, response_id, question_id, question_type, max_marks,
             selected_options, short_answer, response_status, is_correct,
             marks_obtained, response_time_spent)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_attempt_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.test_attempts_by_id
            (attempt_id, user_id, test_id, course_id)
            VALUES (?, ?, ?, ?)
        """)

        self._insert_attempt_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.test_attempts_by_user
            (user_id, attempt_id, test_id, course_id)
            VALUES (?, ?, ?, ?)
        """)

        self._insert_attempt_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.test_attempts_by_course
            (course_id, attempt_id, user_id, test_id)
            VALUES (?, ?, ?, ?)
        """)

        self._list_user_attempts = self.session.prepare(f"""
            SELECT attempt_id, test_id FROM {self.keyspace}.test_attempts_by_user
            WHERE user_id = ?
        """)

        self._list_course_attempts = self.session.prepare(f"""
            SELECT attempt_id, user_id, test_id FROM {self.keyspace}.test_attempts_by_course
            WHERE course_id = ?
        """)

        self._grade_response = self.session.prepare(f"""
            UPDATE {self.keyspace}.test_attempts
            SET response_status = ?, is_correct = ?, marks_obtained = ?,
                instructor_notes = ?, graded_by = ?
            WHERE user_id = ? AND test_id = ? AND response_id = ?
            IF response_status = ?
        """)

        self._update_attempt_score = self.session.prepare(f"""
            UPDATE {self.keyspace}.test_attempts
            SET status = ?, score = ?, percentage = ?, is_passed = ?,
                graded_at = ?, revision = ?
            WHERE user_id = ? AND test_id = ?
            IF revision = ?
        """)

    # ==========================================================================
    # Taking and Submitting
    # ==========================================================================

    async def get_test_for_taking(
        self, user_id: UUID, test_id: UUID, actor_kind: ActorKind
    ) -> TestDefinition:
        """Load a test for a learner after access and prerequisite checks.

        Raises:
            TestNotFoundError: If test does not exist
            AccessDeniedError: Without a paid enrollment in the course
            PrerequisiteNotMetError: If an earlier published test has no attempt
        """
        definition = await self.course_service.get_test_definition(test_id)
        test = definition.test
        await self.enrollment_service.has_valid_access(user_id, test.course_id, actor_kind)

        outline = await self.course_service.load_outline(test.course_id)
        required = tests_before(outline, test)
        attempted = await self.attempted_test_ids(user_id, [t.id for t in required])
        check_test_prerequisite(outline, test, attempted)

        return definition

    async def submit_attempt(
        self,
        user_id: UUID,
        test_id: UUID,
        responses: list[ResponseInput],
        time_spent: int | None = None,
        actor_kind: ActorKind = ActorKind.DIRECT,
    ) -> TestAttempt:
        """Submit the single attempt of a user on a test.

        Objective questions are graded immediately; short answers wait for
        manual grading. Lookup rows are written first, then the attempt and
        all responses in one conditional batch.

        Raises:
            TestNotFoundError: If test does not exist
            AccessDeniedError: Without a paid enrollment in the course
            DuplicateAttemptError: If an attempt already exists, whatever
                the new responses contain
            InvalidQuestionError: If responses do not fit the test
        """
        definition = await self.course_service.get_test_definition(test_id)
        test = definition.test
        await self.enrollment_service.has_valid_access(user_id, test.course_id, actor_kind)

        if await self.has_attempt(user_id, test_id):
            logger.info(
                "attempt_duplicate_rejected",
                user_id=str(user_id),
                test_id=str(test_id),
            )
            raise DuplicateAttemptError

        questions = definition.question_by_id
        validate_responses(responses, questions)

        attempt_id = attempt_id_for(user_id, test_id)
        graded = [
            grade_response(attempt_id, questions[r.question_id], r) for r in responses
        ]
        summary = summarize(graded, test.total_marks, test.passing_score)
        now = datetime.now(UTC)

        attempt = TestAttempt(
            id=attempt_id,
            user_id=user_id,
            test_id=test_id,
            course_id=test.course_id,
            status=summary.status,
            score=summary.score,
            percentage=summary.percentage,
            is_passed=summary.is_passed,
            total_marks=test.total_marks,
            passing_score=test.passing_score,
            completed_at=now,
            time_spent=time_spent,
            graded_at=now if summary.status == AttemptStatus.GRADED else None,
            revision=0,
            responses=graded,
        )

        entries = [
            (
                self._insert_attempt,
                [
                    user_id,
                    test_id,
                    attempt.id,
                    attempt.course_id,
                    attempt.status.value,
                    attempt.score,
                    attempt.percentage,
                    attempt.is_passed,
                    attempt.total_marks,
                    attempt.passing_score,
                    attempt.time_spent,
                    attempt.completed_at,
                    attempt.graded_at,
                    attempt.revision,
                ],
            ),
            *(
                (
                    self._insert_response,
                    [
                        user_id,
                        test_id,
                        r.id,
                        r.question_id,
                        r.question_type.value,
                        r.max_marks,
                        list(r.selected_options),
                        r.short_answer,
                        r.status.value,
                        r.is_correct,
                        r.marks_obtained,
                        r.time_spent,
                    ],
                )
                for r in graded
            ),
        ]

        # Ids are stable, so lookups may precede the attempt they point to
        await execute_batch(
            self.session, self._lookup_entries(attempt), BatchType.LOGGED
        )

        result = await execute_batch(self.session, entries, BatchType.UNLOGGED)
        if not result.was_applied:
            logger.info(
                "attempt_duplicate_rejected",
                user_id=str(user_id),
                test_id=str(test_id),
            )
            raise DuplicateAttemptError

        logger.info(
            "attempt_submitted",
            user_id=str(user_id),
            test_id=str(test_id),
            attempt_id=str(attempt.id),
            status=attempt.status.value,
            score=attempt.score,
            is_passed=attempt.is_passed,
        )
        return attempt

    def _lookup_entries(self, attempt: TestAttempt) -> list[BatchEntry]:
        """Index rows pointing at an attempt's partition."""
        return [
            (
                self._insert_attempt_by_id,
                [attempt.id, attempt.user_id, attempt.test_id, attempt.course_id],
            ),
            (
                self._insert_attempt_by_user,
                [attempt.user_id, attempt.id, attempt.test_id, attempt.course_id],
            ),
            (
                self._insert_attempt_by_course,
                [attempt.course_id, attempt.id, attempt.user_id, attempt.test_id],
            ),
        ]

    # ==========================================================================
    # Grading
    # ==========================================================================

    async def grade_responses(
        self,
        attempt_id: UUID,
        gradings: list[GradingInput],
        grader_id: UUID | None = None,
    ) -> TestAttempt:
        """Grade short answer responses of an attempt.

        Every grading is validated before the conditional batch runs; the
        batch only applies if every targeted response is still SUBMITTED and
        the attempt revision is unchanged.

        Raises:
            AttemptNotFoundError: If attempt does not exist
            ResponseNotFoundError: If a response is not part of the attempt
            InvalidGradingTargetError: If a response is not a short answer
            AlreadyGradedError: If a response was already graded manually
            MarksExceededError: If marks exceed the question maximum
            GradingConflictError: If the attempt changed concurrently
        """
        attempt = await self.get_attempt(attempt_id)
        targets = validate_gradings(attempt, gradings)

        graded = {
            response.id: replace(
                response,
                status=ResponseStatus.MANUAL_GRADED,
                marks_obtained=grading.marks,
                is_correct=grading.marks > 0,
                instructor_notes=grading.notes,
                graded_by=grader_id,
            )
            for response, grading in targets
        }
        responses = [graded.get(r.id, r) for r in attempt.responses]
        summary = summarize(responses, attempt.total_marks, attempt.passing_score)
        now = datetime.now(UTC)
        graded_at = now if summary.status == AttemptStatus.GRADED else None

        entries = [
            (
                self._grade_response,
                [
                    r.status.value,
                    r.is_correct,
                    r.marks_obtained,
                    r.instructor_notes,
                    r.graded_by,
                    attempt.user_id,
                    attempt.test_id,
                    r.id,
                    ResponseStatus.SUBMITTED.value,
                ],
            )
            for r in graded.values()
        ]
        entries.append(
            (
                self._update_attempt_score,
                [
                    summary.status.value,
                    summary.score,
                    summary.percentage,
                    summary.is_passed,
                    graded_at,
                    attempt.revision + 1,
                    attempt.user_id,
                    attempt.test_id,
                    attempt.revision,
                ],
            )
        )

        result = await execute_batch(self.session, entries, BatchType.UNLOGGED)
        if not result.was_applied:
            current = await self.get_attempt(attempt_id)
            for response_id in graded:
                response = current.response(response_id)
                if response is not None and response.status != ResponseStatus.SUBMITTED:
                    raise AlreadyGradedError
            logger.warning("grading_conflict", attempt_id=str(attempt_id))
            raise GradingConflictError

        logger.info(
            "attempt_graded",
            attempt_id=str(attempt_id),
            graded_responses=len(graded),
            status=summary.status.value,
            score=summary.score,
        )
        return replace(
            attempt,
            status=summary.status,
            score=summary.score,
            percentage=summary.percentage,
            is_passed=summary.is_passed,
            graded_at=graded_at,
            revision=attempt.revision + 1,
            responses=responses,
        )

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_user_attempt(self, user_id: UUID, test_id: UUID) -> TestAttempt:
        """Get a user's attempt on a test.

        Raises:
            AttemptNotFoundError: If the user has not attempted the test
        """
        rows = await self.session.aexecute(self._get_attempt_rows, [user_id, test_id])
        attempt = TestAttempt.from_rows(list(rows))
        if attempt is None:
            raise AttemptNotFoundError
        return attempt

    async def get_attempt(self, attempt_id: UUID) -> TestAttempt:
        """Get attempt by ID.

        Raises:
            AttemptNotFoundError: If attempt does not exist
        """
        result = await self.session.aexecute(self._get_attempt_by_id, [attempt_id])
        row = result.one()
        if not row:
            raise AttemptNotFoundError
        attempt = await self.get_user_attempt(row.user_id, row.test_id)
        if attempt.id != attempt_id:
            # Lookup left by a submission that lost the race
            raise AttemptNotFoundError
        return attempt

    async def has_attempt(self, user_id: UUID, test_id: UUID) -> bool:
        """Whether the user submitted an attempt on the test."""
        result = await self.session.aexecute(self._get_attempt_head, [user_id, test_id])
        row = result.one()
        return row is not None and row.attempt_id is not None

    async def attempted_test_ids(
        self, user_id: UUID, test_ids: list[UUID]
    ) -> set[UUID]:
        """Subset of test_ids the user has attempted."""
        attempted = set()
        for test_id in test_ids:
            if await self.has_attempt(user_id, test_id):
                attempted.add(test_id)
        return attempted

    async def list_user_attempts(self, user_id: UUID) -> list[TestAttempt]:
        """All attempts of a user, newest first."""
        rows = await self.session.aexecute(self._list_user_attempts, [user_id])
        attempts = await self._load_attempts([(r.attempt_id, user_id, r.test_id) for r in rows])
        attempts.sort(key=lambda a: a.completed_at, reverse=True)
        return attempts

    async def list_course_attempts(
        self, course_id: UUID, status: AttemptStatus | None = None
    ) -> list[TestAttempt]:
        """Attempts on a course's tests, oldest first.

        With status UNDER_REVIEW this is the manual grading queue.
        """
        rows = await self.session.aexecute(self._list_course_attempts, [course_id])
        attempts = await self._load_attempts([(r.attempt_id, r.user_id, r.test_id) for r in rows])
        if status is not None:
            attempts = [a for a in attempts if a.status == status]
        attempts.sort(key=lambda a: a.completed_at)
        return attempts

    async def _load_attempts(
        self, keys: list[tuple[UUID, UUID, UUID]]
    ) -> list[TestAttempt]:
        attempts = []
        for attempt_id, user_id, test_id in keys:
            try:
                attempt = await self.get_user_attempt(user_id, test_id)
            except AttemptNotFoundError:
                attempt = None
            if attempt is None or attempt.id != attempt_id:
                # Lookup written by a submission whose batch never landed
                logger.warning(
                    "attempt_lookup_dangling",
                    attempt_id=str(attempt_id),
                    user_id=str(user_id),
                    test_id=str(test_id),
                )
                continue
            attempts.append(attempt)
        return attempts
