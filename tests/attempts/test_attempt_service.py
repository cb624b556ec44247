"""Tests for test attempts and grading.

Covers:
- Auto-grading of objective questions (exact option set match)
- Attempt status and score derivation
- Response validation
- Single-attempt submission guard and lookup write order
- Manual grading validation and concurrency outcomes
- Attempt listings
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock, patch
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import NoHostAvailable
from cassandra.query import BatchType

from learnpath.attempts.models import (
    AttemptStatus,
    ResponseStatus,
    TestAttempt,
    UserResponse,
    attempt_id_for,
)
from learnpath.attempts.schemas import GradingInput, ResponseInput
from learnpath.attempts.service import (
    AlreadyGradedError,
    AttemptNotFoundError,
    AttemptService,
    DuplicateAttemptError,
    GradingConflictError,
    InvalidGradingTargetError,
    InvalidQuestionError,
    MarksExceededError,
    ResponseNotFoundError,
    grade_response,
    options_match,
    summarize,
    validate_gradings,
    validate_responses,
)
from learnpath.auth.permissions import ActorKind
from learnpath.courses.models import (
    McqQuestion,
    Option,
    QuestionType,
    ShortAnswerQuestion,
    TestDefinition,
)
from learnpath.progress.rules import PrerequisiteNotMetError


def make_mcq(test_id: UUID, marks: int = 4, correct: int = 1) -> McqQuestion:
    options = tuple(
        Option(id=uuid4(), text=f"Option {i}", is_correct=i < correct) for i in range(3)
    )
    return McqQuestion(
        id=uuid4(), test_id=test_id, position=0, text="Pick", marks=marks, options=options
    )


def make_short(test_id: UUID, marks: int = 6) -> ShortAnswerQuestion:
    return ShortAnswerQuestion(
        id=uuid4(),
        test_id=test_id,
        position=1,
        text="Explain",
        marks=marks,
        reference_answers=("Reference",),
    )


def short_response(max_marks: int = 6, status=ResponseStatus.SUBMITTED) -> UserResponse:
    return UserResponse(
        id=uuid4(),
        question_id=uuid4(),
        question_type=QuestionType.SHORT_ANSWER,
        max_marks=max_marks,
        status=status,
        short_answer="My answer",
    )


def objective_response(marks: int) -> UserResponse:
    return UserResponse(
        id=uuid4(),
        question_id=uuid4(),
        question_type=QuestionType.MCQ,
        max_marks=4,
        status=ResponseStatus.AUTO_GRADED,
        is_correct=marks > 0,
        marks_obtained=marks,
    )


def make_attempt(responses: list[UserResponse], revision: int = 0) -> TestAttempt:
    return TestAttempt(
        id=uuid4(),
        user_id=uuid4(),
        test_id=uuid4(),
        course_id=uuid4(),
        status=AttemptStatus.UNDER_REVIEW,
        score=sum(r.marks_obtained or 0 for r in responses),
        percentage=0.0,
        is_passed=False,
        total_marks=10,
        passing_score=60,
        completed_at=datetime.now(UTC),
        revision=revision,
        responses=responses,
    )


class TestAutoGrading:
    """Tests for options_match and grade_response."""

    def test_exact_match_required(self) -> None:
        """Missing or extra options should be wrong."""
        a, b, c = uuid4(), uuid4(), uuid4()
        assert options_match({a, b}, frozenset({a, b})) is True
        assert options_match({a}, frozenset({a, b})) is False
        assert options_match({a, b, c}, frozenset({a, b})) is False
        assert options_match(set(), frozenset({a})) is False

    def test_correct_mcq_gets_full_marks(self) -> None:
        """A correct answer should earn the question's marks."""
        question = make_mcq(uuid4(), marks=4, correct=2)
        selected = [o.id for o in question.options if o.is_correct]

        response = grade_response(
            uuid4(), question, ResponseInput(question_id=question.id, selected_options=selected)
        )

        assert response.status == ResponseStatus.AUTO_GRADED
        assert response.is_correct is True
        assert response.marks_obtained == 4

    def test_partial_selection_scores_zero(self) -> None:
        """Partially correct selections score nothing."""
        question = make_mcq(uuid4(), marks=4, correct=2)

        response = grade_response(
            uuid4(),
            question,
            ResponseInput(question_id=question.id, selected_options=[question.options[0].id]),
        )

        assert response.is_correct is False
        assert response.marks_obtained == 0

    def test_short_answer_waits_for_review(self) -> None:
        """Short answers should stay SUBMITTED without marks."""
        question = make_short(uuid4())

        response = grade_response(
            uuid4(), question, ResponseInput(question_id=question.id, short_answer="text")
        )

        assert response.status == ResponseStatus.SUBMITTED
        assert response.marks_obtained is None
        assert response.is_correct is None


class TestSummarize:
    """Tests for summarize."""

    def test_under_review_with_pending_short_answer(self) -> None:
        """Any SUBMITTED response keeps the attempt under review."""
        summary = summarize([objective_response(4), short_response()], 10, 60)

        assert summary.status == AttemptStatus.UNDER_REVIEW
        assert summary.score == 4
        assert summary.percentage == pytest.approx(40.0)
        assert summary.is_passed is False

    def test_graded_when_all_terminal(self) -> None:
        """An attempt with only terminal responses is GRADED."""
        summary = summarize([objective_response(4), objective_response(2)], 10, 60)

        assert summary.status == AttemptStatus.GRADED
        assert summary.is_passed is True

    def test_passing_boundary_inclusive(self) -> None:
        """Percentage equal to the passing score passes."""
        summary = summarize([objective_response(3)], 5, 60)
        assert summary.is_passed is True

    def test_zero_total_marks(self) -> None:
        """Zero total marks should not divide by zero."""
        summary = summarize([], 0, 0)
        assert summary.percentage == 0.0


class TestValidateResponses:
    """Tests for validate_responses."""

    def test_rejects_empty(self) -> None:
        """An empty submission is invalid."""
        with pytest.raises(InvalidQuestionError):
            validate_responses([], {})

    def test_rejects_unknown_question(self) -> None:
        """Unknown question ids should be reported."""
        question = make_mcq(uuid4())
        stray = uuid4()

        with pytest.raises(InvalidQuestionError) as exc_info:
            validate_responses(
                [ResponseInput(question_id=stray, selected_options=[])],
                {question.id: question},
            )

        assert exc_info.value.question_ids == [stray]

    def test_rejects_duplicates(self) -> None:
        """A question answered twice is invalid."""
        question = make_mcq(uuid4())
        answer = ResponseInput(question_id=question.id, selected_options=[])

        with pytest.raises(InvalidQuestionError):
            validate_responses([answer, answer], {question.id: question})

    def test_rejects_wrong_answer_kind(self) -> None:
        """Options on a short answer question are invalid."""
        question = make_short(uuid4())

        with pytest.raises(InvalidQuestionError):
            validate_responses(
                [ResponseInput(question_id=question.id, selected_options=[uuid4()])],
                {question.id: question},
            )

    def test_rejects_repeated_option(self) -> None:
        """Selecting the same option twice is not an exact match."""
        question = make_mcq(uuid4(), correct=1)
        correct = question.options[0].id

        with pytest.raises(InvalidQuestionError) as exc_info:
            validate_responses(
                [ResponseInput(question_id=question.id, selected_options=[correct, correct])],
                {question.id: question},
            )

        assert exc_info.value.question_ids == [question.id]


class TestValidateGradings:
    """Tests for validate_gradings."""

    def test_rejects_objective_target(self) -> None:
        """Objective responses cannot be graded manually."""
        response = objective_response(4)
        attempt = make_attempt([response])

        with pytest.raises(InvalidGradingTargetError):
            validate_gradings(attempt, [GradingInput(response_id=response.id, marks=1)])

    def test_rejects_already_graded(self) -> None:
        """Manual grades are final."""
        response = short_response(status=ResponseStatus.MANUAL_GRADED)
        attempt = make_attempt([response])

        with pytest.raises(AlreadyGradedError):
            validate_gradings(attempt, [GradingInput(response_id=response.id, marks=1)])

    def test_rejects_excess_marks(self) -> None:
        """Marks above the question maximum are rejected."""
        response = short_response(max_marks=6)
        attempt = make_attempt([response])

        with pytest.raises(MarksExceededError):
            validate_gradings(attempt, [GradingInput(response_id=response.id, marks=7)])

    def test_rejects_unknown_response(self) -> None:
        """Responses outside the attempt are not found."""
        attempt = make_attempt([short_response()])

        with pytest.raises(ResponseNotFoundError):
            validate_gradings(attempt, [GradingInput(response_id=uuid4(), marks=1)])

    def test_rejects_repeated_target(self) -> None:
        """One response cannot be graded twice in a batch."""
        response = short_response()
        attempt = make_attempt([response])
        grading = GradingInput(response_id=response.id, marks=1)

        with pytest.raises(InvalidGradingTargetError):
            validate_gradings(attempt, [grading, grading])


# ==============================================================================
# Service
# ==============================================================================


@pytest.fixture
def course_service(outline_builder):
    service = Mock()
    service.get_test_definition = AsyncMock()
    service.load_outline = AsyncMock(return_value=outline_builder.outline)
    return service


@pytest.fixture
def enrollment_service():
    service = Mock()
    service.has_valid_access = AsyncMock()
    return service


@pytest.fixture
def attempt_service(mock_session, course_service, enrollment_service) -> AttemptService:
    """AttemptService with mocked collaborators."""
    return AttemptService(
        session=mock_session,
        keyspace="test_keyspace",
        course_service=course_service,
        enrollment_service=enrollment_service,
    )


@pytest.fixture
def definition(outline_builder, course_service) -> TestDefinition:
    """Published test with one MCQ (4 marks) and one short answer (6 marks)."""
    test = outline_builder.test(outline_builder.section(), total_marks=10)
    definition = TestDefinition(
        test=test, questions=[make_mcq(test.id, marks=4), make_short(test.id, marks=6)]
    )
    course_service.get_test_definition.return_value = definition
    return definition


def attempt_head(attempt_id: UUID | None) -> Mock:
    """Result of the attempt head read."""
    row = None if attempt_id is None else Mock(attempt_id=attempt_id)
    return Mock(one=Mock(return_value=row))


@pytest.fixture
def no_attempt(mock_session) -> None:
    """The store holds no attempt for the user yet."""
    mock_session.aexecute.return_value = attempt_head(None)


@pytest.mark.usefixtures("no_attempt")
class TestSubmitAttempt:
    """Tests for submit_attempt."""

    @pytest.mark.asyncio
    async def test_mixed_attempt_is_under_review(
        self,
        attempt_service: AttemptService,
        mock_session,
        definition: TestDefinition,
        user_id: UUID,
    ):
        """Objective answers are graded at once, short answers wait."""
        mcq, short = definition.questions
        correct = [o.id for o in mcq.options if o.is_correct]
        responses = [
            ResponseInput(question_id=mcq.id, selected_options=correct),
            ResponseInput(question_id=short.id, short_answer="Because"),
        ]

        with patch(
            "learnpath.attempts.service.execute_batch",
            new_callable=AsyncMock,
            return_value=Mock(was_applied=True),
        ) as mock_batch:
            attempt = await attempt_service.submit_attempt(
                user_id, definition.test.id, responses, time_spent=120
            )

        assert attempt.id == attempt_id_for(user_id, definition.test.id)
        assert attempt.status == AttemptStatus.UNDER_REVIEW
        assert attempt.score == 4
        assert attempt.percentage == pytest.approx(40.0)
        assert attempt.graded_at is None
        entries = mock_batch.await_args.args[1]
        assert len(entries) == 3
        mock_session.aexecute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lookup_rows_written_before_attempt(
        self,
        attempt_service: AttemptService,
        definition: TestDefinition,
        user_id: UUID,
    ):
        """Lookups land in a logged batch ahead of the conditional one."""
        mcq = definition.questions[0]

        with patch(
            "learnpath.attempts.service.execute_batch",
            new_callable=AsyncMock,
            return_value=Mock(was_applied=True),
        ) as mock_batch:
            attempt = await attempt_service.submit_attempt(
                user_id,
                definition.test.id,
                [ResponseInput(question_id=mcq.id, selected_options=[])],
            )

        lookups, submission = mock_batch.await_args_list
        assert lookups.args[2] == BatchType.LOGGED
        assert [s for s, _ in lookups.args[1]] == [
            attempt_service._insert_attempt_by_id,
            attempt_service._insert_attempt_by_user,
            attempt_service._insert_attempt_by_course,
        ]
        assert lookups.args[1][0][1][0] == attempt.id
        assert submission.args[2] == BatchType.UNLOGGED

    @pytest.mark.asyncio
    async def test_lookup_failure_skips_attempt(
        self,
        attempt_service: AttemptService,
        definition: TestDefinition,
        user_id: UUID,
    ):
        """If the lookup write fails, the attempt itself is never written."""
        mcq = definition.questions[0]

        with patch(
            "learnpath.attempts.service.execute_batch",
            new_callable=AsyncMock,
            side_effect=NoHostAvailable("Unable to complete the operation", {}),
        ) as mock_batch:
            with pytest.raises(NoHostAvailable):
                await attempt_service.submit_attempt(
                    user_id,
                    definition.test.id,
                    [ResponseInput(question_id=mcq.id, selected_options=[])],
                )

        mock_batch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_rejected_by_store(
        self,
        attempt_service: AttemptService,
        definition: TestDefinition,
        user_id: UUID,
    ):
        """Losing the insert race should raise DuplicateAttemptError."""
        mcq = definition.questions[0]

        with patch(
            "learnpath.attempts.service.execute_batch",
            new_callable=AsyncMock,
            side_effect=[Mock(), Mock(was_applied=False)],
        ):
            with pytest.raises(DuplicateAttemptError):
                await attempt_service.submit_attempt(
                    user_id,
                    definition.test.id,
                    [ResponseInput(question_id=mcq.id, selected_options=[])],
                )

    @pytest.mark.asyncio
    async def test_duplicate_regardless_of_content(
        self,
        attempt_service: AttemptService,
        mock_session,
        definition: TestDefinition,
        user_id: UUID,
    ):
        """A second submission is a duplicate even when its responses are invalid."""
        mock_session.aexecute.return_value = attempt_head(
            attempt_id_for(user_id, definition.test.id)
        )

        with patch(
            "learnpath.attempts.service.execute_batch", new_callable=AsyncMock
        ) as mock_batch:
            with pytest.raises(DuplicateAttemptError):
                await attempt_service.submit_attempt(
                    user_id,
                    definition.test.id,
                    [ResponseInput(question_id=uuid4(), selected_options=[])],
                )

        mock_batch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_question_writes_nothing(
        self,
        attempt_service: AttemptService,
        definition: TestDefinition,
        user_id: UUID,
    ):
        """Invalid responses should fail before the batch."""
        with patch(
            "learnpath.attempts.service.execute_batch", new_callable=AsyncMock
        ) as mock_batch:
            with pytest.raises(InvalidQuestionError):
                await attempt_service.submit_attempt(
                    user_id,
                    definition.test.id,
                    [ResponseInput(question_id=uuid4(), selected_options=[])],
                )

        mock_batch.assert_not_awaited()


@pytest.mark.usefixtures("no_attempt")
class TestObjectiveScoring:
    """Two multiple choice questions of 2 marks each, passing at 50%."""

    @pytest.fixture
    def scored(self, outline_builder, course_service) -> TestDefinition:
        test = outline_builder.test(
            outline_builder.section(), total_marks=4, passing_score=50
        )
        definition = TestDefinition(
            test=test,
            questions=[
                make_mcq(test.id, marks=2, correct=2),
                make_mcq(test.id, marks=2, correct=2),
            ],
        )
        course_service.get_test_definition.return_value = definition
        return definition

    @staticmethod
    def correct_ids(question: McqQuestion) -> list[UUID]:
        return [o.id for o in question.options if o.is_correct]

    @pytest.mark.asyncio
    async def test_both_correct(
        self, attempt_service: AttemptService, scored: TestDefinition, user_id: UUID
    ):
        """Two exact matches give 4 marks, 100% and a GRADED pass."""
        first, second = scored.questions

        with patch(
            "learnpath.attempts.service.execute_batch",
            new_callable=AsyncMock,
            return_value=Mock(was_applied=True),
        ):
            attempt = await attempt_service.submit_attempt(
                user_id,
                scored.test.id,
                [
                    ResponseInput(question_id=first.id, selected_options=self.correct_ids(first)),
                    ResponseInput(question_id=second.id, selected_options=self.correct_ids(second)),
                ],
            )

        assert attempt.score == 4
        assert attempt.percentage == pytest.approx(100.0)
        assert attempt.is_passed is True
        assert attempt.status == AttemptStatus.GRADED
        assert attempt.graded_at is not None

    @pytest.mark.asyncio
    async def test_partial_overlap_scores_zero(
        self, attempt_service: AttemptService, scored: TestDefinition, user_id: UUID
    ):
        """One of two correct options earns nothing for that question."""
        first, second = scored.questions

        with patch(
            "learnpath.attempts.service.execute_batch",
            new_callable=AsyncMock,
            return_value=Mock(was_applied=True),
        ):
            attempt = await attempt_service.submit_attempt(
                user_id,
                scored.test.id,
                [
                    ResponseInput(question_id=first.id, selected_options=self.correct_ids(first)),
                    ResponseInput(
                        question_id=second.id,
                        selected_options=self.correct_ids(second)[:1],
                    ),
                ],
            )

        partial = next(r for r in attempt.responses if r.question_id == second.id)
        assert partial.marks_obtained == 0
        assert partial.is_correct is False
        assert attempt.score == 2
        assert attempt.percentage == pytest.approx(50.0)
        assert attempt.is_passed is True

    @pytest.mark.asyncio
    async def test_repeated_option_rejected(
        self, attempt_service: AttemptService, scored: TestDefinition, user_id: UUID
    ):
        """Repeating a correct option is rejected before anything is written."""
        first = scored.questions[0]
        option = self.correct_ids(first)[0]

        with patch(
            "learnpath.attempts.service.execute_batch", new_callable=AsyncMock
        ) as mock_batch:
            with pytest.raises(InvalidQuestionError):
                await attempt_service.submit_attempt(
                    user_id,
                    scored.test.id,
                    [ResponseInput(question_id=first.id, selected_options=[option, option])],
                )

        mock_batch.assert_not_awaited()


class TestTakeTest:
    """Tests for get_test_for_taking."""

    @pytest.mark.asyncio
    async def test_blocked_by_unattempted_earlier_test(
        self,
        attempt_service: AttemptService,
        course_service,
        outline_builder,
        user_id: UUID,
    ):
        """An earlier published test without an attempt blocks taking."""
        section = outline_builder.section()
        earlier = outline_builder.test(section)
        target = outline_builder.test(section)
        course_service.get_test_definition.return_value = TestDefinition(
            test=target, questions=[make_mcq(target.id)]
        )

        with patch.object(
            attempt_service, "attempted_test_ids", AsyncMock(return_value=set())
        ):
            with pytest.raises(PrerequisiteNotMetError) as exc_info:
                await attempt_service.get_test_for_taking(
                    user_id, target.id, ActorKind.DIRECT
                )

        assert exc_info.value.content_id == earlier.id


class TestGradeResponses:
    """Tests for grade_responses."""

    @pytest.mark.asyncio
    async def test_grading_last_response_completes_attempt(
        self, attempt_service: AttemptService
    ):
        """Grading the last pending response should mark the attempt GRADED."""
        pending = short_response(max_marks=6)
        attempt = make_attempt([objective_response(4), pending], revision=2)
        grader = uuid4()

        with (
            patch.object(attempt_service, "get_attempt", AsyncMock(return_value=attempt)),
            patch(
                "learnpath.attempts.service.execute_batch",
                new_callable=AsyncMock,
                return_value=Mock(was_applied=True),
            ) as mock_batch,
        ):
            result = await attempt_service.grade_responses(
                attempt.id,
                [GradingInput(response_id=pending.id, marks=3, notes="Partial")],
                grader_id=grader,
            )

        assert result.status == AttemptStatus.GRADED
        assert result.score == 7
        assert result.percentage == pytest.approx(70.0)
        assert result.is_passed is True
        assert result.revision == 3
        graded = result.response(pending.id)
        assert graded.status == ResponseStatus.MANUAL_GRADED
        assert graded.is_correct is True
        assert graded.graded_by == grader
        score_params = mock_batch.await_args.args[1][-1][1]
        assert score_params[-1] == 2
        assert score_params[5] == 3

    @pytest.mark.asyncio
    async def test_zero_marks_is_incorrect(self, attempt_service: AttemptService):
        """Zero manual marks mark the response incorrect."""
        pending = short_response()
        attempt = make_attempt([pending])

        with (
            patch.object(attempt_service, "get_attempt", AsyncMock(return_value=attempt)),
            patch(
                "learnpath.attempts.service.execute_batch",
                new_callable=AsyncMock,
                return_value=Mock(was_applied=True),
            ),
        ):
            result = await attempt_service.grade_responses(
                attempt.id, [GradingInput(response_id=pending.id, marks=0)]
            )

        assert result.response(pending.id).is_correct is False

    @pytest.mark.asyncio
    async def test_concurrent_grade_reports_already_graded(
        self, attempt_service: AttemptService
    ):
        """Losing the race on a response should raise AlreadyGradedError."""
        pending = short_response()
        before = make_attempt([pending])
        after = make_attempt(
            [replace(pending, status=ResponseStatus.MANUAL_GRADED)],
            revision=1,
        )

        with (
            patch.object(
                attempt_service, "get_attempt", AsyncMock(side_effect=[before, after])
            ),
            patch(
                "learnpath.attempts.service.execute_batch",
                new_callable=AsyncMock,
                return_value=Mock(was_applied=False),
            ),
        ):
            with pytest.raises(AlreadyGradedError):
                await attempt_service.grade_responses(
                    before.id, [GradingInput(response_id=pending.id, marks=2)]
                )

    @pytest.mark.asyncio
    async def test_revision_change_reports_conflict(
        self, attempt_service: AttemptService
    ):
        """A concurrent change elsewhere should raise GradingConflictError."""
        pending = short_response()
        attempt = make_attempt([pending])

        with (
            patch.object(attempt_service, "get_attempt", AsyncMock(return_value=attempt)),
            patch(
                "learnpath.attempts.service.execute_batch",
                new_callable=AsyncMock,
                return_value=Mock(was_applied=False),
            ),
        ):
            with pytest.raises(GradingConflictError):
                await attempt_service.grade_responses(
                    attempt.id, [GradingInput(response_id=pending.id, marks=2)]
                )

    @pytest.mark.asyncio
    async def test_excess_marks_writes_nothing(self, attempt_service: AttemptService):
        """Marks above the maximum fail before the batch; the response stays SUBMITTED."""
        pending = short_response(max_marks=6)
        attempt = make_attempt([pending])

        with (
            patch.object(attempt_service, "get_attempt", AsyncMock(return_value=attempt)),
            patch(
                "learnpath.attempts.service.execute_batch", new_callable=AsyncMock
            ) as mock_batch,
        ):
            with pytest.raises(MarksExceededError):
                await attempt_service.grade_responses(
                    attempt.id, [GradingInput(response_id=pending.id, marks=7)]
                )

        mock_batch.assert_not_awaited()
        assert attempt.response(pending.id).status == ResponseStatus.SUBMITTED


class TestListAttempts:
    """Tests for list_user_attempts and list_course_attempts."""

    @pytest.mark.asyncio
    async def test_user_attempts_newest_first(
        self, attempt_service: AttemptService, mock_session, user_id: UUID
    ):
        """A learner's attempts are loaded from their partitions, newest first."""
        older = replace(
            make_attempt([objective_response(4)]),
            completed_at=datetime.now(UTC) - timedelta(days=2),
        )
        newer = make_attempt([short_response()])
        mock_session.aexecute.return_value = [
            Mock(attempt_id=older.id, test_id=older.test_id),
            Mock(attempt_id=newer.id, test_id=newer.test_id),
        ]

        with patch.object(
            attempt_service, "get_user_attempt", AsyncMock(side_effect=[older, newer])
        ) as mock_get:
            attempts = await attempt_service.list_user_attempts(user_id)

        assert attempts == [newer, older]
        assert mock_get.await_args_list[0].args == (user_id, older.test_id)

    @pytest.mark.asyncio
    async def test_dangling_lookup_skipped(
        self, attempt_service: AttemptService, mock_session, user_id: UUID
    ):
        """A lookup whose attempt was never written is left out."""
        attempt = make_attempt([objective_response(4)])
        mock_session.aexecute.return_value = [
            Mock(attempt_id=uuid4(), test_id=uuid4()),
            Mock(attempt_id=attempt.id, test_id=attempt.test_id),
        ]

        with patch.object(
            attempt_service,
            "get_user_attempt",
            AsyncMock(side_effect=[AttemptNotFoundError(), attempt]),
        ):
            attempts = await attempt_service.list_user_attempts(user_id)

        assert attempts == [attempt]

    @pytest.mark.asyncio
    async def test_course_review_queue(self, attempt_service: AttemptService, mock_session):
        """Filtering by UNDER_REVIEW gives the grading queue, oldest first."""
        now = datetime.now(UTC)
        graded = replace(
            make_attempt([objective_response(4)]), status=AttemptStatus.GRADED
        )
        late = replace(make_attempt([short_response()]), completed_at=now)
        early = replace(
            make_attempt([short_response()]), completed_at=now - timedelta(hours=3)
        )
        mock_session.aexecute.return_value = [
            Mock(attempt_id=a.id, user_id=a.user_id, test_id=a.test_id)
            for a in (graded, late, early)
        ]

        with patch.object(
            attempt_service,
            "get_user_attempt",
            AsyncMock(side_effect=[graded, late, early]),
        ):
            attempts = await attempt_service.list_course_attempts(
                uuid4(), AttemptStatus.UNDER_REVIEW
            )

        assert attempts == [early, late]

    @pytest.mark.asyncio
    async def test_course_attempts_unfiltered(
        self, attempt_service: AttemptService, mock_session
    ):
        """Without a status every attempt of the course is listed."""
        graded = replace(
            make_attempt([objective_response(4)]), status=AttemptStatus.GRADED
        )
        mock_session.aexecute.return_value = [
            Mock(attempt_id=graded.id, user_id=graded.user_id, test_id=graded.test_id)
        ]

        with patch.object(
            attempt_service, "get_user_attempt", AsyncMock(return_value=graded)
        ):
            attempts = await attempt_service.list_course_attempts(uuid4())

        assert attempts == [graded]

    @pytest.mark.asyncio
    async def test_lookup_of_losing_submission_skipped(
        self, attempt_service: AttemptService, mock_session, user_id: UUID
    ):
        """A lookup left by a rejected concurrent submission is not listed twice."""
        winner = make_attempt([objective_response(4)])
        mock_session.aexecute.return_value = [
            Mock(attempt_id=winner.id, test_id=winner.test_id),
            Mock(attempt_id=uuid4(), test_id=winner.test_id),
        ]

        with patch.object(
            attempt_service, "get_user_attempt", AsyncMock(return_value=winner)
        ):
            attempts = await attempt_service.list_user_attempts(user_id)

        assert attempts == [winner]


class TestGetAttempt:
    """Tests for get_attempt."""

    @pytest.mark.asyncio
    async def test_resolves_through_lookup(
        self, attempt_service: AttemptService, mock_session
    ):
        """The id lookup leads to the attempt partition."""
        attempt = make_attempt([short_response()])
        mock_session.aexecute.return_value = Mock(
            one=Mock(return_value=Mock(user_id=attempt.user_id, test_id=attempt.test_id))
        )

        with patch.object(
            attempt_service, "get_user_attempt", AsyncMock(return_value=attempt)
        ) as mock_get:
            result = await attempt_service.get_attempt(attempt.id)

        assert result is attempt
        mock_get.assert_awaited_once_with(attempt.user_id, attempt.test_id)

    @pytest.mark.asyncio
    async def test_lookup_of_losing_submission(
        self, attempt_service: AttemptService, mock_session
    ):
        """An id whose submission lost the race is not found."""
        winner = make_attempt([short_response()])
        mock_session.aexecute.return_value = Mock(
            one=Mock(return_value=Mock(user_id=winner.user_id, test_id=winner.test_id))
        )

        with (
            patch.object(
                attempt_service, "get_user_attempt", AsyncMock(return_value=winner)
            ),
            pytest.raises(AttemptNotFoundError),
        ):
            await attempt_service.get_attempt(uuid4())
