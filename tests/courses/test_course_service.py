"""Tests for the course content graph.

Covers:
- Question shape validation
- Test marks invariant
- Authoring (sections, tests) against position uniqueness
- Outline loading and content lookups
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock, patch
from uuid import UUID, uuid4

import pytest
from pydantic import ValidationError

from learnpath.courses.models import (
    ContentKind,
    McqQuestion,
    QuestionType,
    ShortAnswerQuestion,
    question_from_row,
    question_row_values,
)
from learnpath.courses.schemas import (
    CreateSectionRequest,
    CreateTestRequest,
    QuestionInput,
)
from learnpath.courses.service import (
    CourseNotFoundError,
    CourseService,
    InvariantViolationError,
    SectionNotFoundError,
    TestNotFoundError,
    build_question,
    validate_test_marks,
)


def mcq(marks: int = 5) -> dict:
    return {
        "question_type": "mcq",
        "text": "Which drug is an ACE inhibitor?",
        "marks": marks,
        "options": [
            {"text": "Enalapril", "is_correct": True},
            {"text": "Metformin", "is_correct": False},
        ],
    }


def short_answer(marks: int = 5) -> dict:
    return {
        "question_type": "short_answer",
        "text": "Define bioavailability.",
        "marks": marks,
        "reference_answers": ["Fraction of dose reaching circulation"],
    }


def course_row(course_id: UUID) -> Mock:
    return Mock(
        id=course_id,
        title="Pharmacology 101",
        creator_id=uuid4(),
        description=None,
        status="draft",
        created_at=datetime.now(UTC),
        updated_at=None,
    )


def result_with(row) -> Mock:
    result = Mock()
    result.one.return_value = row
    result.was_applied = True
    return result


@pytest.fixture
def course_service(mock_session) -> CourseService:
    """CourseService with mocked session."""
    return CourseService(session=mock_session, keyspace="test_keyspace")


class TestQuestionInput:
    """Tests for question shape validation."""

    def test_valid_mcq(self) -> None:
        """MCQ with a correct option should validate."""
        question = QuestionInput(**mcq())
        assert question.question_type == QuestionType.MCQ

    def test_mcq_without_correct_option(self) -> None:
        """MCQ needs at least one correct option."""
        data = mcq()
        data["options"][0]["is_correct"] = False
        with pytest.raises(ValidationError):
            QuestionInput(**data)

    def test_true_false_needs_exactly_two_options(self) -> None:
        """TRUE_FALSE with three options should be rejected."""
        data = mcq()
        data["question_type"] = "true_false"
        data["options"].append({"text": "Maybe", "is_correct": False})
        with pytest.raises(ValidationError):
            QuestionInput(**data)

    def test_short_answer_rejects_options(self) -> None:
        """Short answers cannot carry options."""
        data = short_answer()
        data["options"] = [{"text": "A", "is_correct": True}]
        with pytest.raises(ValidationError):
            QuestionInput(**data)

    def test_short_answer_needs_reference(self) -> None:
        """Short answers need a reference answer."""
        data = short_answer()
        data["reference_answers"] = []
        with pytest.raises(ValidationError):
            QuestionInput(**data)


class TestMarksInvariant:
    """Tests for validate_test_marks."""

    def test_matching_sum(self) -> None:
        """Sum equal to total should pass."""
        validate_test_marks(10, [QuestionInput(**mcq(4)), QuestionInput(**short_answer(6))])

    def test_mismatching_sum(self) -> None:
        """Sum different from total should raise."""
        with pytest.raises(InvariantViolationError) as exc_info:
            validate_test_marks(10, [QuestionInput(**mcq(4))])
        assert exc_info.value.code == "invariant_violation"


class TestQuestionRows:
    """Tests for question persistence mapping."""

    def test_objective_question_row(self) -> None:
        """Options and correct ids should survive the row mapping."""
        question = build_question(uuid4(), 0, QuestionInput(**mcq()))
        values = question_row_values(question)
        columns = [
            "test_id", "position", "question_id", "question_type", "text",
            "marks", "option_ids", "option_texts", "correct_option_ids",
            "reference_answers",
        ]  # fmt: skip
        row = Mock(**dict(zip(columns, values, strict=True)))

        restored = question_from_row(row)

        assert isinstance(restored, McqQuestion)
        assert restored.correct_option_ids == question.correct_option_ids
        assert [o.text for o in restored.options] == ["Enalapril", "Metformin"]

    def test_short_answer_has_no_options(self) -> None:
        """Short answers should be stored without options."""
        question = build_question(uuid4(), 1, QuestionInput(**short_answer()))

        assert isinstance(question, ShortAnswerQuestion)
        values = question_row_values(question)
        assert values[6] == []
        assert values[9] == ["Fraction of dose reaching circulation"]


class TestCreateSection:
    """Tests for create_section."""

    @pytest.mark.asyncio
    async def test_position_taken(self, course_service: CourseService, mock_session):
        """A taken position should raise InvariantViolationError."""
        course_id = uuid4()
        conflict = Mock(was_applied=False)
        mock_session.aexecute.side_effect = [result_with(course_row(course_id)), conflict]

        with pytest.raises(InvariantViolationError):
            await course_service.create_section(
                course_id, CreateSectionRequest(title="Basics", position=0)
            )

    @pytest.mark.asyncio
    async def test_missing_course(self, course_service: CourseService, mock_session):
        """Unknown course should raise CourseNotFoundError."""
        mock_session.aexecute.return_value = result_with(None)

        with pytest.raises(CourseNotFoundError):
            await course_service.create_section(
                uuid4(), CreateSectionRequest(title="Basics", position=0)
            )


class TestCreateTest:
    """Tests for create_test."""

    @pytest.mark.asyncio
    async def test_marks_violation_writes_nothing(
        self, course_service: CourseService, mock_session
    ):
        """Invalid marks should fail before any store access."""
        data = CreateTestRequest(
            title="Quiz",
            position=0,
            total_marks=20,
            passing_score=50,
            questions=[mcq(5)],
        )

        with pytest.raises(InvariantViolationError):
            await course_service.create_test(uuid4(), uuid4(), data)

        mock_session.aexecute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_section(self, course_service: CourseService, mock_session):
        """A section outside the course should raise SectionNotFoundError."""
        course_id = uuid4()
        mock_session.aexecute.side_effect = [result_with(course_row(course_id)), []]
        data = CreateTestRequest(
            title="Quiz", position=0, total_marks=5, passing_score=50, questions=[mcq(5)]
        )

        with pytest.raises(SectionNotFoundError):
            await course_service.create_test(course_id, uuid4(), data)

    @pytest.mark.asyncio
    async def test_creates_unpublished_test_with_questions(
        self, course_service: CourseService, mock_session
    ):
        """Questions and the content lookup should be written in one batch."""
        course_id = uuid4()
        section_id = uuid4()
        section_row = Mock(
            section_id=section_id,
            course_id=course_id,
            title="Basics",
            position=0,
            created_at=datetime.now(UTC),
        )
        mock_session.aexecute.side_effect = [
            result_with(course_row(course_id)),
            [section_row],
            result_with(None),
        ]
        data = CreateTestRequest(
            title="Quiz",
            position=0,
            total_marks=10,
            passing_score=60,
            questions=[mcq(4), short_answer(6)],
        )

        with patch(
            "learnpath.courses.service.execute_batch", new_callable=AsyncMock
        ) as mock_batch:
            definition = await course_service.create_test(course_id, section_id, data)

        assert definition.test.is_published is False
        assert [q.position for q in definition.questions] == [0, 1]
        entries = mock_batch.await_args.args[1]
        assert len(entries) == 3
        assert entries[-1][1][:2] == [definition.test.id, ContentKind.TEST.value]


class TestLookups:
    """Tests for outline loading and content lookups."""

    @pytest.mark.asyncio
    async def test_load_outline_orders_content(
        self, course_service: CourseService, mock_session
    ):
        """Sections, lessons and tests should be ordered by position."""
        course_id = uuid4()
        first_id, second_id = uuid4(), uuid4()
        now = datetime.now(UTC)
        sections = [
            Mock(section_id=second_id, course_id=course_id, title="B", position=1, created_at=now),
            Mock(section_id=first_id, course_id=course_id, title="A", position=0, created_at=now),
        ]

        def lesson_row(section_id, position):
            return Mock(
                lesson_id=uuid4(),
                course_id=course_id,
                section_id=section_id,
                position=position,
                title=f"L{position}",
                created_at=now,
                content=None,
                content_url=None,
            )

        lessons = [lesson_row(first_id, 1), lesson_row(first_id, 0), lesson_row(second_id, 0)]
        mock_session.aexecute.side_effect = [
            result_with(course_row(course_id)),
            sections,
            lessons,
            [],
        ]

        outline = await course_service.load_outline(course_id)

        assert [s.section.title for s in outline.sections] == ["A", "B"]
        assert [lesson.position for lesson in outline.sections[0].lessons] == [0, 1]
        assert len(outline.items) == 3

    @pytest.mark.asyncio
    async def test_get_test_rejects_lessons(
        self, course_service: CourseService, mock_session
    ):
        """Looking up a lesson id as a test should raise TestNotFoundError."""
        lesson_ref = Mock(
            content_id=uuid4(),
            kind="lesson",
            course_id=uuid4(),
            section_id=uuid4(),
            position=0,
        )
        mock_session.aexecute.return_value = result_with(lesson_ref)

        with pytest.raises(TestNotFoundError):
            await course_service.get_test(lesson_ref.content_id)

    @pytest.mark.asyncio
    async def test_get_test_unknown_id(self, course_service: CourseService, mock_session):
        """An unknown id should raise TestNotFoundError."""
        mock_session.aexecute.return_value = result_with(None)

        with pytest.raises(TestNotFoundError):
            await course_service.get_test(uuid4())
