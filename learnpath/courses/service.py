"""Course content graph service layer.

Business logic for:
- Course and section creation
- Lesson and test creation (positions unique per section and kind)
- Test publication
- Outline and content lookups consumed by progress, attempts and
  certification
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from learnpath.core.database.batch import execute_batch
from learnpath.courses.models import (
    ContentKind,
    ContentRef,
    ContentStatus,
    Course,
    CourseOutline,
    Lesson,
    McqQuestion,
    Option,
    Question,
    QuestionType,
    Section,
    SectionOutline,
    ShortAnswerQuestion,
    Test,
    TestDefinition,
    TrueFalseQuestion,
    question_from_row,
    question_row_values,
)
from learnpath.courses.schemas import (
    CreateCourseRequest,
    CreateLessonRequest,
    CreateSectionRequest,
    CreateTestRequest,
    QuestionInput,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class SectionNotFoundError(CourseError):
    """Section not found in course."""

    def __init__(self, message: str = "Section not found"):
        super().__init__(message, "section_not_found")


class ContentNotFoundError(CourseError):
    """Lesson or test not found."""

    def __init__(self, message: str = "Content not found"):
        super().__init__(message, "content_not_found")


class TestNotFoundError(CourseError):
    """Test not found."""

    __test__ = False

    def __init__(self, message: str = "Test not found"):
        super().__init__(message, "test_not_found")


class InvariantViolationError(CourseError):
    """Content definition breaks a structural invariant."""

    def __init__(self, message: str = "Content invariant violated"):
        super().__init__(message, "invariant_violation")


# ==============================================================================
# Helper Functions
# ==============================================================================


def validate_test_marks(total_marks: int, questions: list[QuestionInput]) -> None:
    """Check that question marks add up to the test total.

    Raises:
        InvariantViolationError: If the sum differs from total_marks
    """
    marks_sum = sum(q.marks for q in questions)
    if marks_sum != total_marks:
        msg = f"Question marks sum to {marks_sum}, expected {total_marks}"
        raise InvariantViolationError(msg)


def build_question(test_id: UUID, position: int, data: QuestionInput) -> Question:
    """Create the question variant for an input definition."""
    question_id = uuid4()

    if data.question_type == QuestionType.SHORT_ANSWER:
        return ShortAnswerQuestion(
            id=question_id,
            test_id=test_id,
            position=position,
            text=data.text,
            marks=data.marks,
            reference_answers=tuple(data.reference_answers),
        )

    options = tuple(
        Option(id=uuid4(), text=o.text, is_correct=o.is_correct) for o in data.options
    )
    variant = McqQuestion if data.question_type == QuestionType.MCQ else TrueFalseQuestion
    return variant(
        id=question_id,
        test_id=test_id,
        position=position,
        text=data.text,
        marks=data.marks,
        options=options,
    )


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for the course content graph."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Courses
        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses WHERE id = ?
        """)

        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, description, status, creator_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        # Sections
        self._get_sections = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_sections WHERE course_id = ?
        """)

        self._insert_section = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_sections
            (course_id, position, section_id, title, created_at)
            VALUES (?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        # Lessons
        self._get_lessons = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_lessons WHERE course_id = ?
        """)

        self._get_lesson_at = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_lessons
            WHERE course_id = ? AND section_id = ? AND position = ?
        """)

        self._insert_lesson = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_lessons
            (course_id, section_id, position, lesson_id, title, content,
             content_url, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        # Tests
        self._get_tests = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_tests WHERE course_id = ?
        """)

        self._get_test_at = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_tests
            WHERE course_id = ? AND section_id = ? AND position = ?
        """)

        self._insert_test = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_tests
            (course_id, section_id, position, test_id, title, total_marks,
             passing_score, time_limit, is_published, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._publish_test = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_tests SET is_published = true
            WHERE course_id = ? AND section_id = ? AND position = ?
        """)

        # Content lookup
        self._get_content_item = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.content_items WHERE content_id = ?
        """)

        self._insert_content_item = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.content_items
            (content_id, kind, course_id, section_id, position)
            VALUES (?, ?, ?, ?, ?)
        """)

        # Questions
        self._get_questions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.test_questions WHERE test_id = ?
        """)

        self._insert_question = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.test_questions
            (test_id, position, question_id, question_type, text, marks,
             option_ids, option_texts, correct_option_ids, reference_answers)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

    # ==========================================================================
    # Authoring
    # ==========================================================================

    async def create_course(
        self, data: CreateCourseRequest, creator_id: UUID
    ) -> Course:
        """Create a course in draft status."""
        now = datetime.now(UTC)
        course = Course(
            id=uuid4(),
            title=data.title,
            creator_id=creator_id,
            description=data.description,
            status=ContentStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.description,
                course.status.value,
                course.creator_id,
                course.created_at,
                course.updated_at,
            ],
        )

        logger.info("course_created", course_id=str(course.id))
        return course

    async def create_section(
        self, course_id: UUID, data: CreateSectionRequest
    ) -> Section:
        """Create a section at a free position of the course.

        Raises:
            CourseNotFoundError: If course does not exist
            InvariantViolationError: If the position is taken
        """
        await self.get_course(course_id)

        section = Section(
            id=uuid4(),
            course_id=course_id,
            title=data.title,
            position=data.position,
        )

        result = await self.session.aexecute(
            self._insert_section,
            [course_id, section.position, section.id, section.title, section.created_at],
        )
        if not result.was_applied:
            msg = f"Section position {data.position} already taken"
            raise InvariantViolationError(msg)

        logger.info(
            "section_created",
            course_id=str(course_id),
            section_id=str(section.id),
            position=section.position,
        )
        return section

    async def create_lesson(
        self, course_id: UUID, section_id: UUID, data: CreateLessonRequest
    ) -> Lesson:
        """Create a lesson at a free position of the section.

        Raises:
            CourseNotFoundError: If course does not exist
            SectionNotFoundError: If section is not in the course
            InvariantViolationError: If the position is taken
        """
        await self._require_section(course_id, section_id)

        lesson = Lesson(
            id=uuid4(),
            course_id=course_id,
            section_id=section_id,
            position=data.position,
            title=data.title,
            created_at=datetime.now(UTC),
            content=data.content,
            content_url=data.content_url,
        )

        result = await self.session.aexecute(
            self._insert_lesson,
            [
                course_id,
                section_id,
                lesson.position,
                lesson.id,
                lesson.title,
                lesson.content,
                lesson.content_url,
                lesson.created_at,
            ],
        )
        if not result.was_applied:
            msg = f"Lesson position {data.position} already taken in section"
            raise InvariantViolationError(msg)

        await self.session.aexecute(
            self._insert_content_item,
            [lesson.id, ContentKind.LESSON.value, course_id, section_id, lesson.position],
        )

        logger.info(
            "lesson_created",
            course_id=str(course_id),
            section_id=str(section_id),
            lesson_id=str(lesson.id),
        )
        return lesson

    async def create_test(
        self, course_id: UUID, section_id: UUID, data: CreateTestRequest
    ) -> TestDefinition:
        """Create an unpublished test with its questions.

        The marks invariant is checked before anything is written.

        Raises:
            InvariantViolationError: If marks do not add up or the position is taken
            CourseNotFoundError: If course does not exist
            SectionNotFoundError: If section is not in the course
        """
        validate_test_marks(data.total_marks, data.questions)
        await self._require_section(course_id, section_id)

        test = Test(
            id=uuid4(),
            course_id=course_id,
            section_id=section_id,
            position=data.position,
            title=data.title,
            total_marks=data.total_marks,
            passing_score=data.passing_score,
            created_at=datetime.now(UTC),
            time_limit=data.time_limit,
            is_published=False,
        )
        questions = [
            build_question(test.id, position, q)
            for position, q in enumerate(data.questions)
        ]

        result = await self.session.aexecute(
            self._insert_test,
            [
                course_id,
                section_id,
                test.position,
                test.id,
                test.title,
                test.total_marks,
                test.passing_score,
                test.time_limit,
                test.is_published,
                test.created_at,
            ],
        )
        if not result.was_applied:
            msg = f"Test position {data.position} already taken in section"
            raise InvariantViolationError(msg)

        # Questions and the id lookup land together
        await execute_batch(
            self.session,
            [
                *((self._insert_question, question_row_values(q)) for q in questions),
                (
                    self._insert_content_item,
                    [test.id, ContentKind.TEST.value, course_id, section_id, test.position],
                ),
            ],
        )

        logger.info(
            "test_created",
            course_id=str(course_id),
            test_id=str(test.id),
            questions=len(questions),
            total_marks=test.total_marks,
        )
        return TestDefinition(test=test, questions=questions)

    async def publish_test(self, test_id: UUID) -> Test:
        """Publish a test so it gates later tests.

        Raises:
            TestNotFoundError: If test does not exist
        """
        test = await self.get_test(test_id)
        if test.is_published:
            return test

        await self.session.aexecute(
            self._publish_test, [test.course_id, test.section_id, test.position]
        )

        logger.info("test_published", test_id=str(test_id))
        return Test(
            id=test.id,
            course_id=test.course_id,
            section_id=test.section_id,
            position=test.position,
            title=test.title,
            total_marks=test.total_marks,
            passing_score=test.passing_score,
            created_at=test.created_at,
            time_limit=test.time_limit,
            is_published=True,
        )

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_course(self, course_id: UUID) -> Course:
        """Get course by ID.

        Raises:
            CourseNotFoundError: If course does not exist
        """
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        if not row:
            raise CourseNotFoundError
        return Course.from_row(row)

    async def get_sections(self, course_id: UUID) -> list[Section]:
        """Get sections of a course ordered by position."""
        rows = await self.session.aexecute(self._get_sections, [course_id])
        return sorted((Section.from_row(r) for r in rows), key=lambda s: s.position)

    async def load_outline(self, course_id: UUID) -> CourseOutline:
        """Load the ordered structure of a course.

        Raises:
            CourseNotFoundError: If course does not exist
        """
        course = await self.get_course(course_id)
        sections = await self.get_sections(course_id)
        lesson_rows = await self.session.aexecute(self._get_lessons, [course_id])
        test_rows = await self.session.aexecute(self._get_tests, [course_id])

        by_section = {s.id: SectionOutline(section=s) for s in sections}

        for row in lesson_rows:
            lesson = Lesson.from_row(row)
            if lesson.section_id in by_section:
                by_section[lesson.section_id].lessons.append(lesson)

        for row in test_rows:
            test = Test.from_row(row)
            if test.section_id in by_section:
                by_section[test.section_id].tests.append(test)

        for outline in by_section.values():
            outline.lessons.sort(key=lambda item: item.position)
            outline.tests.sort(key=lambda item: item.position)

        return CourseOutline(
            course=course,
            sections=[by_section[s.id] for s in sections],
        )

    async def get_content_item(self, content_id: UUID) -> ContentRef:
        """Locate a lesson or test by ID.

        Raises:
            ContentNotFoundError: If no lesson or test has this ID
        """
        result = await self.session.aexecute(self._get_content_item, [content_id])
        row = result.one()
        if not row:
            raise ContentNotFoundError
        return ContentRef.from_row(row)

    async def get_lesson(self, lesson_id: UUID) -> Lesson:
        """Get lesson by ID.

        Raises:
            ContentNotFoundError: If lesson does not exist
        """
        ref = await self.get_content_item(lesson_id)
        if ref.kind != ContentKind.LESSON:
            raise ContentNotFoundError("Lesson not found")

        result = await self.session.aexecute(
            self._get_lesson_at, [ref.course_id, ref.section_id, ref.position]
        )
        row = result.one()
        if not row:
            raise ContentNotFoundError("Lesson not found")
        return Lesson.from_row(row)

    async def get_test(self, test_id: UUID) -> Test:
        """Get test by ID (without questions).

        Raises:
            TestNotFoundError: If test does not exist
        """
        try:
            ref = await self.get_content_item(test_id)
        except ContentNotFoundError as e:
            raise TestNotFoundError from e
        if ref.kind != ContentKind.TEST:
            raise TestNotFoundError

        result = await self.session.aexecute(
            self._get_test_at, [ref.course_id, ref.section_id, ref.position]
        )
        row = result.one()
        if not row:
            raise TestNotFoundError
        return Test.from_row(row)

    async def get_test_definition(self, test_id: UUID) -> TestDefinition:
        """Get test with its ordered questions.

        Raises:
            TestNotFoundError: If test does not exist
        """
        test = await self.get_test(test_id)
        rows = await self.session.aexecute(self._get_questions, [test_id])
        questions = sorted(
            (question_from_row(r) for r in rows), key=lambda q: q.position
        )
        return TestDefinition(test=test, questions=questions)

    async def _require_section(self, course_id: UUID, section_id: UUID) -> Section:
        await self.get_course(course_id)
        for section in await self.get_sections(course_id):
            if section.id == section_id:
                return section
        raise SectionNotFoundError
