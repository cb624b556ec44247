"""Pydantic schemas for course authoring.

Request and response models for:
- Courses and sections
- Lessons
- Tests with their questions (author view, including correctness)
- Course outline
"""

from datetime import datetime
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from learnpath.courses.models import (
    ContentStatus,
    CourseOutline,
    Question,
    QuestionType,
    ShortAnswerQuestion,
    TestDefinition,
)


TRUE_FALSE_OPTION_COUNT = 2


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    status: ContentStatus
    creator_id: UUID
    created_at: datetime
    updated_at: datetime | None = None


# ==============================================================================
# Section Schemas
# ==============================================================================


class CreateSectionRequest(BaseModel):
    """Section creation request."""

    title: str = Field(..., min_length=1, max_length=200, description="Section title")
    position: int = Field(..., ge=0, description="Order within the course")


class SectionResponse(BaseModel):
    """Section response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    position: int
    created_at: datetime


# ==============================================================================
# Lesson Schemas
# ==============================================================================


class CreateLessonRequest(BaseModel):
    """Lesson creation request."""

    title: str = Field(..., min_length=1, max_length=200, description="Lesson title")
    position: int = Field(..., ge=0, description="Order within the section")
    content: str | None = Field(None, description="Lesson body")
    content_url: str | None = Field(None, max_length=500, description="Media URL")


class LessonResponse(BaseModel):
    """Lesson response (author view)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    section_id: UUID
    position: int
    title: str
    content: str | None = None
    content_url: str | None = None
    created_at: datetime


# ==============================================================================
# Test Schemas
# ==============================================================================


class OptionInput(BaseModel):
    """Answer option of an objective question."""

    text: str = Field(..., min_length=1, max_length=1000)
    is_correct: bool = False


class QuestionInput(BaseModel):
    """Question definition.

    MCQ needs at least two options and one correct option. TRUE_FALSE needs
    exactly two options with one correct. SHORT_ANSWER needs reference answers
    and no options.
    """

    question_type: QuestionType
    text: str = Field(..., min_length=1, max_length=5000)
    marks: int = Field(..., ge=0, description="Maximum marks for this question")
    options: list[OptionInput] = Field(default_factory=list)
    reference_answers: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_shape(self) -> Self:
        """Validate options/answers against the question type."""
        correct = sum(1 for o in self.options if o.is_correct)

        if self.question_type == QuestionType.SHORT_ANSWER:
            if self.options:
                msg = "Short answer questions cannot have options"
                raise ValueError(msg)
            if not self.reference_answers:
                msg = "Short answer questions need at least one reference answer"
                raise ValueError(msg)
            return self

        if self.reference_answers:
            msg = "Objective questions cannot have reference answers"
            raise ValueError(msg)
        if self.question_type == QuestionType.TRUE_FALSE:
            if len(self.options) != TRUE_FALSE_OPTION_COUNT or correct != 1:
                msg = "True/false questions need two options with one correct"
                raise ValueError(msg)
        elif len(self.options) < TRUE_FALSE_OPTION_COUNT or correct < 1:
            msg = "Multiple choice questions need two options and one correct"
            raise ValueError(msg)
        return self


class CreateTestRequest(BaseModel):
    """Test creation request."""

    title: str = Field(..., min_length=1, max_length=200, description="Test title")
    position: int = Field(..., ge=0, description="Order within the section")
    total_marks: int = Field(..., ge=0, description="Must equal the sum of marks")
    passing_score: int = Field(..., ge=0, le=100, description="Pass percentage")
    time_limit: int | None = Field(None, ge=1, description="Minutes")
    questions: list[QuestionInput] = Field(..., min_length=1)


class OptionResponse(BaseModel):
    """Option with its correctness flag (author view)."""

    id: UUID
    text: str
    is_correct: bool


class QuestionResponse(BaseModel):
    """Question response (author view)."""

    id: UUID
    position: int
    question_type: QuestionType
    text: str
    marks: int
    options: list[OptionResponse] = Field(default_factory=list)
    reference_answers: list[str] = Field(default_factory=list)

    @classmethod
    def from_question(cls, question: Question) -> "QuestionResponse":
        if isinstance(question, ShortAnswerQuestion):
            return cls(
                id=question.id,
                position=question.position,
                question_type=question.question_type,
                text=question.text,
                marks=question.marks,
                reference_answers=list(question.reference_answers),
            )
        return cls(
            id=question.id,
            position=question.position,
            question_type=question.question_type,
            text=question.text,
            marks=question.marks,
            options=[
                OptionResponse(id=o.id, text=o.text, is_correct=o.is_correct)
                for o in question.options
            ],
        )


class TestResponse(BaseModel):
    """Test response (author view)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    section_id: UUID
    position: int
    title: str
    total_marks: int
    passing_score: int
    time_limit: int | None = None
    is_published: bool = False
    created_at: datetime
    questions: list[QuestionResponse] = Field(default_factory=list)

    @classmethod
    def from_definition(cls, definition: TestDefinition) -> "TestResponse":
        test = definition.test
        return cls(
            id=test.id,
            course_id=test.course_id,
            section_id=test.section_id,
            position=test.position,
            title=test.title,
            total_marks=test.total_marks,
            passing_score=test.passing_score,
            time_limit=test.time_limit,
            is_published=test.is_published,
            created_at=test.created_at,
            questions=[QuestionResponse.from_question(q) for q in definition.questions],
        )


# ==============================================================================
# Outline Schemas
# ==============================================================================


class OutlineItem(BaseModel):
    """Content item entry in the outline."""

    id: UUID
    kind: str
    title: str
    position: int
    is_published: bool | None = None


class OutlineSection(BaseModel):
    """Section entry in the outline."""

    id: UUID
    title: str
    position: int
    lessons: list[OutlineItem] = Field(default_factory=list)
    tests: list[OutlineItem] = Field(default_factory=list)


class CourseOutlineResponse(BaseModel):
    """Course with its ordered sections, lessons and tests."""

    course: CourseResponse
    sections: list[OutlineSection] = Field(default_factory=list)

    @classmethod
    def from_outline(cls, outline: CourseOutline) -> "CourseOutlineResponse":
        return cls(
            course=CourseResponse.model_validate(outline.course),
            sections=[
                OutlineSection(
                    id=s.section.id,
                    title=s.section.title,
                    position=s.section.position,
                    lessons=[
                        OutlineItem(
                            id=lesson.id,
                            kind=lesson.kind.value,
                            title=lesson.title,
                            position=lesson.position,
                        )
                        for lesson in s.lessons
                    ],
                    tests=[
                        OutlineItem(
                            id=test.id,
                            kind=test.kind.value,
                            title=test.title,
                            position=test.position,
                            is_published=test.is_published,
                        )
                        for test in s.tests
                    ],
                )
                for s in outline.sections
            ],
        )
