"""Pydantic schemas for test attempts.

Request and response models for:
- Taking a test (questions without correctness)
- Submitting an attempt
- Manual grading of short answers
- Attempt results
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from learnpath.courses.models import (
    QuestionType,
    ShortAnswerQuestion,
    TestDefinition,
)

from .models import AttemptStatus, ResponseStatus, TestAttempt, UserResponse


# ==============================================================================
# Taking a Test
# ==============================================================================


class TakeOptionResponse(BaseModel):
    """Option shown to a learner."""

    id: UUID
    text: str


class TakeQuestionResponse(BaseModel):
    """Question shown to a learner (no correct options or reference answers)."""

    id: UUID
    position: int
    question_type: QuestionType
    text: str
    marks: int
    options: list[TakeOptionResponse] = Field(default_factory=list)


class TakeTestResponse(BaseModel):
    """Test shown to a learner."""

    id: UUID
    course_id: UUID
    title: str
    total_marks: int
    passing_score: int
    time_limit: int | None = None
    questions: list[TakeQuestionResponse]

    @classmethod
    def from_definition(cls, definition: TestDefinition) -> "TakeTestResponse":
        test = definition.test
        questions = []
        for q in definition.questions:
            options = (
                []
                if isinstance(q, ShortAnswerQuestion)
                else [TakeOptionResponse(id=o.id, text=o.text) for o in q.options]
            )
            questions.append(
                TakeQuestionResponse(
                    id=q.id,
                    position=q.position,
                    question_type=q.question_type,
                    text=q.text,
                    marks=q.marks,
                    options=options,
                )
            )
        return cls(
            id=test.id,
            course_id=test.course_id,
            title=test.title,
            total_marks=test.total_marks,
            passing_score=test.passing_score,
            time_limit=test.time_limit,
            questions=questions,
        )


# ==============================================================================
# Submission
# ==============================================================================


class ResponseInput(BaseModel):
    """Answer to one question."""

    question_id: UUID
    selected_options: list[UUID] | None = Field(
        None, description="Option ids (multiple choice / true-false)"
    )
    short_answer: str | None = Field(None, max_length=10000)
    time_spent: int | None = Field(None, ge=0, description="Seconds")


class SubmitAttemptRequest(BaseModel):
    """Attempt submission."""

    responses: list[ResponseInput]
    time_spent: int | None = Field(None, ge=0, description="Total seconds")


# ==============================================================================
# Grading
# ==============================================================================


class GradingInput(BaseModel):
    """Manual grade for one short answer response."""

    response_id: UUID
    marks: int = Field(..., ge=0)
    notes: str | None = Field(None, max_length=5000)


class GradeResponsesRequest(BaseModel):
    """Batch of manual grades for one attempt."""

    gradings: list[GradingInput] = Field(..., min_length=1)


# ==============================================================================
# Results
# ==============================================================================


class UserResponseResponse(BaseModel):
    """Response result."""

    id: UUID
    question_id: UUID
    question_type: QuestionType
    status: ResponseStatus
    max_marks: int
    selected_options: list[UUID] = Field(default_factory=list)
    short_answer: str | None = None
    is_correct: bool | None = None
    marks_obtained: int | None = None
    instructor_notes: str | None = None
    time_spent: int | None = None

    @classmethod
    def from_entity(cls, response: UserResponse) -> "UserResponseResponse":
        return cls(
            id=response.id,
            question_id=response.question_id,
            question_type=response.question_type,
            status=response.status,
            max_marks=response.max_marks,
            selected_options=list(response.selected_options),
            short_answer=response.short_answer,
            is_correct=response.is_correct,
            marks_obtained=response.marks_obtained,
            instructor_notes=response.instructor_notes,
            time_spent=response.time_spent,
        )


class TestAttemptResponse(BaseModel):
    """Attempt result with its responses."""

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
    time_spent: int | None = None
    completed_at: datetime
    graded_at: datetime | None = None
    responses: list[UserResponseResponse]

    @classmethod
    def from_entity(cls, attempt: TestAttempt) -> "TestAttemptResponse":
        return cls(
            id=attempt.id,
            user_id=attempt.user_id,
            test_id=attempt.test_id,
            course_id=attempt.course_id,
            status=attempt.status,
            score=attempt.score,
            percentage=attempt.percentage,
            is_passed=attempt.is_passed,
            total_marks=attempt.total_marks,
            passing_score=attempt.passing_score,
            time_spent=attempt.time_spent,
            completed_at=attempt.completed_at,
            graded_at=attempt.graded_at,
            responses=[UserResponseResponse.from_entity(r) for r in attempt.responses],
        )


class TestAttemptListResponse(BaseModel):
    """List of attempts."""

    items: list[TestAttemptResponse]
    total: int
