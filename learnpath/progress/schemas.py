"""Pydantic schemas for learning progress.

Request and response models for:
- Content completion
- Course progress (with per-section breakdown)
- Lesson material
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from learnpath.auth.permissions import ActorKind
from learnpath.courses.models import ContentKind, Lesson

from .models import ContentProgress, CourseProgress


# ==============================================================================
# Request Schemas
# ==============================================================================


class MarkCourseCompletedRequest(BaseModel):
    """Administrative course completion for a learner."""

    user_id: UUID = Field(..., description="Learner whose progress is completed")
    actor_kind: ActorKind = Field(
        ActorKind.DIRECT, description="Enrollment variant of the learner"
    )


# ==============================================================================
# Response Schemas
# ==============================================================================


class SectionProgressResponse(BaseModel):
    """Completion of one section."""

    section_id: UUID
    title: str
    completed: int
    total: int
    percentage: int


class CourseProgressResponse(BaseModel):
    """Completion of a course."""

    course_id: UUID
    completed_items: int
    total_items: int
    percentage: int = Field(..., ge=0, le=100)
    is_completed: bool
    sections: list[SectionProgressResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, progress: CourseProgress) -> "CourseProgressResponse":
        return cls(
            course_id=progress.course_id,
            completed_items=progress.completed_items,
            total_items=progress.total_items,
            percentage=progress.percentage,
            is_completed=progress.is_completed,
            sections=[
                SectionProgressResponse(
                    section_id=s.section_id,
                    title=s.title,
                    completed=s.completed,
                    total=s.total,
                    percentage=s.percentage,
                )
                for s in progress.sections
            ],
        )


class CourseProgressListResponse(BaseModel):
    """Progress summaries of all enrolled courses."""

    items: list[CourseProgressResponse]
    total: int


class ContentStatusResponse(BaseModel):
    """Completion state of one content item."""

    content_id: UUID
    kind: ContentKind
    is_completed: bool
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, status: ContentProgress) -> "ContentStatusResponse":
        return cls(
            content_id=status.content_id,
            kind=status.kind,
            is_completed=status.is_completed,
            completed_at=status.completed_at,
        )


class LessonMaterialResponse(BaseModel):
    """Lesson content unlocked for the learner."""

    id: UUID
    course_id: UUID
    section_id: UUID
    position: int
    title: str
    content: str | None = None
    content_url: str | None = None

    @classmethod
    def from_entity(cls, lesson: Lesson) -> "LessonMaterialResponse":
        return cls(
            id=lesson.id,
            course_id=lesson.course_id,
            section_id=lesson.section_id,
            position=lesson.position,
            title=lesson.title,
            content=lesson.content,
            content_url=lesson.content_url,
        )
