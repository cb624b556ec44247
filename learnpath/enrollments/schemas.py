"""Pydantic schemas for enrollments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from learnpath.auth.permissions import ActorKind

from .models import Enrollment


class RecordEnrollmentRequest(BaseModel):
    """Enrollment recorded by the checkout collaborator."""

    user_id: UUID
    course_id: UUID
    actor_kind: ActorKind = ActorKind.DIRECT
    company_id: UUID | None = Field(None, description="Required for sponsored access")
    payment_completed: bool = False


class PaymentCompletedRequest(BaseModel):
    """Payment completion notice from the checkout collaborator."""

    user_id: UUID
    actor_kind: ActorKind = ActorKind.DIRECT


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    user_id: UUID
    course_id: UUID
    actor_kind: ActorKind
    enrolled_at: datetime
    payment_completed: bool
    company_id: UUID | None = None
    progress_percent: int = 0
    is_completed: bool = False

    @classmethod
    def from_entity(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        return cls(
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            actor_kind=enrollment.actor_kind,
            enrolled_at=enrollment.enrolled_at,
            payment_completed=enrollment.payment_completed,
            company_id=enrollment.company_id,
            progress_percent=enrollment.progress_percent,
            is_completed=enrollment.is_completed,
        )


class EnrollmentListResponse(BaseModel):
    """List of enrollments."""

    items: list[EnrollmentResponse]
    total: int
