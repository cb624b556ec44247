"""Enrollment API endpoints.

Provides routes for:
- Listing the caller's enrollments
- Recording enrollments and payment completion (checkout collaborator, admin)
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import AdminUser, CurrentUser

from .dependencies import EnrollmentServiceDep, handle_enrollment_error
from .schemas import (
    EnrollmentListResponse,
    EnrollmentResponse,
    PaymentCompletedRequest,
    RecordEnrollmentRequest,
)
from .service import EnrollmentError


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


@router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """List the caller's enrollments, including unpaid ones."""
    enrollments = await enrollment_service.list_user_enrollments(user.id)
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record enrollment",
)
async def record_enrollment(
    data: RecordEnrollmentRequest,
    enrollment_service: EnrollmentServiceDep,
    user: AdminUser,
) -> EnrollmentResponse:
    """Record an enrollment on behalf of the checkout flow."""
    try:
        enrollment = await enrollment_service.record_enrollment(
            user_id=data.user_id,
            course_id=data.course_id,
            actor_kind=data.actor_kind,
            company_id=data.company_id,
            payment_completed=data.payment_completed,
        )
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.post(
    "/courses/{course_id}/payment",
    response_model=EnrollmentResponse,
    summary="Mark payment completed",
)
async def mark_payment_completed(
    course_id: UUID,
    data: PaymentCompletedRequest,
    enrollment_service: EnrollmentServiceDep,
    user: AdminUser,
) -> EnrollmentResponse:
    """Flag an enrollment as paid."""
    try:
        enrollment = await enrollment_service.mark_payment_completed(
            user_id=data.user_id,
            course_id=course_id,
            actor_kind=data.actor_kind,
        )
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
