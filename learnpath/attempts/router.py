"""Test attempt API endpoints.

Provides routes for:
- Opening a test for taking
- Submitting the single attempt
- Reading attempt results
- Listing attempts (learner, grading queue)
- Manual grading (teacher)
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from learnpath.auth.dependencies import CurrentUser, TeacherUser
from learnpath.auth.permissions import is_at_least_teacher
from learnpath.courses.dependencies import handle_course_error
from learnpath.courses.service import CourseError
from learnpath.enrollments.dependencies import handle_enrollment_error
from learnpath.enrollments.service import EnrollmentError
from learnpath.progress.dependencies import handle_progress_error
from learnpath.progress.rules import ProgressError

from .dependencies import AttemptServiceDep, handle_attempt_error
from .models import AttemptStatus
from .schemas import (
    GradeResponsesRequest,
    SubmitAttemptRequest,
    TakeTestResponse,
    TestAttemptListResponse,
    TestAttemptResponse,
)
from .service import AttemptError


router = APIRouter(prefix="/v1/attempts", tags=["attempts"])
tests_router = APIRouter(prefix="/v1/tests", tags=["attempts"])


# ==============================================================================
# Learner Endpoints
# ==============================================================================


@tests_router.get(
    "/{test_id}/take",
    response_model=TakeTestResponse,
    summary="Open test for taking",
)
async def take_test(
    test_id: UUID,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> TakeTestResponse:
    """Get test questions without correct options or reference answers.

    Requires a paid enrollment and attempts on every earlier published test.
    """
    try:
        definition = await attempt_service.get_test_for_taking(
            user.id, test_id, user.actor_kind
        )
        return TakeTestResponse.from_definition(definition)
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e


@tests_router.post(
    "/{test_id}/attempts",
    response_model=TestAttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit attempt",
)
async def submit_attempt(
    test_id: UUID,
    data: SubmitAttemptRequest,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> TestAttemptResponse:
    """Submit the caller's single attempt on a test."""
    try:
        attempt = await attempt_service.submit_attempt(
            user_id=user.id,
            test_id=test_id,
            responses=data.responses,
            time_spent=data.time_spent,
            actor_kind=user.actor_kind,
        )
        return TestAttemptResponse.from_entity(attempt)
    except AttemptError as e:
        raise handle_attempt_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@tests_router.get(
    "/{test_id}/attempts/my",
    response_model=TestAttemptResponse,
    summary="Get my attempt",
)
async def get_my_attempt(
    test_id: UUID,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> TestAttemptResponse:
    """Get the caller's attempt on a test."""
    try:
        attempt = await attempt_service.get_user_attempt(user.id, test_id)
        return TestAttemptResponse.from_entity(attempt)
    except AttemptError as e:
        raise handle_attempt_error(e) from e


# ==============================================================================
# Attempt Endpoints
# ==============================================================================


@router.get(
    "/my",
    response_model=TestAttemptListResponse,
    summary="List my attempts",
)
async def list_my_attempts(
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> TestAttemptListResponse:
    """List the caller's attempts, newest first."""
    attempts = await attempt_service.list_user_attempts(user.id)
    items = [TestAttemptResponse.from_entity(a) for a in attempts]
    return TestAttemptListResponse(items=items, total=len(items))


@router.get(
    "/courses/{course_id}",
    response_model=TestAttemptListResponse,
    summary="List course attempts",
)
async def list_course_attempts(
    course_id: UUID,
    attempt_service: AttemptServiceDep,
    user: TeacherUser,
    attempt_status: AttemptStatus | None = Query(
        default=None, alias="status", description="e.g. under_review to grade"
    ),
) -> TestAttemptListResponse:
    """List attempts on a course's tests, oldest first (teacher)."""
    attempts = await attempt_service.list_course_attempts(course_id, attempt_status)
    items = [TestAttemptResponse.from_entity(a) for a in attempts]
    return TestAttemptListResponse(items=items, total=len(items))


@router.get(
    "/{attempt_id}",
    response_model=TestAttemptResponse,
    summary="Get attempt",
)
async def get_attempt(
    attempt_id: UUID,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> TestAttemptResponse:
    """Get an attempt (owner, teacher or admin)."""
    try:
        attempt = await attempt_service.get_attempt(attempt_id)
    except AttemptError as e:
        raise handle_attempt_error(e) from e

    if attempt.user_id != user.id and not is_at_least_teacher(user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot view this attempt",
        )
    return TestAttemptResponse.from_entity(attempt)


@router.post(
    "/{attempt_id}/grade",
    response_model=TestAttemptResponse,
    summary="Grade short answers",
)
async def grade_attempt(
    attempt_id: UUID,
    data: GradeResponsesRequest,
    attempt_service: AttemptServiceDep,
    user: TeacherUser,
) -> TestAttemptResponse:
    """Manually grade short answer responses of an attempt."""
    try:
        attempt = await attempt_service.grade_responses(
            attempt_id, data.gradings, grader_id=user.id
        )
        return TestAttemptResponse.from_entity(attempt)
    except AttemptError as e:
        raise handle_attempt_error(e) from e
