"""Learning progress API endpoints.

Provides routes for:
- Marking lessons and tests complete / incomplete
- Administrative course completion
- Course progress queries
- Gated lesson material
"""

from uuid import UUID

from fastapi import APIRouter

from learnpath.auth.dependencies import AdminUser, CurrentUser
from learnpath.courses.dependencies import handle_course_error
from learnpath.courses.service import CourseError
from learnpath.enrollments.dependencies import handle_enrollment_error
from learnpath.enrollments.service import EnrollmentError

from .dependencies import ProgressServiceDep, handle_progress_error
from .rules import ProgressError
from .schemas import (
    ContentStatusResponse,
    CourseProgressListResponse,
    CourseProgressResponse,
    LessonMaterialResponse,
    MarkCourseCompletedRequest,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])


# ==============================================================================
# Content Completion Endpoints
# ==============================================================================


@router.post(
    "/content/{content_id}/complete",
    response_model=CourseProgressResponse,
    summary="Mark content complete",
)
async def mark_content_complete(
    content_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Mark a lesson or test as completed.

    Lessons require every lower-order lesson of the section; tests require
    an attempt on every earlier published test of the course.
    """
    try:
        progress = await progress_service.mark_content_completed(
            user.id, content_id, user.actor_kind
        )
        return CourseProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.post(
    "/content/{content_id}/incomplete",
    response_model=CourseProgressResponse,
    summary="Mark content incomplete",
)
async def mark_content_incomplete(
    content_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Flip a completed item back to incomplete."""
    try:
        progress = await progress_service.mark_content_incomplete(user.id, content_id)
        return CourseProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e


@router.get(
    "/content/{content_id}",
    response_model=ContentStatusResponse,
    summary="Get content status",
)
async def get_content_status(
    content_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ContentStatusResponse:
    """Get completion state of one lesson or test."""
    try:
        status = await progress_service.get_content_status(user.id, content_id)
        return ContentStatusResponse.from_entity(status)
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Course Progress Endpoints
# ==============================================================================


@router.post(
    "/courses/{course_id}/complete",
    response_model=CourseProgressResponse,
    summary="Complete course for a learner (admin)",
)
async def mark_course_complete(
    course_id: UUID,
    data: MarkCourseCompletedRequest,
    progress_service: ProgressServiceDep,
    user: AdminUser,
) -> CourseProgressResponse:
    """Complete every lesson and test of a course, bypassing prerequisites."""
    try:
        progress = await progress_service.mark_course_completed(
            data.user_id, course_id, data.actor_kind
        )
        return CourseProgressResponse.from_entity(progress)
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/courses",
    response_model=CourseProgressListResponse,
    summary="Get progress of all my courses",
)
async def get_all_course_progress(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressListResponse:
    """Progress summary for every enrolled course."""
    summaries = await progress_service.get_all_course_progress(user.id)
    items = [CourseProgressResponse.from_entity(p) for p in summaries]
    return CourseProgressListResponse(items=items, total=len(items))


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Get completion of a course with per-section breakdown."""
    try:
        progress = await progress_service.get_course_progress(user.id, course_id)
        return CourseProgressResponse.from_entity(progress)
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Lesson Material Endpoints
# ==============================================================================


@router.get(
    "/lessons/{lesson_id}/material",
    response_model=LessonMaterialResponse,
    summary="Get lesson material",
)
async def get_lesson_material(
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> LessonMaterialResponse:
    """Get lesson content once all preceding lessons are completed."""
    try:
        lesson = await progress_service.get_lesson_material(
            user.id, lesson_id, user.actor_kind
        )
        return LessonMaterialResponse.from_entity(lesson)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
