"""Course authoring API endpoints.

Provides routes for:
- Course and section creation
- Lesson and test creation
- Test publication
- Course outline
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser, TeacherUser

from .dependencies import CourseServiceDep, handle_course_error
from .schemas import (
    CourseOutlineResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateLessonRequest,
    CreateSectionRequest,
    CreateTestRequest,
    LessonResponse,
    SectionResponse,
    TestResponse,
)
from .service import CourseError


router = APIRouter(prefix="/v1/courses", tags=["courses"])
sections_router = APIRouter(prefix="/v1/sections", tags=["courses"])
tests_admin_router = APIRouter(prefix="/v1/tests", tags=["courses"])


# ==============================================================================
# Course Endpoints
# ==============================================================================


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    user: TeacherUser,
) -> CourseResponse:
    """Create a new course (teacher or admin)."""
    course = await course_service.create_course(data, creator_id=user.id)
    return CourseResponse.model_validate(course)


@router.get(
    "/{course_id}/outline",
    response_model=CourseOutlineResponse,
    summary="Get course outline",
)
async def get_outline(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: CurrentUser,
) -> CourseOutlineResponse:
    """Get ordered sections, lessons and tests of a course."""
    try:
        outline = await course_service.load_outline(course_id)
        return CourseOutlineResponse.from_outline(outline)
    except CourseError as e:
        raise handle_course_error(e) from e


@router.post(
    "/{course_id}/sections",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create section",
)
async def create_section(
    course_id: UUID,
    data: CreateSectionRequest,
    course_service: CourseServiceDep,
    user: TeacherUser,
) -> SectionResponse:
    """Create a section at a free position of the course."""
    try:
        section = await course_service.create_section(course_id, data)
        return SectionResponse.model_validate(section)
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Section Content Endpoints
# ==============================================================================


@sections_router.post(
    "/{section_id}/lessons",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create lesson",
)
async def create_lesson(
    section_id: UUID,
    course_id: UUID,
    data: CreateLessonRequest,
    course_service: CourseServiceDep,
    user: TeacherUser,
) -> LessonResponse:
    """Create a lesson in a section (course_id as query parameter)."""
    try:
        lesson = await course_service.create_lesson(course_id, section_id, data)
        return LessonResponse.model_validate(lesson)
    except CourseError as e:
        raise handle_course_error(e) from e


@sections_router.post(
    "/{section_id}/tests",
    response_model=TestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create test",
)
async def create_test(
    section_id: UUID,
    course_id: UUID,
    data: CreateTestRequest,
    course_service: CourseServiceDep,
    user: TeacherUser,
) -> TestResponse:
    """Create an unpublished test with its questions.

    Question marks must add up to total_marks.
    """
    try:
        definition = await course_service.create_test(course_id, section_id, data)
        return TestResponse.from_definition(definition)
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Test Authoring Endpoints
# ==============================================================================


@tests_admin_router.get(
    "/{test_id}",
    response_model=TestResponse,
    summary="Get test (author view)",
)
async def get_test(
    test_id: UUID,
    course_service: CourseServiceDep,
    user: TeacherUser,
) -> TestResponse:
    """Get a test with correct options and reference answers."""
    try:
        definition = await course_service.get_test_definition(test_id)
        return TestResponse.from_definition(definition)
    except CourseError as e:
        raise handle_course_error(e) from e


@tests_admin_router.post(
    "/{test_id}/publish",
    response_model=TestResponse,
    summary="Publish test",
)
async def publish_test(
    test_id: UUID,
    course_service: CourseServiceDep,
    user: TeacherUser,
) -> TestResponse:
    """Publish a test."""
    try:
        await course_service.publish_test(test_id)
        definition = await course_service.get_test_definition(test_id)
        return TestResponse.from_definition(definition)
    except CourseError as e:
        raise handle_course_error(e) from e
