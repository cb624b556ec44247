"""Certification API endpoints.

Provides routes for:
- Eligibility checks and certificate issuance
- Listing and reading own certificates
- Public certificate verification
- Certificate templates (teacher)
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser, TeacherUser
from learnpath.courses.dependencies import handle_course_error
from learnpath.courses.service import CourseError
from learnpath.enrollments.dependencies import handle_enrollment_error
from learnpath.enrollments.service import EnrollmentError

from .dependencies import CertificationServiceDep, handle_certification_error
from .schemas import (
    CertificateListResponse,
    CertificateResponse,
    CreateTemplateRequest,
    EligibilityResponse,
    TemplateResponse,
    VerificationResponse,
)
from .service import CertificationError


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


# ==============================================================================
# Template Endpoints
# ==============================================================================


@router.post(
    "/templates",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create certificate template",
)
async def create_template(
    data: CreateTemplateRequest,
    certification_service: CertificationServiceDep,
    user: TeacherUser,
) -> TemplateResponse:
    """Create the certificate template of a course (one per course)."""
    try:
        template = await certification_service.create_template(data, user.id)
        return TemplateResponse.from_entity(template)
    except CertificationError as e:
        raise handle_certification_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e


@router.get(
    "/templates/{course_id}",
    response_model=TemplateResponse,
    summary="Get certificate template",
)
async def get_template(
    course_id: UUID,
    certification_service: CertificationServiceDep,
    user: CurrentUser,
) -> TemplateResponse:
    """Get the certificate template of a course."""
    try:
        template = await certification_service.get_template(course_id)
        return TemplateResponse.from_entity(template)
    except CertificationError as e:
        raise handle_certification_error(e) from e


# ==============================================================================
# Eligibility & Issuance Endpoints
# ==============================================================================


@router.get(
    "/courses/{course_id}/eligibility",
    response_model=EligibilityResponse,
    summary="Check certificate eligibility",
)
async def get_eligibility(
    course_id: UUID,
    certification_service: CertificationServiceDep,
    user: CurrentUser,
) -> EligibilityResponse:
    """Check whether a certificate can be issued for a course now."""
    try:
        eligibility = await certification_service.get_eligibility(
            user.id, course_id, user.actor_kind
        )
        return EligibilityResponse.from_entity(course_id, eligibility)
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.post(
    "/courses/{course_id}",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue certificate",
)
async def issue_certificate(
    course_id: UUID,
    certification_service: CertificationServiceDep,
    user: CurrentUser,
) -> CertificateResponse:
    """Issue the caller's certificate for a completed course."""
    try:
        certificate = await certification_service.issue_certificate(
            user.id, course_id, user.actor_kind
        )
        return CertificateResponse.from_entity(certificate)
    except CertificationError as e:
        raise handle_certification_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Certificate Endpoints
# ==============================================================================


@router.get(
    "/my",
    response_model=CertificateListResponse,
    summary="List my certificates",
)
async def list_my_certificates(
    certification_service: CertificationServiceDep,
    user: CurrentUser,
) -> CertificateListResponse:
    """List the caller's certificates, newest first."""
    certificates = await certification_service.list_user_certificates(user.id)
    items = [CertificateResponse.from_entity(c) for c in certificates]
    return CertificateListResponse(items=items, total=len(items))


@router.get(
    "/{certificate_id}/verify",
    response_model=VerificationResponse,
    summary="Verify certificate (public)",
)
async def verify_certificate(
    certificate_id: str,
    certification_service: CertificationServiceDep,
) -> VerificationResponse:
    """Verify a certificate by id. No authentication required."""
    try:
        certificate = await certification_service.verify_certificate(certificate_id)
        return VerificationResponse(
            certificate=CertificateResponse.from_entity(certificate)
        )
    except CertificationError as e:
        raise handle_certification_error(e) from e


@router.get(
    "/{certificate_id}",
    response_model=CertificateResponse,
    summary="Get my certificate",
)
async def get_my_certificate(
    certificate_id: str,
    certification_service: CertificationServiceDep,
    user: CurrentUser,
) -> CertificateResponse:
    """Get one of the caller's certificates."""
    try:
        certificate = await certification_service.get_user_certificate(
            user.id, certificate_id
        )
        return CertificateResponse.from_entity(certificate)
    except CertificationError as e:
        raise handle_certification_error(e) from e
