"""Pydantic schemas for certification.

Request and response models for:
- Certificate templates
- Eligibility
- Issued certificates and public verification
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import (
    Certificate,
    CertificateTemplate,
    Eligibility,
    EligibilityStatus,
    TemplatePlaceholder,
)


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateTemplateRequest(BaseModel):
    """Create the certificate template of a course."""

    course_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    html_content: str = Field(..., min_length=1)
    placeholders: list[TemplatePlaceholder] = Field(default_factory=list)


# ==============================================================================
# Response Schemas
# ==============================================================================


class TemplateResponse(BaseModel):
    """Certificate template."""

    course_id: UUID
    title: str
    html_content: str
    placeholders: list[TemplatePlaceholder]
    created_by: UUID
    created_at: datetime

    @classmethod
    def from_entity(cls, template: CertificateTemplate) -> "TemplateResponse":
        return cls(
            course_id=template.course_id,
            title=template.title,
            html_content=template.html_content,
            placeholders=template.placeholders,
            created_by=template.created_by,
            created_at=template.created_at,
        )


class EligibilityResponse(BaseModel):
    """Certification eligibility of the caller for a course."""

    course_id: UUID
    status: EligibilityStatus
    is_eligible: bool
    message: str
    progress: int = Field(..., ge=0, le=100)
    eligible_at: datetime | None = None
    remaining_days: int = 0
    certificate_id: str | None = None

    @classmethod
    def from_entity(cls, course_id: UUID, eligibility: Eligibility) -> "EligibilityResponse":
        return cls(
            course_id=course_id,
            status=eligibility.status,
            is_eligible=eligibility.is_eligible,
            message=eligibility.message,
            progress=eligibility.progress_percent,
            eligible_at=eligibility.eligible_at,
            remaining_days=eligibility.remaining_days,
            certificate_id=eligibility.certificate_id,
        )


class CertificateResponse(BaseModel):
    """Issued certificate with its snapshot."""

    certificate_id: str
    user_id: UUID
    course_id: UUID
    issue_date: datetime
    holder_name: str
    date_of_birth: date | None = None
    course_start_date: date | None = None
    course_end_date: date | None = None
    certificate_number: str
    course_title: str
    template_title: str
    rendered_html: str

    @classmethod
    def from_entity(cls, certificate: Certificate) -> "CertificateResponse":
        s = certificate.snapshot
        return cls(
            certificate_id=certificate.certificate_id,
            user_id=certificate.user_id,
            course_id=certificate.course_id,
            issue_date=certificate.issue_date,
            holder_name=s.holder_name,
            date_of_birth=s.date_of_birth,
            course_start_date=s.course_start_date,
            course_end_date=s.course_end_date,
            certificate_number=s.certificate_number,
            course_title=s.course_title,
            template_title=s.template_title,
            rendered_html=certificate.rendered_html,
        )


class CertificateListResponse(BaseModel):
    """User certificates, newest first."""

    items: list[CertificateResponse]
    total: int


class VerificationResponse(BaseModel):
    """Public verification result."""

    is_valid: bool = True
    certificate: CertificateResponse
