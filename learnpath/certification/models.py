"""Database models for certification.

Cassandra table definitions for:
- Certificate templates: one per course
- Certificates by user: (user_id, course_id) issuance claim and listing
- Certificates: global lookup by certificate id (public verification)

An issued certificate carries an immutable snapshot of the holder and
course taken at issuance; later profile or course edits never change it.

A claim row is written with the certificate id and full snapshot before
the certificate itself, and flagged ``is_issued`` once the certificate
row exists. Unflagged claims are resumed by the next issuance request.
"""

import html
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from learnpath.auth.models import to_python_date


class EligibilityStatus(str, Enum):
    """Certification eligibility, in precedence order."""

    ISSUED = "issued"
    PENDING_COMPLETION = "pending_completion"
    WAITING_PERIOD = "waiting_period"
    READY = "ready"


class TemplatePlaceholder(str, Enum):
    """Placeholders substituted into a template's HTML at issuance."""

    FULL_NAME = "${fullName}"
    DATE_OF_BIRTH = "${dob}"
    START_DATE = "${startDate}"
    END_DATE = "${endDate}"
    CERTIFICATE_NUMBER = "${certificateNumber}"


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATE_TEMPLATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificate_templates (
    course_id UUID PRIMARY KEY,
    title TEXT,
    html_content TEXT,
    placeholders LIST<TEXT>,
    created_by UUID,
    created_at TIMESTAMP
)
"""

# Issuance guard: at most one row per (user, course)
CERTIFICATES_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_user (
    user_id UUID,
    course_id UUID,
    certificate_id TEXT,
    issue_date TIMESTAMP,
    holder_name TEXT,
    date_of_birth DATE,
    course_start_date DATE,
    course_end_date DATE,
    certificate_number TEXT,
    course_title TEXT,
    template_title TEXT,
    rendered_html TEXT,
    is_issued BOOLEAN,
    PRIMARY KEY ((user_id), course_id)
)
"""

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    certificate_id TEXT PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    issue_date TIMESTAMP,
    holder_name TEXT,
    date_of_birth DATE,
    course_start_date DATE,
    course_end_date DATE,
    certificate_number TEXT,
    course_title TEXT,
    template_title TEXT,
    rendered_html TEXT
)
"""

CERTIFICATION_TABLES_CQL = [
    CERTIFICATE_TEMPLATES_TABLE_CQL,
    CERTIFICATES_BY_USER_TABLE_CQL,
    CERTIFICATES_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class CertificateTemplate:
    """Per-course certificate content definition."""

    course_id: UUID
    title: str
    html_content: str
    created_by: UUID
    placeholders: list[TemplatePlaceholder] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "CertificateTemplate":
        """Create instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            title=row.title,
            html_content=row.html_content or "",
            created_by=row.created_by,
            placeholders=[TemplatePlaceholder(p) for p in row.placeholders or []],
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )


@dataclass(frozen=True)
class CertificateSnapshot:
    """Holder and course facts frozen at issuance."""

    holder_name: str
    certificate_number: str
    course_title: str
    template_title: str
    date_of_birth: date | None = None
    course_start_date: date | None = None
    course_end_date: date | None = None

    def placeholder_values(self) -> dict[TemplatePlaceholder, str]:
        def fmt(value: date | None) -> str:
            return value.isoformat() if value else ""

        return {
            TemplatePlaceholder.FULL_NAME: self.holder_name,
            TemplatePlaceholder.DATE_OF_BIRTH: fmt(self.date_of_birth),
            TemplatePlaceholder.START_DATE: fmt(self.course_start_date),
            TemplatePlaceholder.END_DATE: fmt(self.course_end_date),
            TemplatePlaceholder.CERTIFICATE_NUMBER: self.certificate_number,
        }


def render_certificate_html(html_content: str, snapshot: CertificateSnapshot) -> str:
    """Substitute every placeholder in a template with escaped snapshot values."""
    rendered = html_content
    for placeholder, value in snapshot.placeholder_values().items():
        rendered = rendered.replace(placeholder.value, html.escape(value))
    return rendered


@dataclass(frozen=True)
class Certificate:
    """Issued certificate (terminal)."""

    certificate_id: str
    user_id: UUID
    course_id: UUID
    issue_date: datetime
    snapshot: CertificateSnapshot
    rendered_html: str = ""

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create instance from a ``certificates`` or ``certificates_by_user`` row."""
        return cls(
            certificate_id=row.certificate_id,
            user_id=row.user_id,
            course_id=row.course_id,
            issue_date=ensure_utc_aware(row.issue_date) or datetime.now(UTC),
            snapshot=CertificateSnapshot(
                holder_name=row.holder_name or "",
                certificate_number=row.certificate_number or row.certificate_id,
                course_title=row.course_title or "",
                template_title=row.template_title or "",
                date_of_birth=to_python_date(row.date_of_birth),
                course_start_date=to_python_date(row.course_start_date),
                course_end_date=to_python_date(row.course_end_date),
            ),
            rendered_html=row.rendered_html or "",
        )

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Certificate":
        """Rebuild from the JSON payload produced by ``orjson.dumps``."""
        snapshot = data["snapshot"]
        return cls(
            certificate_id=data["certificate_id"],
            user_id=UUID(data["user_id"]),
            course_id=UUID(data["course_id"]),
            issue_date=ensure_utc_aware(datetime.fromisoformat(data["issue_date"])),
            snapshot=CertificateSnapshot(
                holder_name=snapshot["holder_name"],
                certificate_number=snapshot["certificate_number"],
                course_title=snapshot["course_title"],
                template_title=snapshot["template_title"],
                date_of_birth=_parse_date(snapshot.get("date_of_birth")),
                course_start_date=_parse_date(snapshot.get("course_start_date")),
                course_end_date=_parse_date(snapshot.get("course_end_date")),
            ),
            rendered_html=data.get("rendered_html", ""),
        )


@dataclass(frozen=True)
class Eligibility:
    """Result of the certification eligibility check."""

    status: EligibilityStatus
    message: str
    progress_percent: int
    eligible_at: datetime | None = None
    remaining_days: int = 0
    certificate_id: str | None = None

    @property
    def is_eligible(self) -> bool:
        return self.status == EligibilityStatus.READY
