"""Database models for course enrollments.

Two variants share one table, distinguished by ``actor_kind``:
- Direct enrollment: an individual learner who bought the course
- Sponsored access: an organization assigned the course to an employee

Tables:
- enrollments: (user_id, course_id) partition, one row per actor kind
- enrollments_by_user: lookup for "my enrollments"

Both tables carry the denormalized progress aggregates. Writes to the main
table are conditional on aggregate_revision.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar
from uuid import UUID

from learnpath.auth.permissions import ActorKind


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


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    actor_kind TEXT,
    enrolled_at TIMESTAMP,
    payment_completed BOOLEAN,
    company_id UUID,
    progress_percent INT,
    is_completed BOOLEAN,
    aggregate_revision INT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), actor_kind)
)
"""

# Lookup: user's enrollments across courses
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    course_id UUID,
    actor_kind TEXT,
    enrolled_at TIMESTAMP,
    payment_completed BOOLEAN,
    company_id UUID,
    progress_percent INT,
    is_completed BOOLEAN,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id, actor_kind)
)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass(frozen=True)
class EnrollmentProof:
    """Evidence that a user may access a course."""

    user_id: UUID
    course_id: UUID
    actor_kind: ActorKind
    enrolled_at: datetime
    payment_completed: bool
    company_id: UUID | None = None


@dataclass
class DirectEnrollment:
    """Individual learner enrollment."""

    actor_kind: ClassVar[ActorKind] = ActorKind.DIRECT

    user_id: UUID
    course_id: UUID
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    payment_completed: bool = False
    progress_percent: int = 0
    is_completed: bool = False
    aggregate_revision: int = 0
    updated_at: datetime | None = None

    @property
    def company_id(self) -> UUID | None:
        return None

    def proof(self) -> EnrollmentProof:
        return EnrollmentProof(
            user_id=self.user_id,
            course_id=self.course_id,
            actor_kind=self.actor_kind,
            enrolled_at=self.enrolled_at,
            payment_completed=self.payment_completed,
        )


@dataclass
class SponsoredAccess:
    """Organization-assigned access for an employee."""

    actor_kind: ClassVar[ActorKind] = ActorKind.SPONSORED

    user_id: UUID
    course_id: UUID
    company_id: UUID | None = None
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    payment_completed: bool = False
    progress_percent: int = 0
    is_completed: bool = False
    aggregate_revision: int = 0
    updated_at: datetime | None = None

    def proof(self) -> EnrollmentProof:
        return EnrollmentProof(
            user_id=self.user_id,
            course_id=self.course_id,
            actor_kind=self.actor_kind,
            enrolled_at=self.enrolled_at,
            payment_completed=self.payment_completed,
            company_id=self.company_id,
        )


Enrollment = DirectEnrollment | SponsoredAccess


def enrollment_from_row(row: Any) -> Enrollment:
    """Build the enrollment variant stored in a row."""
    common = {
        "user_id": row.user_id,
        "course_id": row.course_id,
        "enrolled_at": ensure_utc_aware(row.enrolled_at) or datetime.now(UTC),
        "payment_completed": bool(row.payment_completed),
        "progress_percent": row.progress_percent or 0,
        "is_completed": bool(row.is_completed),
        "aggregate_revision": getattr(row, "aggregate_revision", None) or 0,
        "updated_at": ensure_utc_aware(row.updated_at),
    }
    if ActorKind(row.actor_kind) == ActorKind.SPONSORED:
        return SponsoredAccess(company_id=row.company_id, **common)
    return DirectEnrollment(**common)
