"""Database models for learning progress.

Tables:
- progress_records: one row per (user, content item), partitioned by
  (user_id, course_id) so a course's records load in one query

Course aggregates are not stored here; they live on the enrollment rows.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from learnpath.courses.models import ContentKind


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

PROGRESS_RECORDS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress_records (
    user_id UUID,
    course_id UUID,
    content_kind TEXT,
    content_id UUID,
    section_id UUID,
    is_completed BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), content_kind, content_id)
)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_RECORDS_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class ProgressRecord:
    """Completion state of one content item for one user."""

    user_id: UUID
    course_id: UUID
    content_kind: ContentKind
    content_id: UUID
    section_id: UUID
    is_completed: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "ProgressRecord":
        """Create instance from Cassandra row."""
        created_at = ensure_utc_aware(row.created_at) or datetime.now(UTC)
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            content_kind=ContentKind(row.content_kind),
            content_id=row.content_id,
            section_id=row.section_id,
            is_completed=bool(row.is_completed),
            created_at=created_at,
            updated_at=ensure_utc_aware(row.updated_at) or created_at,
        )


@dataclass(frozen=True)
class SectionProgress:
    """Completion of one section."""

    section_id: UUID
    title: str
    completed: int
    total: int
    percentage: int


@dataclass(frozen=True)
class CourseProgress:
    """Completion of a course, with per-section breakdown."""

    course_id: UUID
    completed_items: int
    total_items: int
    percentage: int
    is_completed: bool
    sections: tuple[SectionProgress, ...] = ()


@dataclass(frozen=True)
class ContentProgress:
    """Completion state of one content item as seen by its learner."""

    content_id: UUID
    kind: ContentKind
    is_completed: bool
    completed_at: datetime | None = None
