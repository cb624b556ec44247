"""Database models for learner identity.

The identity service owns the ``users`` table. This service only reads
the fields it needs for certificate snapshots (full name and date of
birth), so the entity below is a read model of that table.
"""

from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from learnpath.auth.permissions import UserRole


USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    email TEXT,
    full_name TEXT,
    date_of_birth DATE,
    role TEXT,
    is_active BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

AUTH_TABLES_CQL = [
    USER_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def to_python_date(value: Any) -> date | None:
    """Convert a Cassandra ``DATE`` value to ``datetime.date``.

    The driver returns ``cassandra.util.Date`` for DATE columns.
    """
    if value is None or isinstance(value, date):
        return value
    return value.date()


class User:
    """Learner identity (read model).

    Attributes:
        id: User UUID
        email: Email address
        full_name: Name printed on certificates
        date_of_birth: Birth date printed on certificates (optional)
        role: User role
        is_active: Account status
        created_at: Account creation timestamp
    """

    def __init__(
        self,
        id: UUID,
        email: str = "",
        full_name: str = "",
        date_of_birth: date | None = None,
        role: str = UserRole.USER.value,
        is_active: bool = True,
        created_at: datetime | None = None,
    ):
        self.id = id
        self.email = email
        self.full_name = full_name
        self.date_of_birth = date_of_birth
        self.role = role
        self.is_active = is_active
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Create User instance from Cassandra row."""
        return cls(
            id=row.id,
            email=row.email or "",
            full_name=row.full_name or "",
            date_of_birth=to_python_date(row.date_of_birth),
            role=row.role or UserRole.USER.value,
            is_active=row.is_active if row.is_active is not None else True,
            created_at=row.created_at,
        )

    def __repr__(self) -> str:
        return f"<User {self.id} ({self.role})>"
