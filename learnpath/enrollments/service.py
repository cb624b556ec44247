"""Enrollment service layer.

Business logic for:
- Access resolution for direct and sponsored variants
- Enrollment recording and payment completion (checkout seam)
- Enrollment listing
- Revision-guarded progress aggregate writes
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra.query import BatchType

from learnpath.auth.permissions import ActorKind
from learnpath.core.database.batch import BatchEntry, execute_batch

from .models import (
    DirectEnrollment,
    Enrollment,
    EnrollmentProof,
    SponsoredAccess,
    enrollment_from_row,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentError(Exception):
    """Base enrollment error."""

    def __init__(self, message: str, code: str = "enrollment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class EnrollmentNotFoundError(EnrollmentError):
    """No enrollment of the requested variant."""

    def __init__(self, message: str = "Enrollment not found"):
        super().__init__(message, "enrollment_not_found")


class AccessDeniedError(EnrollmentError):
    """No paid enrollment granting access to the course."""

    def __init__(self, message: str = "You do not have access to this course"):
        super().__init__(message, "access_denied")


class AlreadyEnrolledError(EnrollmentError):
    """Enrollment of this variant already exists."""

    def __init__(self, message: str = "User already enrolled in course"):
        super().__init__(message, "already_enrolled")


class InvalidEnrollmentError(EnrollmentError):
    """Enrollment data is inconsistent with its variant."""

    def __init__(self, message: str = "Invalid enrollment"):
        super().__init__(message, "invalid_enrollment")


# ==============================================================================
# Access Resolvers
# ==============================================================================


class EnrollmentResolver:
    """Proves access for one enrollment variant.

    Subclasses pick the variant through ``actor_kind`` and may add checks in
    ``_check``.
    """

    actor_kind: ActorKind

    def __init__(self, service: "EnrollmentService"):
        self._service = service

    async def has_valid_access(self, user_id: UUID, course_id: UUID) -> EnrollmentProof:
        """Return proof of a paid enrollment of this variant.

        Raises:
            AccessDeniedError: If absent, unpaid, or failing variant checks
        """
        enrollment = await self._service.get_enrollment(
            user_id, course_id, self.actor_kind
        )
        if enrollment is None or not enrollment.payment_completed:
            logger.info(
                "access_denied",
                user_id=str(user_id),
                course_id=str(course_id),
                actor_kind=self.actor_kind.value,
                enrolled=enrollment is not None,
            )
            raise AccessDeniedError
        self._check(enrollment)
        return enrollment.proof()

    def _check(self, enrollment: Enrollment) -> None:
        """Variant-specific validation (none by default)."""


class DirectEnrollmentResolver(EnrollmentResolver):
    """Resolver for individual learners."""

    actor_kind = ActorKind.DIRECT


class SponsoredAccessResolver(EnrollmentResolver):
    """Resolver for organization-sponsored employees."""

    actor_kind = ActorKind.SPONSORED

    def _check(self, enrollment: Enrollment) -> None:
        if enrollment.company_id is None:
            raise AccessDeniedError("Sponsored access has no sponsoring company")


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Service for course enrollments."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._resolvers: dict[ActorKind, EnrollmentResolver] = {
            ActorKind.DIRECT: DirectEnrollmentResolver(self),
            ActorKind.SPONSORED: SponsoredAccessResolver(self),
        }
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ? AND actor_kind = ?
        """)

        self._get_course_variants = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (user_id, course_id, actor_kind, enrolled_at, payment_completed,
             company_id, progress_percent, is_completed, updated_at,
             aggregate_revision)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._insert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, course_id, actor_kind, enrolled_at, payment_completed,
             company_id, progress_percent, is_completed, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user WHERE user_id = ?
        """)

        # Payment flag (checkout collaborator)
        self._update_payment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET payment_completed = true, updated_at = ?
            WHERE user_id = ? AND course_id = ? AND actor_kind = ?
        """)

        self._update_payment_by_user = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments_by_user
            SET payment_completed = true, updated_at = ?
            WHERE user_id = ? AND course_id = ? AND actor_kind = ?
        """)

        # Progress aggregates
        self._update_aggregate = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET progress_percent = ?, is_completed = ?, updated_at = ?,
                aggregate_revision = ?
            WHERE user_id = ? AND course_id = ? AND actor_kind = ?
            IF aggregate_revision = ?
        """)

        # Write time is the aggregate's computation time, so an older
        # aggregate arriving late cannot overwrite a newer one
        self._update_aggregate_by_user = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments_by_user USING TIMESTAMP ?
            SET progress_percent = ?, is_completed = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ? AND actor_kind = ?
        """)

    # ==========================================================================
    # Access Resolution
    # ==========================================================================

    def resolver_for(self, actor_kind: ActorKind) -> EnrollmentResolver:
        """Get the resolver for an actor kind."""
        return self._resolvers[ActorKind(actor_kind)]

    async def has_valid_access(
        self, user_id: UUID, course_id: UUID, actor_kind: ActorKind
    ) -> EnrollmentProof:
        """Return proof of a paid enrollment of the caller's variant.

        Raises:
            AccessDeniedError: If no valid enrollment exists
        """
        return await self.resolver_for(actor_kind).has_valid_access(user_id, course_id)

    async def resolve_access(
        self, user_id: UUID, course_id: UUID, actor_kind: ActorKind
    ) -> EnrollmentProof:
        """Look up exactly the variant matching actor_kind.

        Payment state is reported, not enforced.

        Raises:
            EnrollmentNotFoundError: If no record of this variant exists
        """
        enrollment = await self.get_enrollment(user_id, course_id, actor_kind)
        if enrollment is None:
            raise EnrollmentNotFoundError
        return enrollment.proof()

    async def get_enrollment(
        self, user_id: UUID, course_id: UUID, actor_kind: ActorKind
    ) -> Enrollment | None:
        """Get one enrollment variant."""
        result = await self.session.aexecute(
            self._get_enrollment, [user_id, course_id, ActorKind(actor_kind).value]
        )
        row = result.one()
        return enrollment_from_row(row) if row else None

    async def list_course_variants(
        self, user_id: UUID, course_id: UUID
    ) -> list[Enrollment]:
        """Get every enrollment variant a user holds for a course."""
        rows = await self.session.aexecute(
            self._get_course_variants, [user_id, course_id]
        )
        return [enrollment_from_row(r) for r in rows]

    # ==========================================================================
    # Checkout Seam
    # ==========================================================================

    async def record_enrollment(
        self,
        user_id: UUID,
        course_id: UUID,
        actor_kind: ActorKind,
        company_id: UUID | None = None,
        payment_completed: bool = False,
    ) -> Enrollment:
        """Create an enrollment of the given variant.

        Raises:
            InvalidEnrollmentError: If a sponsored access has no company
            AlreadyEnrolledError: If this variant already exists
        """
        actor_kind = ActorKind(actor_kind)
        now = datetime.now(UTC)

        if actor_kind == ActorKind.SPONSORED:
            if company_id is None:
                raise InvalidEnrollmentError("Sponsored access requires company_id")
            enrollment: Enrollment = SponsoredAccess(
                user_id=user_id,
                course_id=course_id,
                company_id=company_id,
                enrolled_at=now,
                payment_completed=payment_completed,
                updated_at=now,
            )
        else:
            enrollment = DirectEnrollment(
                user_id=user_id,
                course_id=course_id,
                enrolled_at=now,
                payment_completed=payment_completed,
                updated_at=now,
            )

        values = [
            enrollment.user_id,
            enrollment.course_id,
            enrollment.actor_kind.value,
            enrollment.enrolled_at,
            enrollment.payment_completed,
            enrollment.company_id,
            enrollment.progress_percent,
            enrollment.is_completed,
            enrollment.updated_at,
        ]

        # Main table guards uniqueness, lookup follows
        result = await self.session.aexecute(
            self._insert_enrollment, [*values, enrollment.aggregate_revision]
        )
        if not result.was_applied:
            raise AlreadyEnrolledError

        await self.session.aexecute(self._insert_enrollment_by_user, values)

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
            actor_kind=actor_kind.value,
        )
        return enrollment

    async def mark_payment_completed(
        self, user_id: UUID, course_id: UUID, actor_kind: ActorKind
    ) -> Enrollment:
        """Flag the enrollment as paid.

        Raises:
            EnrollmentNotFoundError: If the variant does not exist
        """
        enrollment = await self.get_enrollment(user_id, course_id, actor_kind)
        if enrollment is None:
            raise EnrollmentNotFoundError

        if enrollment.payment_completed:
            return enrollment

        now = datetime.now(UTC)
        key = [user_id, course_id, enrollment.actor_kind.value]
        await execute_batch(
            self.session,
            [
                (self._update_payment, [now, *key]),
                (self._update_payment_by_user, [now, *key]),
            ],
        )

        enrollment.payment_completed = True
        enrollment.updated_at = now

        logger.info(
            "enrollment_payment_completed",
            user_id=str(user_id),
            course_id=str(course_id),
            actor_kind=enrollment.actor_kind.value,
        )
        return enrollment

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """List every enrollment of a user, paid or not."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return [enrollment_from_row(r) for r in rows]

    # ==========================================================================
    # Progress Aggregates
    # ==========================================================================

    async def update_aggregates(
        self,
        enrollments: list[Enrollment],
        progress_percent: int,
        is_completed: bool,
        updated_at: datetime,
    ) -> bool:
        """Write progress aggregates onto every variant row of one course.

        The main table write is conditional on the aggregate_revision each
        enrollment was read with; all variants share a partition, so either
        every row is updated or none is. The lookup rows follow only after
        the condition held.

        Returns:
            False if another writer updated the aggregates since the read
        """
        if not enrollments:
            return True

        conditional: list[BatchEntry] = []
        lookups: list[BatchEntry] = []
        write_time = int(updated_at.timestamp() * 1_000_000)
        for enrollment in enrollments:
            key = [
                enrollment.user_id,
                enrollment.course_id,
                enrollment.actor_kind.value,
            ]
            conditional.append(
                (
                    self._update_aggregate,
                    [
                        progress_percent,
                        is_completed,
                        updated_at,
                        enrollment.aggregate_revision + 1,
                        *key,
                        enrollment.aggregate_revision,
                    ],
                )
            )
            lookups.append(
                (
                    self._update_aggregate_by_user,
                    [write_time, progress_percent, is_completed, updated_at, *key],
                )
            )

        result = await execute_batch(self.session, conditional, BatchType.UNLOGGED)
        if not result.was_applied:
            return False

        await execute_batch(self.session, lookups)
        return True
