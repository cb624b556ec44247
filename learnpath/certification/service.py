"""Certification service layer.

Business logic for:
- Eligibility: ISSUED > PENDING_COMPLETION > WAITING_PERIOD > READY
- Issuance through a per-(user, course) claim that carries the certificate
  and is confirmed only once the certificate row is stored
- Globally unique certificate ids with bounded regeneration on collision
- Public verification (read-through Redis cache)
- Per-course certificate templates
"""

import math
import secrets
import string
import time
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

import orjson
import structlog

from learnpath.auth.models import User
from learnpath.auth.permissions import ActorKind
from learnpath.core.redis import certificate_verification_key
from learnpath.courses.models import CourseOutline

from .models import (
    Certificate,
    CertificateSnapshot,
    CertificateTemplate,
    Eligibility,
    EligibilityStatus,
    render_certificate_html,
)
from .schemas import CreateTemplateRequest


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis

    from learnpath.courses.service import CourseService
    from learnpath.enrollments.service import EnrollmentService
    from learnpath.progress.service import ProgressService

logger = structlog.get_logger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
CERTIFICATE_ID_RANDOM_LENGTH = 6


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CertificationError(Exception):
    """Base certification error."""

    def __init__(self, message: str, code: str = "certification_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CertificateNotFoundError(CertificationError):
    """Certificate not found."""

    def __init__(self, message: str = "Certificate not found or invalid"):
        super().__init__(message, "certificate_not_found")


class TemplateNotFoundError(CertificationError):
    """No certificate template for the course."""

    def __init__(self, message: str = "Certificate template not found for this course"):
        super().__init__(message, "template_not_found")


class TemplateExistsError(CertificationError):
    """Course already has a certificate template."""

    def __init__(self, message: str = "Certificate template already exists for this course"):
        super().__init__(message, "template_exists")


class AlreadyIssuedError(CertificationError):
    """Certificate already issued for this user and course."""

    def __init__(self, message: str = "Certificate already issued for this course"):
        super().__init__(message, "already_issued")


class NotEligibleError(CertificationError):
    """Completion or waiting window not satisfied at issuance."""

    def __init__(self, message: str = "Not eligible for a certificate"):
        super().__init__(message, "not_eligible")


class HolderNotFoundError(CertificationError):
    """Learner profile missing for the certificate snapshot."""

    def __init__(self, message: str = "Learner profile not found"):
        super().__init__(message, "holder_not_found")


class CertificateIdExhaustedError(CertificationError):
    """Could not allocate a unique certificate id."""

    def __init__(self, message: str = "Could not allocate a certificate id, try again"):
        super().__init__(message, "certificate_id_exhausted")


class IssuanceConflictError(CertificationError):
    """Another request holds the certificate claim."""

    def __init__(self, message: str = "Certificate issuance in progress, retry"):
        super().__init__(message, "issuance_conflict")


# ==============================================================================
# Pure Functions
# ==============================================================================


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_certificate_id(now_ms: int | None = None) -> str:
    """Millisecond timestamp in base 36, a dash, and six random base 36 chars."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(
        secrets.choice(BASE36_ALPHABET) for _ in range(CERTIFICATE_ID_RANDOM_LENGTH)
    )
    return f"{to_base36(now_ms)}-{suffix}"


def with_certificate_id(
    certificate: Certificate, certificate_id: str, html_content: str
) -> Certificate:
    """Copy of a certificate under a new id, number and rendering."""
    snapshot = replace(certificate.snapshot, certificate_number=certificate_id)
    return replace(
        certificate,
        certificate_id=certificate_id,
        snapshot=snapshot,
        rendered_html=render_certificate_html(html_content, snapshot),
    )


def remaining_days(eligible_at: datetime, now: datetime) -> int:
    """Whole days left until eligible_at, rounded up."""
    seconds = (eligible_at - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def course_date_range(outline: CourseOutline) -> tuple[date | None, date | None]:
    """Earliest and latest lesson creation dates of a course."""
    created = [lesson.created_at for lesson in outline.lessons]
    if not created:
        return None, None
    return min(created).date(), max(created).date()


# ==============================================================================
# Certification Service
# ==============================================================================


class CertificationService:
    """Service for certificate eligibility, issuance and verification."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: "CourseService",
        enrollment_service: "EnrollmentService",
        progress_service: "ProgressService",
        redis: "Redis | None" = None,
        waiting_period_days: int = 5,
        id_max_retries: int = 5,
        verify_cache_seconds: int = 3600,
    ):
        """Initialize with Cassandra session, collaborators and gate settings."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self.enrollment_service = enrollment_service
        self.progress_service = progress_service
        self.redis = redis
        self.waiting_period = timedelta(days=waiting_period_days)
        self.id_max_retries = id_max_retries
        self.verify_cache_seconds = verify_cache_seconds
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        snapshot_columns = """
            holder_name, date_of_birth, course_start_date, course_end_date,
            certificate_number, course_title, template_title, rendered_html
        """

        # Templates
        self._insert_template = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificate_templates
            (course_id, title, html_content, placeholders, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_template = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificate_templates WHERE course_id = ?
        """)

        # Issuance claim: one per (user, course), carrying the full snapshot
        self._claim_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_user
            (user_id, course_id, certificate_id, issue_date, {snapshot_columns},
             is_issued)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, false)
            IF NOT EXISTS
        """)

        self._move_claim = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates_by_user
            SET certificate_id = ?, certificate_number = ?, rendered_html = ?
            WHERE user_id = ? AND course_id = ?
            IF certificate_id = ?
        """)

        self._confirm_claim = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates_by_user
            SET is_issued = true
            WHERE user_id = ? AND course_id = ?
            IF certificate_id = ?
        """)

        self._release_claim = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.certificates_by_user
            WHERE user_id = ? AND course_id = ?
            IF certificate_id = ?
        """)

        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (certificate_id, user_id, course_id, issue_date, {snapshot_columns})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        # Lookups
        self._get_user_course_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_user
            WHERE user_id = ? AND course_id = ?
        """)

        self._list_user_certificates = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_user WHERE user_id = ?
        """)

        self._get_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates WHERE certificate_id = ?
        """)

        self._get_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users WHERE id = ?
        """)

    # ==========================================================================
    # Templates
    # ==========================================================================

    async def create_template(
        self, data: CreateTemplateRequest, created_by: UUID
    ) -> CertificateTemplate:
        """Create the certificate template of a course.

        Raises:
            CourseNotFoundError: If course does not exist
            TemplateExistsError: If the course already has a template
        """
        await self.course_service.get_course(data.course_id)

        template = CertificateTemplate(
            course_id=data.course_id,
            title=data.title,
            html_content=data.html_content,
            created_by=created_by,
            placeholders=list(data.placeholders),
        )
        result = await self.session.aexecute(
            self._insert_template,
            [
                template.course_id,
                template.title,
                template.html_content,
                [p.value for p in template.placeholders],
                template.created_by,
                template.created_at,
            ],
        )
        if not result.was_applied:
            raise TemplateExistsError

        logger.info(
            "certificate_template_created",
            course_id=str(template.course_id),
            created_by=str(created_by),
        )
        return template

    async def get_template(self, course_id: UUID) -> CertificateTemplate:
        """Get the certificate template of a course.

        Raises:
            TemplateNotFoundError: If the course has no template
        """
        result = await self.session.aexecute(self._get_template, [course_id])
        row = result.one()
        if not row:
            raise TemplateNotFoundError
        return CertificateTemplate.from_row(row)

    # ==========================================================================
    # Eligibility
    # ==========================================================================

    async def get_eligibility(
        self, user_id: UUID, course_id: UUID, actor_kind: ActorKind
    ) -> Eligibility:
        """Evaluate whether the user may be issued a certificate now.

        Raises:
            AccessDeniedError: Without a paid enrollment in the course
            CourseNotFoundError: If course does not exist
        """
        proof = await self.enrollment_service.has_valid_access(
            user_id, course_id, actor_kind
        )
        progress = await self.progress_service.get_course_progress(user_id, course_id)

        result = await self.session.aexecute(
            self._get_user_course_certificate, [user_id, course_id]
        )
        existing = result.one()
        if existing and existing.is_issued:
            return Eligibility(
                status=EligibilityStatus.ISSUED,
                message="Certificate already issued",
                progress_percent=progress.percentage,
                certificate_id=existing.certificate_id,
            )

        if not progress.is_completed:
            return Eligibility(
                status=EligibilityStatus.PENDING_COMPLETION,
                message="Complete all course content to become eligible",
                progress_percent=progress.percentage,
            )

        eligible_at = proof.enrolled_at + self.waiting_period
        now = datetime.now(UTC)
        if now < eligible_at:
            days = remaining_days(eligible_at, now)
            return Eligibility(
                status=EligibilityStatus.WAITING_PERIOD,
                message=f"Certificate available in {days} day(s)",
                progress_percent=progress.percentage,
                eligible_at=eligible_at,
                remaining_days=days,
            )

        return Eligibility(
            status=EligibilityStatus.READY,
            message="Eligible for certificate",
            progress_percent=progress.percentage,
            eligible_at=eligible_at,
        )

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def issue_certificate(
        self, user_id: UUID, course_id: UUID, actor_kind: ActorKind
    ) -> Certificate:
        """Issue the certificate of a completed course.

        Every gate is re-checked here; eligibility results are advisory.

        Raises:
            AccessDeniedError: Without a paid enrollment in the course
            NotEligibleError: If the course is incomplete or the window is open
            TemplateNotFoundError: If the course has no template
            HolderNotFoundError: If the learner profile is missing
            AlreadyIssuedError: If a certificate exists for this course
            IssuanceConflictError: If a concurrent request holds the claim
            CertificateIdExhaustedError: If no unique id could be allocated
        """
        proof = await self.enrollment_service.has_valid_access(
            user_id, course_id, actor_kind
        )
        outline = await self.course_service.load_outline(course_id)
        progress = await self.progress_service.get_course_progress(
            user_id, course_id, outline=outline
        )
        if not progress.is_completed:
            raise NotEligibleError("Complete all course content before requesting a certificate")

        now = datetime.now(UTC)
        eligible_at = proof.enrolled_at + self.waiting_period
        if now < eligible_at:
            raise NotEligibleError(
                f"Certificate available in {remaining_days(eligible_at, now)} day(s)"
            )

        template = await self.get_template(course_id)
        holder = await self._load_holder(user_id)
        start_date, end_date = course_date_range(outline)

        draft = Certificate(
            certificate_id="",
            user_id=user_id,
            course_id=course_id,
            issue_date=now,
            snapshot=CertificateSnapshot(
                holder_name=holder.full_name,
                certificate_number="",
                course_title=outline.course.title,
                template_title=template.title,
                date_of_birth=holder.date_of_birth,
                course_start_date=start_date,
                course_end_date=end_date,
            ),
        )
        certificate = with_certificate_id(
            draft, generate_certificate_id(), template.html_content
        )

        claim = await self.session.aexecute(
            self._claim_certificate,
            [user_id, course_id, *self._certificate_values(certificate)],
        )
        if not claim.was_applied:
            stored = await self._load_claim(user_id, course_id)
            if stored is None:
                raise IssuanceConflictError
            if stored.is_issued:
                raise AlreadyIssuedError
            # Claimed by an earlier request that never finished
            logger.info(
                "certificate_issuance_resumed",
                user_id=str(user_id),
                course_id=str(course_id),
                certificate_id=stored.certificate_id,
            )
            certificate = Certificate.from_row(stored)

        certificate = await self._store_certificate(certificate, template.html_content)
        confirmed = await self.session.aexecute(
            self._confirm_claim, [user_id, course_id, certificate.certificate_id]
        )
        if not confirmed.was_applied:
            raise IssuanceConflictError

        logger.info(
            "certificate_issued",
            user_id=str(user_id),
            course_id=str(course_id),
            certificate_id=certificate.certificate_id,
        )
        return certificate

    async def _store_certificate(
        self, certificate: Certificate, html_content: str
    ) -> Certificate:
        """Insert the claimed certificate under a globally unique id.

        On a collision with another holder's certificate a new id is
        generated and moved onto the claim. The claim is released only
        after every retry collided.

        Raises:
            IssuanceConflictError: If the claim disappeared meanwhile
            CertificateIdExhaustedError: If no unique id could be allocated
        """
        user_id, course_id = certificate.user_id, certificate.course_id

        for attempt in range(1, self.id_max_retries + 1):
            values = self._certificate_values(certificate)
            result = await self.session.aexecute(
                self._insert_certificate,
                [values[0], user_id, course_id, *values[1:]],
            )
            if result.was_applied:
                return certificate

            existing = await self.session.aexecute(
                self._get_certificate, [certificate.certificate_id]
            )
            row = existing.one()
            if row and row.user_id == user_id and row.course_id == course_id:
                # Already written for this claim
                return Certificate.from_row(row)

            logger.warning(
                "certificate_id_collision",
                certificate_id=certificate.certificate_id,
                attempt=attempt,
            )
            fresh = with_certificate_id(
                certificate, generate_certificate_id(), html_content
            )
            moved = await self.session.aexecute(
                self._move_claim,
                [
                    fresh.certificate_id,
                    fresh.snapshot.certificate_number,
                    fresh.rendered_html,
                    user_id,
                    course_id,
                    certificate.certificate_id,
                ],
            )
            if moved.was_applied:
                certificate = fresh
                continue

            # A concurrent request moved the claim first; follow it
            stored = await self._load_claim(user_id, course_id)
            if stored is None:
                raise IssuanceConflictError
            certificate = Certificate.from_row(stored)

        logger.error(
            "certificate_id_exhausted",
            user_id=str(user_id),
            course_id=str(course_id),
            retries=self.id_max_retries,
        )
        await self.session.aexecute(
            self._release_claim, [user_id, course_id, certificate.certificate_id]
        )
        raise CertificateIdExhaustedError

    async def _load_claim(self, user_id: UUID, course_id: UUID):
        result = await self.session.aexecute(
            self._get_user_course_certificate, [user_id, course_id]
        )
        return result.one()

    @staticmethod
    def _certificate_values(certificate: Certificate) -> list:
        """certificate_id, issue_date and snapshot columns in statement order."""
        s = certificate.snapshot
        return [
            certificate.certificate_id,
            certificate.issue_date,
            s.holder_name,
            s.date_of_birth,
            s.course_start_date,
            s.course_end_date,
            s.certificate_number,
            s.course_title,
            s.template_title,
            certificate.rendered_html,
        ]

    async def _load_holder(self, user_id: UUID) -> User:
        result = await self.session.aexecute(self._get_user, [user_id])
        row = result.one()
        if not row:
            raise HolderNotFoundError
        return User.from_row(row)

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def verify_certificate(self, certificate_id: str) -> Certificate:
        """Public verification by certificate id.

        Raises:
            CertificateNotFoundError: If no certificate has this id
        """
        certificate_id = certificate_id.strip().upper()
        cache_key = certificate_verification_key(certificate_id)

        if self.redis:
            cached = await self.redis.get(cache_key)
            if cached:
                return Certificate.from_payload(orjson.loads(cached))

        result = await self.session.aexecute(self._get_certificate, [certificate_id])
        row = result.one()
        if not row:
            logger.info("certificate_verification_failed", certificate_id=certificate_id)
            raise CertificateNotFoundError
        certificate = Certificate.from_row(row)

        if self.redis:
            await self.redis.set(
                cache_key, orjson.dumps(certificate), ex=self.verify_cache_seconds
            )
        return certificate

    async def list_user_certificates(self, user_id: UUID) -> list[Certificate]:
        """All certificates of a user, newest first."""
        rows = await self.session.aexecute(self._list_user_certificates, [user_id])
        certificates = [
            Certificate.from_row(r) for r in rows if r.certificate_id and r.is_issued
        ]
        certificates.sort(key=lambda c: c.issue_date, reverse=True)
        return certificates

    async def get_user_certificate(
        self, user_id: UUID, certificate_id: str
    ) -> Certificate:
        """Owner-scoped certificate lookup.

        Raises:
            CertificateNotFoundError: If the id is unknown or not the user's
        """
        result = await self.session.aexecute(
            self._get_certificate, [certificate_id.strip().upper()]
        )
        row = result.one()
        if not row or row.user_id != user_id:
            raise CertificateNotFoundError("Certificate not found")
        return Certificate.from_row(row)
