"""Learning progress service layer.

Business logic for:
- Content completion under prerequisite ordering
- Marking content incomplete
- Administrative course completion
- Course progress aggregation and lesson material gating

Every mutation writes its progress record(s) in one logged batch, then
the recomputed course aggregate onto the user's enrollment rows. The
aggregate write is conditional on the enrollment revision read before the
records; when another mutation got there first the aggregate is recomputed
from fresh records.
"""

from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learnpath.auth.permissions import ActorKind
from learnpath.core.database.batch import execute_batch
from learnpath.courses.models import CourseOutline, Lesson
from learnpath.courses.service import ContentNotFoundError, CourseError

from .models import ContentProgress, CourseProgress, ProgressRecord
from .rules import (
    ProgressError,
    check_lesson_prerequisite,
    check_material_prerequisite,
    check_test_prerequisite,
    compute_course_progress,
    tests_before,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnpath.attempts.service import AttemptService
    from learnpath.courses.service import CourseService
    from learnpath.enrollments.models import Enrollment
    from learnpath.enrollments.service import EnrollmentService

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressRecordNotFoundError(ProgressError):
    """No progress record for this content item."""

    def __init__(self, message: str = "Progress record not found"):
        super().__init__(message, "progress_record_not_found")


class ProgressConflictError(ProgressError):
    """Course aggregates kept changing concurrently."""

    def __init__(self, message: str = "Progress was modified concurrently, retry"):
        super().__init__(message, "progress_conflict")


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for learning progress tracking."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: "CourseService",
        enrollment_service: "EnrollmentService",
        attempt_service: "AttemptService",
        aggregate_max_retries: int = 5,
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self.enrollment_service = enrollment_service
        self.attempt_service = attempt_service
        self.aggregate_max_retries = aggregate_max_retries
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course_records = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.progress_records
            WHERE user_id = ? AND course_id = ?
        """)

        self._upsert_record = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.progress_records
            (user_id, course_id, content_kind, content_id, section_id,
             is_completed, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

    # ==========================================================================
    # Mutations
    # ==========================================================================

    async def mark_content_completed(
        self, user_id: UUID, content_id: UUID, actor_kind: ActorKind
    ) -> CourseProgress:
        """Mark a lesson or test as completed.

        Re-marking a completed item is a no-op returning current aggregates.

        Raises:
            ContentNotFoundError: If content does not exist
            AccessDeniedError: Without a paid enrollment in the course
            PrerequisiteNotMetError: If an earlier item blocks this one
        """
        ref = await self.course_service.get_content_item(content_id)
        outline = await self.course_service.load_outline(ref.course_id)
        item = outline.find_item(content_id)
        if item is None:
            raise ContentNotFoundError

        await self.enrollment_service.has_valid_access(user_id, ref.course_id, actor_kind)

        enrollments = await self.enrollment_service.list_course_variants(
            user_id, ref.course_id
        )
        records = await self._load_records(user_id, ref.course_id)
        completed_ids = {r.content_id for r in records.values() if r.is_completed}
        existing = records.get(content_id)

        if existing is not None and existing.is_completed:
            logger.debug(
                "content_already_completed",
                user_id=str(user_id),
                content_id=str(content_id),
            )
            return compute_course_progress(outline, completed_ids)

        if isinstance(item, Lesson):
            check_lesson_prerequisite(outline, item, completed_ids)
        else:
            required = tests_before(outline, item)
            attempted = await self.attempt_service.attempted_test_ids(
                user_id, [t.id for t in required]
            )
            check_test_prerequisite(outline, item, attempted)

        now = datetime.now(UTC)
        record = ProgressRecord(
            user_id=user_id,
            course_id=ref.course_id,
            content_kind=item.kind,
            content_id=content_id,
            section_id=item.section_id,
            is_completed=True,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        completed_ids.add(content_id)
        progress = compute_course_progress(outline, completed_ids)

        progress = await self._persist(
            user_id, outline, enrollments, [record], progress, now
        )

        logger.info(
            "content_marked_complete",
            user_id=str(user_id),
            course_id=str(ref.course_id),
            content_id=str(content_id),
            kind=item.kind.value,
            percentage=progress.percentage,
        )
        return progress

    async def mark_content_incomplete(
        self, user_id: UUID, content_id: UUID
    ) -> CourseProgress:
        """Flip an existing record to incomplete (no cascade).

        Raises:
            ContentNotFoundError: If content does not exist
            ProgressRecordNotFoundError: If there is no record to flip
        """
        ref = await self.course_service.get_content_item(content_id)
        enrollments = await self.enrollment_service.list_course_variants(
            user_id, ref.course_id
        )
        records = await self._load_records(user_id, ref.course_id)
        existing = records.get(content_id)
        if existing is None:
            raise ProgressRecordNotFoundError

        outline = await self.course_service.load_outline(ref.course_id)
        completed_ids = {r.content_id for r in records.values() if r.is_completed}

        if not existing.is_completed:
            return compute_course_progress(outline, completed_ids)

        now = datetime.now(UTC)
        record = replace(existing, is_completed=False, updated_at=now)
        completed_ids.discard(content_id)
        progress = compute_course_progress(outline, completed_ids)

        progress = await self._persist(
            user_id, outline, enrollments, [record], progress, now
        )

        logger.info(
            "content_marked_incomplete",
            user_id=str(user_id),
            course_id=str(ref.course_id),
            content_id=str(content_id),
            percentage=progress.percentage,
        )
        return progress

    async def mark_course_completed(
        self, user_id: UUID, course_id: UUID, actor_kind: ActorKind
    ) -> CourseProgress:
        """Complete every lesson and test of a course, bypassing prerequisites.

        The enrollment variant must exist; payment is not enforced.

        Raises:
            CourseNotFoundError: If course does not exist
            EnrollmentNotFoundError: If the user has no enrollment of this kind
        """
        outline = await self.course_service.load_outline(course_id)
        await self.enrollment_service.resolve_access(user_id, course_id, actor_kind)

        enrollments = await self.enrollment_service.list_course_variants(
            user_id, course_id
        )
        records = await self._load_records(user_id, course_id)
        now = datetime.now(UTC)

        updated = []
        for item in outline.items:
            existing = records.get(item.id)
            if existing is not None and existing.is_completed:
                continue
            updated.append(
                ProgressRecord(
                    user_id=user_id,
                    course_id=course_id,
                    content_kind=item.kind,
                    content_id=item.id,
                    section_id=item.section_id,
                    is_completed=True,
                    created_at=existing.created_at if existing else now,
                    updated_at=now,
                )
            )

        progress = compute_course_progress(outline, [item.id for item in outline.items])
        progress = await self._persist(
            user_id, outline, enrollments, updated, progress, now
        )

        logger.info(
            "course_marked_complete",
            user_id=str(user_id),
            course_id=str(course_id),
            records_written=len(updated),
        )
        return progress

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_course_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        outline: CourseOutline | None = None,
    ) -> CourseProgress:
        """Aggregate completion over all lessons and tests of a course.

        Raises:
            CourseNotFoundError: If course does not exist
        """
        if outline is None:
            outline = await self.course_service.load_outline(course_id)
        return compute_course_progress(
            outline, await self.completed_content_ids(user_id, course_id)
        )

    async def get_all_course_progress(self, user_id: UUID) -> list[CourseProgress]:
        """Progress summary (no sections) for every enrolled course."""
        enrollments = await self.enrollment_service.list_user_enrollments(user_id)
        course_ids = list(dict.fromkeys(e.course_id for e in enrollments))

        summaries = []
        for course_id in course_ids:
            try:
                progress = await self.get_course_progress(user_id, course_id)
            except CourseError as e:
                logger.warning(
                    "enrolled_course_unavailable",
                    user_id=str(user_id),
                    course_id=str(course_id),
                    error=e.message,
                )
                continue
            summaries.append(replace(progress, sections=()))
        return summaries

    async def get_content_status(
        self, user_id: UUID, content_id: UUID
    ) -> ContentProgress:
        """Completion state of one content item.

        Raises:
            ContentNotFoundError: If content does not exist
        """
        ref = await self.course_service.get_content_item(content_id)
        records = await self._load_records(user_id, ref.course_id)
        record = records.get(content_id)

        if record is None:
            return ContentProgress(content_id=content_id, kind=ref.kind, is_completed=False)
        return ContentProgress(
            content_id=content_id,
            kind=ref.kind,
            is_completed=record.is_completed,
            completed_at=record.updated_at if record.is_completed else None,
        )

    async def get_lesson_material(
        self, user_id: UUID, lesson_id: UUID, actor_kind: ActorKind
    ) -> Lesson:
        """Return lesson content once every preceding lesson is completed.

        Raises:
            ContentNotFoundError: If lesson does not exist
            AccessDeniedError: Without a paid enrollment in the course
            PrerequisiteNotMetError: Naming the first blocking lesson
        """
        lesson = await self.course_service.get_lesson(lesson_id)
        await self.enrollment_service.has_valid_access(
            user_id, lesson.course_id, actor_kind
        )

        outline = await self.course_service.load_outline(lesson.course_id)
        completed_ids = await self.completed_content_ids(user_id, lesson.course_id)
        check_material_prerequisite(outline, lesson, completed_ids)
        return lesson

    async def completed_content_ids(self, user_id: UUID, course_id: UUID) -> set[UUID]:
        """IDs of the content items the user completed in a course."""
        records = await self._load_records(user_id, course_id)
        return {r.content_id for r in records.values() if r.is_completed}

    # ==========================================================================
    # Persistence
    # ==========================================================================

    async def _load_records(
        self, user_id: UUID, course_id: UUID
    ) -> dict[UUID, ProgressRecord]:
        rows = await self.session.aexecute(
            self._get_course_records, [user_id, course_id]
        )
        return {r.content_id: r for r in (ProgressRecord.from_row(row) for row in rows)}

    async def _persist(
        self,
        user_id: UUID,
        outline: CourseOutline,
        enrollments: list["Enrollment"],
        records: list[ProgressRecord],
        progress: CourseProgress,
        now: datetime,
    ) -> CourseProgress:
        """Write records, then aggregates guarded by the enrollment revision.

        ``enrollments`` must have been read before the records ``progress``
        was computed from. Returns the aggregate that was stored.

        Raises:
            ProgressConflictError: If the aggregate write keeps losing races
        """
        course_id = outline.course.id
        entries = [
            (
                self._upsert_record,
                [
                    r.user_id,
                    r.course_id,
                    r.content_kind.value,
                    r.content_id,
                    r.section_id,
                    r.is_completed,
                    r.created_at,
                    r.updated_at,
                ],
            )
            for r in records
        ]
        if entries:
            await execute_batch(self.session, entries)

        for retry in range(self.aggregate_max_retries + 1):
            if retry:
                enrollments = await self.enrollment_service.list_course_variants(
                    user_id, course_id
                )
                completed_ids = await self.completed_content_ids(user_id, course_id)
                progress = compute_course_progress(outline, completed_ids)
                now = datetime.now(UTC)

            if await self.enrollment_service.update_aggregates(
                enrollments, progress.percentage, progress.is_completed, now
            ):
                return progress

            logger.info(
                "progress_aggregate_retry",
                user_id=str(user_id),
                course_id=str(course_id),
                retry=retry + 1,
            )

        logger.warning(
            "progress_aggregate_conflict",
            user_id=str(user_id),
            course_id=str(course_id),
        )
        raise ProgressConflictError
