"""Shared fixtures.

Course outlines are built in memory with ``OutlineBuilder``; services
are exercised against a mocked Cassandra session.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session
from fastapi.testclient import TestClient

from learnpath.courses.models import (
    Course,
    CourseOutline,
    Lesson,
    Section,
    SectionOutline,
    Test,
)
from learnpath.enrollments.models import DirectEnrollment


class OutlineBuilder:
    """Build a course outline; every created item is one hour newer."""

    def __init__(self, title: str = "Pharmacology 101"):
        self.course = Course(id=uuid4(), title=title, creator_id=uuid4())
        self.outline = CourseOutline(course=self.course)
        self._clock = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)

    def _tick(self) -> datetime:
        self._clock += timedelta(hours=1)
        return self._clock

    def section(self, title: str = "Section") -> SectionOutline:
        section = Section(
            id=uuid4(),
            course_id=self.course.id,
            title=title,
            position=len(self.outline.sections),
        )
        outline = SectionOutline(section=section)
        self.outline.sections.append(outline)
        return outline

    def lesson(self, section: SectionOutline, title: str | None = None) -> Lesson:
        lesson = Lesson(
            id=uuid4(),
            course_id=self.course.id,
            section_id=section.section.id,
            position=len(section.lessons),
            title=title or f"Lesson {len(section.lessons) + 1}",
            created_at=self._tick(),
            content="Lesson body",
        )
        section.lessons.append(lesson)
        return lesson

    def test(
        self,
        section: SectionOutline,
        published: bool = True,
        total_marks: int = 10,
        passing_score: int = 60,
    ) -> Test:
        test = Test(
            id=uuid4(),
            course_id=self.course.id,
            section_id=section.section.id,
            position=len(section.tests),
            title=f"Test {len(section.tests) + 1}",
            total_marks=total_marks,
            passing_score=passing_score,
            created_at=self._tick(),
            is_published=published,
        )
        section.tests.append(test)
        return test


@pytest.fixture
def outline_builder() -> OutlineBuilder:
    """Empty course outline builder."""
    return OutlineBuilder()


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda query: Mock(query_string=query))
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def user_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def make_enrollment():
    """Factory for paid direct enrollments."""

    def _make(user_id: UUID, course_id: UUID, **overrides) -> DirectEnrollment:
        values = {
            "user_id": user_id,
            "course_id": course_id,
            "enrolled_at": datetime.now(UTC) - timedelta(days=30),
            "payment_completed": True,
        }
        values.update(overrides)
        return DirectEnrollment(**values)

    return _make


@pytest.fixture
def client() -> TestClient:
    """HTTP client over the app without running the lifespan."""
    from learnpath.main import create_app

    return TestClient(create_app())
