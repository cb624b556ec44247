"""HTTP tests for the attempt listing endpoints."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from learnpath.attempts.models import AttemptStatus, TestAttempt
from learnpath.auth.security import create_access_token


def attempt(user_id: UUID, status: AttemptStatus = AttemptStatus.UNDER_REVIEW) -> TestAttempt:
    return TestAttempt(
        id=uuid4(),
        user_id=user_id,
        test_id=uuid4(),
        course_id=uuid4(),
        status=status,
        score=4,
        percentage=40.0,
        is_passed=False,
        total_marks=10,
        passing_score=60,
        completed_at=datetime(2026, 3, 10, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def attempt_service(client: TestClient) -> Mock:
    """Mock attempt service wired into app state."""
    service = Mock()
    client.app.state.attempt_service = service
    return service


def auth_headers(user_id: UUID, role: str = "student") -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


class TestAttemptListRoutes:
    """Tests for attempt listing routes."""

    def test_my_attempts(self, client: TestClient, attempt_service, user_id):
        """A learner lists their own attempts."""
        attempt_service.list_user_attempts = AsyncMock(return_value=[attempt(user_id)])

        response = client.get("/v1/attempts/my", headers=auth_headers(user_id))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["status"] == "under_review"
        attempt_service.list_user_attempts.assert_awaited_once_with(user_id)

    def test_course_review_queue(self, client: TestClient, attempt_service):
        """Teachers filter a course's attempts by status."""
        course_id = uuid4()
        attempt_service.list_course_attempts = AsyncMock(
            return_value=[attempt(uuid4())]
        )

        response = client.get(
            f"/v1/attempts/courses/{course_id}",
            params={"status": "under_review"},
            headers=auth_headers(uuid4(), role="teacher"),
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1
        attempt_service.list_course_attempts.assert_awaited_once_with(
            course_id, AttemptStatus.UNDER_REVIEW
        )

    def test_course_attempts_require_teacher(
        self, client: TestClient, attempt_service, user_id
    ):
        """Students cannot list other learners' attempts."""
        attempt_service.list_course_attempts = AsyncMock(return_value=[])

        response = client.get(
            f"/v1/attempts/courses/{uuid4()}", headers=auth_headers(user_id)
        )

        assert response.status_code == 403
        attempt_service.list_course_attempts.assert_not_awaited()
