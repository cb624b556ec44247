"""HTTP tests for the certification endpoints."""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from learnpath.auth.permissions import ActorKind
from learnpath.auth.security import create_access_token
from learnpath.certification.models import (
    Certificate,
    CertificateSnapshot,
    Eligibility,
    EligibilityStatus,
)
from learnpath.certification.service import (
    AlreadyIssuedError,
    CertificateNotFoundError,
)
from learnpath.enrollments.service import AccessDeniedError


def certificate(user_id: UUID, certificate_id: str = "K1-ABCDEF") -> Certificate:
    return Certificate(
        certificate_id=certificate_id,
        user_id=user_id,
        course_id=uuid4(),
        issue_date=datetime(2026, 3, 10, 12, 0, tzinfo=UTC),
        snapshot=CertificateSnapshot(
            holder_name="Ana Souza",
            certificate_number=certificate_id,
            course_title="Pharmacology 101",
            template_title="Certificate of Completion",
            date_of_birth=date(1995, 4, 12),
        ),
        rendered_html="<p>Ana Souza</p>",
    )


@pytest.fixture
def certification_service(client: TestClient) -> Mock:
    """Mock certification service wired into app state."""
    service = Mock()
    client.app.state.certification_service = service
    return service


def auth_headers(user_id: UUID, role: str = "student") -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


class TestCertificationRoutes:
    """Tests for certification routes."""

    def test_verify_is_public(self, client: TestClient, certification_service, user_id):
        """Verification works without a token."""
        certification_service.verify_certificate = AsyncMock(
            return_value=certificate(user_id)
        )

        response = client.get("/v1/certificates/k1-abcdef/verify")

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["certificate"]["holder_name"] == "Ana Souza"

    def test_verify_unknown(self, client: TestClient, certification_service):
        """Unknown certificates map to 404."""
        certification_service.verify_certificate = AsyncMock(
            side_effect=CertificateNotFoundError()
        )

        response = client.get("/v1/certificates/NOPE-000000/verify")

        assert response.status_code == 404
        assert response.json()["message"] == "Certificate not found or invalid"

    def test_eligibility_uses_actor_kind(
        self, client: TestClient, certification_service, user_id
    ):
        """Employees are checked against their sponsored access."""
        course_id = uuid4()
        certification_service.get_eligibility = AsyncMock(
            return_value=Eligibility(
                status=EligibilityStatus.PENDING_COMPLETION,
                message="Complete all course content to become eligible",
                progress_percent=40,
            )
        )

        response = client.get(
            f"/v1/certificates/courses/{course_id}/eligibility",
            headers=auth_headers(user_id, "employee"),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "pending_completion"
        assert response.json()["progress"] == 40
        certification_service.get_eligibility.assert_awaited_once_with(
            user_id, course_id, ActorKind.SPONSORED
        )

    def test_eligibility_without_enrollment(
        self, client: TestClient, certification_service, user_id
    ):
        """Callers without access get 403."""
        certification_service.get_eligibility = AsyncMock(side_effect=AccessDeniedError())

        response = client.get(
            f"/v1/certificates/courses/{uuid4()}/eligibility",
            headers=auth_headers(user_id),
        )

        assert response.status_code == 403

    def test_issue_twice(self, client: TestClient, certification_service, user_id):
        """A second issuance maps to 409."""
        certification_service.issue_certificate = AsyncMock(
            side_effect=AlreadyIssuedError()
        )

        response = client.post(
            f"/v1/certificates/courses/{uuid4()}", headers=auth_headers(user_id)
        )

        assert response.status_code == 409

    def test_issue_requires_token(self, client: TestClient, certification_service):
        """Issuance needs an authenticated caller."""
        response = client.post(f"/v1/certificates/courses/{uuid4()}")

        assert response.status_code == 401

    def test_list_my_certificates(
        self, client: TestClient, certification_service, user_id
    ):
        """Should list the caller's certificates."""
        certification_service.list_user_certificates = AsyncMock(
            return_value=[certificate(user_id, "B-000002"), certificate(user_id, "A-000001")]
        )

        response = client.get("/v1/certificates/my", headers=auth_headers(user_id))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [c["certificate_id"] for c in data["items"]] == ["B-000002", "A-000001"]

    def test_template_requires_teacher(
        self, client: TestClient, certification_service, user_id
    ):
        """Students cannot create templates."""
        response = client.post(
            "/v1/certificates/templates",
            json={"course_id": str(uuid4()), "title": "T", "html_content": "<p></p>"},
            headers=auth_headers(user_id),
        )

        assert response.status_code == 403

    def test_service_unavailable(self, client: TestClient):
        """Without a wired service the endpoint reports 503."""
        response = client.get("/v1/certificates/K1-ABCDEF/verify")

        assert response.status_code == 503
