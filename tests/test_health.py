"""Tests for health endpoints."""

from unittest.mock import Mock

from fastapi.testclient import TestClient

from learnpath.health.router import REQUIRED_SERVICES


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness_without_services(client: TestClient) -> None:
    """Readiness is degraded until the services are wired."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["services_ready"] is False
    assert "environment" in data
    assert "debug" in data


def test_readiness_with_services(client: TestClient) -> None:
    """Readiness reports ready once every core service is present."""
    for name in REQUIRED_SERVICES:
        setattr(client.app.state, name, Mock())

    response = client.get("/health/ready")

    assert response.json()["status"] == "ready"


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "learnpath"
    assert "version" in data
    assert "environment" in data


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "LearnPath" in data["message"]
    assert "version" in data
