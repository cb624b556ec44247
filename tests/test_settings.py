"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from learnpath.config import Settings


class TestSettings:
    """Tests for Settings validation."""

    def test_defaults(self) -> None:
        """Certification and progress knobs have their documented defaults."""
        settings = Settings()
        assert settings.certificate_waiting_period_days == 5
        assert settings.certificate_id_max_retries >= 1
        assert settings.progress_aggregate_max_retries == 5

    def test_production_requires_secret(self) -> None:
        """The development signing key is refused in production."""
        with pytest.raises(ValidationError):
            Settings(environment="production")

    def test_production_with_secret(self) -> None:
        """A real key is accepted in production."""
        settings = Settings(
            environment="production", auth_secret_key="x" * 40
        )
        assert settings.is_production is True

    def test_retries_must_be_positive(self) -> None:
        """At least one certificate id attempt is required."""
        with pytest.raises(ValidationError):
            Settings(certificate_id_max_retries=0)
