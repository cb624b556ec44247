"""Application settings using Pydantic Settings.

Every field can be overridden through an environment variable of the same
name (case-insensitive) or a ``.env`` file.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_SECRET_KEY = "dev-jwt-secret-key-change-in-production-32chars!"


class Settings(BaseSettings):
    """LearnPath settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="learnpath", description="Service name")
    app_version: str = Field(default="0.1.0", description="Service version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=True, description="Debug mode")

    api_host: str = Field(default="0.0.0.0", description="Bind address")
    api_port: int = Field(default=8000, description="Bind port")

    # Access tokens are issued by the identity service; we only validate them
    auth_secret_key: str = Field(
        default=DEV_SECRET_KEY,
        min_length=32,
        description="Shared JWT signing key",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT signature algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=15, description="Lifetime of tokens minted by create_access_token"
    )

    # Redis (certificate verification cache, optional)
    redis_url: str = Field(
        default="redis://localhost:6379/0", description="Cache connection URL"
    )
    redis_max_connections: int = Field(default=10, description="Pool size")
    redis_socket_timeout: float = Field(default=5.0, description="Command timeout (s)")
    redis_socket_connect_timeout: float = Field(
        default=2.0, description="Connect timeout (s)"
    )
    redis_retry_on_timeout: bool = Field(default=True, description="Retry timed out commands")
    redis_health_check_interval: int = Field(
        default=30, description="Idle connection health check (s)"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Contact points"
    )
    cassandra_port: int = Field(default=9042, description="Native protocol port")
    cassandra_keyspace: str = Field(default="learnpath", description="Keyspace")
    cassandra_username: str | None = Field(default=None, description="Username")
    cassandra_password: str | None = Field(default=None, description="Password")
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout (s)"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Root log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Console renderer"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Add module, function and line to events"
    )
    log_dir: str = Field(default="logs", description="Rotating log files directory")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Rotate after this many bytes"
    )
    log_file_backup_count: int = Field(default=5, description="Rotated files kept")
    log_requests: bool = Field(default=True, description="Log request start and finish")
    log_exclude_paths: list[str] = Field(
        default=["/health"],
        description="Path prefixes without request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="Allowed origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="Preflight cache (s)")

    # Progress
    progress_aggregate_max_retries: int = Field(
        default=5,
        ge=0,
        description="Recomputes after losing a concurrent aggregate write",
    )

    # Certification gate
    certificate_waiting_period_days: int = Field(
        default=5,
        ge=0,
        description="Days after enrollment before a certificate may be issued",
    )
    certificate_id_max_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts at generating an unused certificate id",
    )
    certificate_verify_cache_seconds: int = Field(
        default=3600,
        ge=1,
        description="TTL for cached public certificate verifications",
    )

    @model_validator(mode="after")
    def check_production_secret(self) -> "Settings":
        if self.environment == "production" and self.auth_secret_key == DEV_SECRET_KEY:
            msg = "AUTH_SECRET_KEY must be set in production"
            raise ValueError(msg)
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
