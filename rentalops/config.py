"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_host: str = Field(default="0.0.0.0", description="Service host")
    service_port: int = Field(default=8000, description="Service port")
    log_level: str = Field(default="INFO", description="Logging level")
    docs_enabled: bool = Field(
        default=True, description="Expose /docs, /redoc and /openapi.json"
    )
    config_profile: str = Field(
        default="development",
        description="Configuration profile (development, staging, production)",
    )
    git_sha: Optional[str] = Field(default=None, description="Git commit SHA")

    # Database Configuration
    database_url: Optional[str] = Field(
        default=None, description="PostgreSQL connection URL"
    )
    db_pool_min_size: int = Field(default=1, description="Minimum connection pool size")
    db_pool_max_size: int = Field(default=10, description="Maximum connection pool size")
    db_command_timeout: float = Field(
        default=30.0, description="Per-statement timeout in seconds"
    )
    db_ssl: bool = Field(default=False, description="Require SSL for database connections")
    db_auto_migrate: bool = Field(
        default=False, description="Apply the booking schema at startup"
    )

    # Order numbering
    order_number_prefix: str = Field(
        default="PED", description="Prefix of human-facing order numbers"
    )
    order_number_start: int = Field(
        default=1000, description="First order number when no counter is stored"
    )
    order_number_increment: int = Field(
        default=1, ge=1, description="Step between consecutive order numbers"
    )

    # Booking defaults
    default_payment_terms_text: str = Field(
        default="Upfront", description="Payment terms used when none are supplied"
    )

    # Identity / API key
    user_id_header_name: str = Field(
        default="X-User-Id",
        description="Trusted header carrying the already-authenticated user id",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Optional API key. If set, all requests must include the API key header",
    )
    api_key_header_name: str = Field(default="X-API-Key", description="Header name for API key")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, description="Enable rate limiting")
    rate_limit_requests_per_minute: int = Field(
        default=120, description="Maximum requests per minute per IP"
    )

    # Request size limits
    max_request_body_size: int = Field(
        default=1 * 1024 * 1024,  # 1 MB
        description="Maximum request body size in bytes",
    )

    # Sentry
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN (optional)")
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment tag (development, staging, production)",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry performance tracing sample rate (0.0-1.0)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
