"""
Application configuration via Pydantic Settings.

All values are sourced from environment variables or an .env file.
No defaults expose insecure behaviour in production.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import (
    BeforeValidator,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _parse_cors_origins(value: str | list[str]) -> list[str]:
    """Accept comma-separated string or list for CORS origins."""
    if isinstance(value, list):
        return value
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Settings(BaseSettings):
    """
    Centralised, type-validated application configuration.

    Reads from environment variables with an optional .env file.
    All secrets are Pydantic SecretStr to prevent accidental logging.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(default="DPO Fast", description="Human-readable application name")
    app_version: str = Field(default="1.0.0", description="Semantic version string")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode. Must be False in production.",
    )

    # ── Server ─────────────────────────────────────────────────────────── #
    host: str = Field(default="127.0.0.1", description="Bind host. Default local-only.")
    port: int = Field(default=8000, ge=1024, le=65535, description="Bind port")
    reload: bool = Field(default=False, description="Auto-reload on code change (dev only)")

    # ── CORS ───────────────────────────────────────────────────────────── #
    cors_origins: Annotated[list[str], BeforeValidator(_parse_cors_origins)] = Field(
        default=["http://localhost:5173"],
        description="Comma-separated list of allowed CORS origins",
    )

    # ── Database ───────────────────────────────────────────────────────── #
    database_url: str = Field(
        default="sqlite+aiosqlite:///./dpofast.db",
        description=(
            "Async SQLAlchemy connection string. "
            "Use sqlite+aiosqlite:// for local or postgresql+asyncpg:// for production."
        ),
    )
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Pool max overflow")
    db_echo: bool = Field(default=False, description="Log all SQL statements (debug only)")
    run_migrations_on_startup: bool = Field(
        default=True,
        description="Apply Alembic migrations when the application starts",
    )

    # ── Auth / JWT ─────────────────────────────────────────────────────── #
    jwt_secret_key: SecretStr = Field(
        ...,
        description="HS256 signing secret. Minimum 32 characters. Required.",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_token_expire_minutes: int = Field(
        default=60,
        ge=5,
        le=1440,
        description="Access token TTL in minutes",
    )
    jwt_refresh_token_expire_days: int = Field(
        default=7,
        ge=1,
        le=30,
        description="Refresh token TTL in days",
    )
    allow_registration: bool = Field(
        default=True,
        description="Allow companies to self-register through /auth/register",
    )

    # ── File Storage ───────────────────────────────────────────────────── #
    upload_dir: Path = Field(
        default=Path("./uploads"),
        description="Directory for uploaded compliance evidence",
    )
    report_dir: Path = Field(
        default=Path("./reports"),
        description="Directory for generated PDF compliance reports",
    )
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum upload file size in MB",
    )
    max_files_per_task_upload: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum number of files attached to a task in one request",
    )
    allowed_mime_types: list[str] = Field(
        default=[
            "application/pdf",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/msword",
            "image/jpeg",
            "image/png",
        ],
        description="Allowed MIME types for uploaded documents",
    )

    # ── Rate Limiting ──────────────────────────────────────────────────── #
    rate_limit_default: str = Field(
        default="100/minute",
        description="Default rate limit string (slowapi format)",
    )

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    # ── Billing (Stripe) ───────────────────────────────────────────────── #
    stripe_secret_key: SecretStr | None = Field(
        default=None,
        description="Stripe API secret key. Billing endpoints answer 503 when unset.",
    )
    stripe_webhook_secret: SecretStr | None = Field(
        default=None,
        description="Signing secret used to verify Stripe webhook payloads",
    )
    stripe_price_basic: str | None = Field(default=None, description="Stripe price id (basic)")
    stripe_price_pro: str | None = Field(default=None, description="Stripe price id (pro)")
    stripe_price_personalite: str | None = Field(
        default=None, description="Stripe price id (personalite)"
    )
    checkout_success_url: str = Field(
        default="http://localhost:5173/subscription?success=true",
        description="Redirect target after a successful checkout",
    )
    checkout_cancel_url: str = Field(
        default="http://localhost:5173/subscription?canceled=true",
        description="Redirect target when the customer abandons checkout",
    )

    # ── Admin Bootstrap ────────────────────────────────────────────────── #
    admin_username: str = Field(
        default="admin",
        description="Bootstrap admin username (used only on first startup)",
    )
    admin_email: str = Field(
        default="admin@dpofast.local",
        description="Bootstrap admin e-mail",
    )
    admin_password: SecretStr = Field(
        ...,
        description="Bootstrap admin password. Required. Min 12 chars.",
    )

    # ── Validators ─────────────────────────────────────────────────────── #

    @field_validator("jwt_secret_key")
    @classmethod
    def jwt_secret_must_be_strong(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 32:
            raise ValueError("jwt_secret_key must be at least 32 characters")
        return v

    @field_validator("admin_password")
    @classmethod
    def admin_password_must_be_strong(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 12:
            raise ValueError("admin_password must be at least 12 characters")
        return v

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION:
            if self.debug:
                raise ValueError("debug must be False in production")
            if self.reload:
                raise ValueError("reload must be False in production")
            if self.db_echo:
                raise ValueError("db_echo must be False in production")
            if self.stripe_secret_key is not None and self.stripe_webhook_secret is None:
                raise ValueError("stripe_webhook_secret is required when billing is enabled")
        return self

    @model_validator(mode="after")
    def ensure_directories_exist(self) -> Settings:
        """Create storage directories if they do not exist."""
        for directory in (self.upload_dir, self.report_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return self

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def stripe_price_for(self, plan: str) -> str | None:
        """Return the configured Stripe price id for a paid plan."""
        return {
            "basic": self.stripe_price_basic,
            "pro": self.stripe_price_pro,
            "personalite": self.stripe_price_personalite,
        }.get(plan)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the cached Settings singleton.

    Use dependency injection in FastAPI routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
