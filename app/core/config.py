# python
# app/core/config.py
"""Configuration settings for the TaskBoard collaboration API.

Uses Pydantic BaseSettings for environment variable management.
"""
import os
import secrets
from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="TaskBoard Collaboration API", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")
    frontend_url: str = Field(
        default="http://localhost:5173", description="Base URL used in emailed links"
    )

    # ===== Security Settings =====
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Secret key for JWT encoding",
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7, description="JWT token expiration time"
    )
    require_email_verification: bool = Field(
        default=True, description="Refuse login until the email address is verified"
    )
    bcrypt_rounds: int = Field(default=12, ge=4, le=16, description="bcrypt cost factor")

    # ===== Database Settings =====
    database_url: str | None = Field(default=None, description="Database connection URL")
    db_pool_size: int = Field(default=20, description="Database connection pool size")
    db_max_overflow: int = Field(default=0, description="Database max overflow connections")

    # Test database URL
    test_database_url: str | None = Field(default=None, description="Test database URL")

    # ===== Collaboration Settings =====
    invitation_expire_days: int = Field(default=7, description="Lifetime of an email invitation")
    invitation_link_expire_days: int = Field(default=7, description="Lifetime of a share link")
    email_verification_expire_hours: int = Field(
        default=24, description="Lifetime of an email verification token"
    )
    password_reset_expire_minutes: int = Field(
        default=60, description="Lifetime of a password reset token"
    )

    # ===== Audit Settings =====
    audit_retention_days: int = Field(
        default=90, description="Audit records older than this are purged"
    )
    audit_stats_window_days: int = Field(
        default=30, description="Trailing window for by-day audit activity"
    )

    # ===== CORS Settings =====
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if isinstance(self.allowed_origins, str):
            return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return self.allowed_origins if isinstance(self.allowed_origins, list) else []

    # ===== Background Tasks (Celery) =====
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", description="Celery result backend"
    )

    # ===== Email Configuration =====
    smtp_host: str | None = Field(default=None, description="SMTP host")
    smtp_port: int = Field(default=587, description="SMTP port")
    smtp_user: str | None = Field(default=None, description="SMTP username")
    smtp_password: str | None = Field(default=None, description="SMTP password")
    email_from: str | None = Field(default=None, description="Email from address")
    smtp_max_retry_attempts: int = Field(
        default=3, ge=1, le=10, description="Delivery attempts on transient SMTP failures"
    )

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.json, description="Log format")

    # ===== Server Settings =====
    host: str = Field(default="127.0.0.1", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")

    # ===== Development Settings =====
    reload: bool = Field(default=False, description="Auto-reload in development")
    docs_url: str = Field(default="/docs", description="API documentation URL")
    redoc_url: str = Field(default="/redoc", description="ReDoc documentation URL")

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def is_testing(self) -> bool:
        return self.environment == EnvironmentEnum.testing

    @property
    def has_email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user)

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
        return v

    @field_validator(
        "invitation_expire_days",
        "invitation_link_expire_days",
        "email_verification_expire_hours",
        "password_reset_expire_minutes",
        "audit_stats_window_days",
    )
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Expiry windows must be positive")
        return v

    @field_validator("audit_retention_days")
    @classmethod
    def validate_retention(cls, v):
        if v < 1:
            raise ValueError("Audit retention must keep at least one day")
        return v


settings = Settings()


class ConfigValidator:
    @staticmethod
    def validate_required_settings():
        errors = []
        if not settings.database_url:
            errors.append("DATABASE_URL is required")
        if settings.is_production and "SECRET_KEY" not in _explicit_env_keys():
            errors.append("SECRET_KEY must be set explicitly in production")
        if settings.is_production and not settings.has_email_enabled:
            errors.append("SMTP_HOST and SMTP_USER are required in production")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


def _explicit_env_keys() -> set[str]:
    return {key.upper() for key in os.environ}


__all__ = [
    "settings",
    "Settings",
    "ConfigValidator",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
]
