"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List

_DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"
_DEFAULT_REFRESH_SECRET = "dev-insecure-refresh-key-change-me"


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every value can be overridden with an environment variable of the same
    name (case-insensitive) or through a ``.env`` file.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./casegate.db",
        description="Database connection URL"
    )
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled (prevents stale connections)"
    )

    # Token signing
    # Access and refresh tokens use different keys so a leaked refresh key
    # cannot mint access tokens and vice versa.
    jwt_secret_key: str = Field(
        default=_DEFAULT_JWT_SECRET,
        description="Access token signing secret (override in production)"
    )
    jwt_refresh_secret_key: str = Field(
        default=_DEFAULT_REFRESH_SECRET,
        description="Refresh token signing secret (override in production)"
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_issuer: str = Field(default="casegate")

    # Token lifetimes
    access_token_hours: int = Field(
        default=12,
        description="Lifetime of the access token minted at login or refresh"
    )
    renewed_token_hours: int = Field(
        default=1,
        description="Lifetime of an access token re-signed by the session monitor"
    )
    refresh_token_days: int = Field(
        default=7,
        description="Lifetime of the refresh token"
    )

    # Session inactivity thresholds (minutes)
    session_warning_minutes: int = Field(
        default=20,
        description="Warn this many minutes before the inactivity limit"
    )
    session_refresh_threshold_minutes: int = Field(
        default=10,
        description="Silently renew this many minutes before the inactivity limit"
    )
    session_max_inactivity_minutes: int = Field(
        default=60,
        description="Inactivity after which a session is considered over"
    )
    session_grace_minutes: int = Field(
        default=5,
        description="Extra tolerance past the inactivity limit before rejecting"
    )

    # Accounts
    temporary_password: str = Field(
        default="Temporal12345@",
        description="Password assigned to newly registered users until first login"
    )
    min_password_length: int = Field(
        default=8,
        description="Minimum length enforced on password change"
    )
    admin_email: str = Field(
        default="",
        description="Bootstrap administrator email (empty = skip seeding)"
    )
    admin_password: str = Field(
        default="",
        description="Bootstrap administrator password"
    )

    # Login throttling
    login_rate_limit: int = Field(
        default=20,
        description="Login attempts allowed per client within the window (0 = unlimited)"
    )
    login_rate_window_seconds: int = Field(
        default=300,
        description="Sliding window for login throttling"
    )
    trusted_proxies: str = Field(
        default="",
        description="Comma-separated proxy IPs whose X-Forwarded-For header is honored"
    )

    # Audit Log Retention
    audit_retention_days: int = Field(
        default=365,
        description="Days to keep audit log entries (0 = keep forever)"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: credentials are allowed, so a wildcard would expose tokens
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def get_trusted_proxies(self) -> frozenset:
        """Direct peers allowed to report the client address."""
        return frozenset(ip.strip() for ip in self.trusted_proxies.split(',') if ip.strip())

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('jwt_algorithm')
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v.upper() != "HS256":
            raise ValueError("Only HS256 is supported")
        return v.upper()

    @field_validator(
        'session_warning_minutes',
        'session_refresh_threshold_minutes',
        'session_max_inactivity_minutes',
        'session_grace_minutes',
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Session thresholds cannot be negative")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently; main.py logs warnings instead.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.jwt_secret_key == _DEFAULT_JWT_SECRET:
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if self.jwt_refresh_secret_key == _DEFAULT_REFRESH_SECRET:
            errors.append(
                "JWT_REFRESH_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if self.jwt_refresh_secret_key == self.jwt_secret_key:
            errors.append(
                "JWT_REFRESH_SECRET_KEY must differ from JWT_SECRET_KEY."
            )

        if self.temporary_password == "Temporal12345@":
            errors.append(
                "TEMPORARY_PASSWORD is the well-known default. Set a site-specific value."
            )

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors:
            if self.environment == Environment.PRODUCTION:
                raise ConfigurationError(
                    "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
                )
            return

    def uses_default_secrets(self) -> bool:
        return (
            self.jwt_secret_key == _DEFAULT_JWT_SECRET
            or self.jwt_refresh_secret_key == _DEFAULT_REFRESH_SECRET
        )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
