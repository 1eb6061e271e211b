"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Assessment Session API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Security
    # IMPORTANT: Must be set in .env file - no default for security
    JWT_SECRET_KEY: str = Field(..., description="JWT signing secret key (required)")
    JWT_ALGORITHM: str = "HS256"
    # Lifetime of the bearer token handed to anonymous public candidates
    PUBLIC_TOKEN_EXPIRE_MINUTES: int = Field(
        default=24 * 60,
        gt=0,
        description="Lifetime of public-attempt candidate tokens in minutes",
    )

    ADMIN_TOKEN: str = Field(
        default="",
        description="Admin API token for reaper, abandon, certificate and analytics endpoints",
    )

    # Proctoring classification (read-time only, never a state transition)
    VIOLATION_REVIEW_THRESHOLD: int = Field(
        default=3,
        ge=1,
        description="Violation count at which a session is flagged for review",
    )
    VIOLATION_HIGH_THRESHOLD: int = Field(
        default=10,
        ge=1,
        description="Violation count at which a flagged session is marked high severity",
    )

    # Expire stale sessions before aggregate reads
    REAP_ON_READ: bool = True

    # Analytics
    SCORE_DISTRIBUTION_BUCKETS: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of equal-width score buckets in the distribution",
    )
    TOP_PERFORMERS_LIMIT: int = Field(
        default=5,
        ge=1,
        description="Number of sessions listed as top and bottom performers",
    )

    # Certificate collaborator (leave empty to disable hand-off)
    CERTIFICATE_SERVICE_URL: str = Field(
        default="",
        description="Base URL of the certificate issuer; empty disables issuance",
    )
    CERTIFICATE_SERVICE_TIMEOUT: float = Field(
        default=5.0,
        gt=0.0,
        description="Timeout in seconds for certificate issuer requests",
    )

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_violation_thresholds(self) -> Self:
        """High-severity threshold must not be below the review threshold."""
        if self.VIOLATION_HIGH_THRESHOLD < self.VIOLATION_REVIEW_THRESHOLD:
            raise ValueError(
                "VIOLATION_HIGH_THRESHOLD must be >= VIOLATION_REVIEW_THRESHOLD, "
                f"got {self.VIOLATION_HIGH_THRESHOLD} < "
                f"{self.VIOLATION_REVIEW_THRESHOLD}"
            )
        return self


# mypy doesn't understand that pydantic_settings loads required fields from env vars
settings = Settings()  # type: ignore[call-arg]
