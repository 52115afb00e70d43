"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "LMS Assessment API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Caller identity
    # Authentication happens upstream; the gateway forwards the resolved
    # student id in this header.
    STUDENT_ID_HEADER: str = "X-Student-Id"

    # Scoring
    # Pass bar applied when a test has no passing_marks configured
    DEFAULT_PASS_PERCENTAGE: float = Field(
        default=40.0,
        ge=0.0,
        le=100.0,
        description="Percentage score required to pass when passing marks are unset",
    )

    # Practice mode
    PRACTICE_DEFAULT_QUESTIONS: int = Field(
        default=10,
        ge=1,
        description="Number of questions in a practice session when none is requested",
    )
    PRACTICE_MAX_QUESTIONS: int = Field(
        default=50,
        ge=1,
        description="Upper bound on questions per practice session",
    )
    # Candidates fetched per requested question before shuffling
    PRACTICE_CANDIDATE_MULTIPLIER: int = Field(default=2, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_practice_limits(self) -> Self:
        """Validate that the practice default fits under the practice maximum."""
        if self.PRACTICE_DEFAULT_QUESTIONS > self.PRACTICE_MAX_QUESTIONS:
            raise ValueError(
                "PRACTICE_DEFAULT_QUESTIONS must not exceed PRACTICE_MAX_QUESTIONS, "
                f"got {self.PRACTICE_DEFAULT_QUESTIONS} > {self.PRACTICE_MAX_QUESTIONS}"
            )
        return self


settings = Settings()
