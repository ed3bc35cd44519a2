"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional, Self

from libs.domain_types import Dimension


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Transformation Portal Assessment API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Item bank: JSON document with an "items" array. Empty means the packaged
    # default MBTI bank.
    ITEM_BANK_PATH: Optional[str] = Field(
        default=None,
        description="Path to a JSON item bank (defaults to the packaged MBTI bank)",
    )

    # Adaptive assessment stopping criteria
    ASSESSMENT_PRECISION_THRESHOLD: float = Field(
        default=0.30,
        gt=0.0,
        description="Stop a dimension once SE(theta) is at or below this value",
    )
    ASSESSMENT_MIN_ITEMS_PER_DIMENSION: int = Field(
        default=5,
        ge=1,
        description="Items required before the precision rule may stop a dimension",
    )
    ASSESSMENT_MAX_ITEMS_PER_DIMENSION: int = Field(
        default=10,
        ge=1,
        description="Hard cap on items administered per dimension",
    )
    ASSESSMENT_DIMENSION_ORDER: List[Dimension] = [
        Dimension.EI,
        Dimension.SN,
        Dimension.TF,
        Dimension.JP,
    ]

    # Ability estimation (Newton-Raphson MLE)
    ASSESSMENT_THETA_MIN: float = -4.0
    ASSESSMENT_THETA_MAX: float = 4.0
    ASSESSMENT_CONVERGENCE_TOLERANCE: float = Field(default=0.001, gt=0.0)
    ASSESSMENT_MAX_ITERATIONS: int = Field(default=20, ge=1)

    # Item bank provisioning: fewer items than this in any dimension is fatal
    ASSESSMENT_MIN_BANK_ITEMS_PER_DIMENSION: int = Field(default=5, ge=1)

    # Response scale. (0, 1) is a forced binary choice; (1, 5) a Likert scale.
    ASSESSMENT_RESPONSE_SCALE_MIN: int = 0
    ASSESSMENT_RESPONSE_SCALE_MAX: int = 1

    # Response validity checks (advisory only)
    ASSESSMENT_MIN_RESPONSE_TIME_MS: int = Field(default=500, ge=0)
    ASSESSMENT_MAX_RESPONSE_TIME_MS: int = Field(default=30000, ge=1)
    ASSESSMENT_CONSISTENCY_THRESHOLD: float = Field(default=0.6, ge=0.0, le=1.0)

    # In-process session and result retention
    ASSESSMENT_SESSION_TTL_SECONDS: float = Field(
        default=3600.0,
        gt=0.0,
        description="Idle lifetime of an unfinished session before it is dropped",
    )
    ASSESSMENT_COMPLETED_SESSION_TTL_SECONDS: float = Field(
        default=300.0,
        ge=0.0,
        description="How long a completed session stays addressable",
    )
    ASSESSMENT_RESULT_TTL_SECONDS: float = Field(
        default=86400.0,
        gt=0.0,
        description="How long the in-memory repository keeps finished profiles",
    )
    ASSESSMENT_STORE_CLEANUP_INTERVAL_SECONDS: float = Field(default=60.0, ge=0.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_item_limits(self) -> Self:
        """Validate min/max items per dimension."""
        if (
            self.ASSESSMENT_MIN_ITEMS_PER_DIMENSION
            > self.ASSESSMENT_MAX_ITEMS_PER_DIMENSION
        ):
            raise ValueError(
                "ASSESSMENT_MIN_ITEMS_PER_DIMENSION "
                f"({self.ASSESSMENT_MIN_ITEMS_PER_DIMENSION}) must not exceed "
                "ASSESSMENT_MAX_ITEMS_PER_DIMENSION "
                f"({self.ASSESSMENT_MAX_ITEMS_PER_DIMENSION})"
            )
        return self

    @model_validator(mode="after")
    def validate_theta_bounds(self) -> Self:
        """Validate the theta clamp range."""
        if self.ASSESSMENT_THETA_MIN >= self.ASSESSMENT_THETA_MAX:
            raise ValueError(
                f"ASSESSMENT_THETA_MIN ({self.ASSESSMENT_THETA_MIN}) must be below "
                f"ASSESSMENT_THETA_MAX ({self.ASSESSMENT_THETA_MAX})"
            )
        return self

    @model_validator(mode="after")
    def validate_dimension_order(self) -> Self:
        """Dimension order must list each of the four dimensions exactly once."""
        order = self.ASSESSMENT_DIMENSION_ORDER
        if len(order) != len(Dimension) or set(order) != set(Dimension):
            raise ValueError(
                "ASSESSMENT_DIMENSION_ORDER must be a permutation of "
                f"{[d.value for d in Dimension]}, got {[d.value for d in order]}"
            )
        return self

    @model_validator(mode="after")
    def validate_response_scale(self) -> Self:
        """Validate the response scale and response-time window."""
        if self.ASSESSMENT_RESPONSE_SCALE_MIN >= self.ASSESSMENT_RESPONSE_SCALE_MAX:
            raise ValueError(
                "ASSESSMENT_RESPONSE_SCALE_MIN must be below "
                "ASSESSMENT_RESPONSE_SCALE_MAX"
            )
        if self.ASSESSMENT_MIN_RESPONSE_TIME_MS >= self.ASSESSMENT_MAX_RESPONSE_TIME_MS:
            raise ValueError(
                "ASSESSMENT_MIN_RESPONSE_TIME_MS must be below "
                "ASSESSMENT_MAX_RESPONSE_TIME_MS"
            )
        return self


settings = Settings()
