"""Engine configuration with strict environment validation."""

from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # --- Observability ---
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    METRICS_NAMESPACE: str = "engagement"

    # --- Record store ---
    STORE_BACKEND: Literal["memory", "redis", "sql"] = "memory"
    STORE_KEY_PREFIX: str = "engagement"
    STORE_MAX_RETRIES: int = 5
    REDIS_URL: str | None = None
    DATABASE_URL: str = "sqlite:///./engagement.db"

    # --- Interaction log ---
    SESSION_TIMEOUT_MINUTES: int = 30
    MAX_STORED_EVENTS: int = 1000
    ENGAGEMENT_TIMEZONE: str = "UTC"

    # --- Search ---
    SEARCH_THRESHOLD: float = Field(default=0.3, ge=0.0, le=1.0)
    SEARCH_LIMIT: int = 50
    SUGGESTION_THRESHOLD: float = Field(default=0.2, ge=0.0, le=1.0)

    # --- Loyalty ---
    LOGIN_STREAK_BONUS_CAP: int = 100

    @field_validator("ENGAGEMENT_TIMEZONE")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value

    @field_validator("STORE_MAX_RETRIES", "SESSION_TIMEOUT_MINUTES", "MAX_STORED_EVENTS")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be positive.")
        return value

    @field_validator("LOGIN_STREAK_BONUS_CAP", "SEARCH_LIMIT")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Value must not be negative.")
        return value

    @model_validator(mode="after")
    def check_store_backend(self) -> "Settings":
        if self.STORE_BACKEND == "redis" and not self.REDIS_URL:
            raise ValueError("REDIS_URL must be set when STORE_BACKEND is 'redis'.")
        return self

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.ENGAGEMENT_TIMEZONE)


settings = Settings()
