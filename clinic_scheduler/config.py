"""Application configuration."""

from datetime import time
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from clinic_scheduler.scheduling.assignment import STRATEGIES


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Uni Health Scheduler", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    store_timeout_seconds: float = Field(default=5.0, gt=0, alias="STORE_TIMEOUT_SECONDS")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # JWT (tokens are issued by the portal's auth service)
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Scheduling
    clinic_timezone: str = Field(default="Europe/Istanbul", alias="CLINIC_TIMEZONE")
    slot_minutes: int = Field(default=30, ge=5, le=240, alias="SLOT_MINUTES")
    default_working_hours_start: time = Field(
        default=time(9, 0), alias="DEFAULT_WORKING_HOURS_START"
    )
    default_working_hours_end: time = Field(default=time(17, 0), alias="DEFAULT_WORKING_HOURS_END")
    default_available_days_str: str = Field(
        default="monday,tuesday,wednesday,thursday,friday",
        alias="DEFAULT_AVAILABLE_DAYS",
    )
    alternative_dates_count: int = Field(default=3, ge=1, le=5, alias="ALTERNATIVE_DATES_COUNT")
    alternative_scan_days: int = Field(default=60, ge=1, alias="ALTERNATIVE_SCAN_DAYS")
    assignment_strategy: str = Field(default="first_available", alias="ASSIGNMENT_STRATEGY")

    # Slot locking
    slot_lock_backend: str = Field(default="none", alias="SLOT_LOCK_BACKEND")
    slot_lock_timeout_seconds: float = Field(default=10.0, gt=0, alias="SLOT_LOCK_TIMEOUT_SECONDS")
    slot_lock_wait_seconds: float = Field(default=2.0, gt=0, alias="SLOT_LOCK_WAIT_SECONDS")

    # Notifications
    notification_backend: str = Field(default="log", alias="NOTIFICATION_BACKEND")
    notification_channel: str = Field(
        default="clinic:appointment-events", alias="NOTIFICATION_CHANNEL"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @field_validator("clinic_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names at startup."""
        ZoneInfo(v)
        return v

    @field_validator("slot_lock_backend")
    @classmethod
    def validate_lock_backend(cls, v: str) -> str:
        """Validate slot lock backend."""
        if v not in ("none", "redis"):
            raise ValueError("SLOT_LOCK_BACKEND must be 'none' or 'redis'")
        return v

    @field_validator("assignment_strategy")
    @classmethod
    def validate_assignment_strategy(cls, v: str) -> str:
        """Validate assignment strategy name."""
        if v not in STRATEGIES:
            raise ValueError(f"ASSIGNMENT_STRATEGY must be one of {sorted(STRATEGIES)}")
        return v

    @field_validator("notification_backend")
    @classmethod
    def validate_notification_backend(cls, v: str) -> str:
        """Validate notification backend."""
        if v not in ("log", "redis"):
            raise ValueError("NOTIFICATION_BACKEND must be 'log' or 'redis'")
        return v

    @property
    def clinic_tz(self) -> ZoneInfo:
        """Canonical clinic timezone."""
        return ZoneInfo(self.clinic_timezone)

    @property
    def uses_redis(self) -> bool:
        """Whether slot locks or notifications go through Redis."""
        return self.slot_lock_backend == "redis" or self.notification_backend == "redis"

    @property
    def default_available_days(self) -> list[str]:
        """Default weekdays for doctors without an availability profile."""
        return [
            day.strip().lower() for day in self.default_available_days_str.split(",") if day.strip()
        ]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
