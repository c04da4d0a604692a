from typing import Literal

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

    app_name: str = "Workforce Attendance"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://workforce:workforce@db:5432/workforce"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Shifts still open this many hours after check-in are closed at the cap.
    max_shift_hours: int = Field(default=14, gt=0)
    # IANA zone for naive operator timestamps and the self-service calendar day.
    local_timezone: str = "UTC"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
