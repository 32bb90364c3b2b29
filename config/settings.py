"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/career_coach.db")
    APP_CONFIG_PATH: str = Field(default="app_config.json")

    PERSONA_DEFAULT: str = "Alex"
    DEFAULT_MAX_EXCHANGES: int = 6
    GENERATION_MAX_ATTEMPTS: int = 2

    SILENCE_TIMEOUT_S: float = 2.0
    CAPTURE_RESTART_S: float = 0.5
    RENDER_TIMEOUT_S: float = 120.0
    FINISHED_SESSION_TTL_S: float = 60.0

    D_ID_API_KEY: str = ""
    D_ID_BASE_URL: str = "https://api.d-id.com"
    AVATAR_POLL_INTERVAL_S: float = 1.0
    AVATAR_POLL_ATTEMPTS: int = 30

    LOG_LEVEL: str = "INFO"
    ENABLE_FILE_LOGS: bool = True
    LOG_FILE: str = "logs/sessions.log"
    LOG_MAX_BYTES: int = 5_242_880
    LOG_BACKUP_COUNT: int = 5

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
