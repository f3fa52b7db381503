"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Database
    # ======================
    DATABASE_URL: str = "sqlite+aiosqlite:///./asset_dashboard.db"
    AUTO_CREATE_TABLES: bool = True

    # ======================
    # Application
    # ======================
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    TIMEZONE: str = "UTC"

    # ======================
    # Quote provider
    # ======================
    QUOTE_API_BASE_URL: str = "https://finnhub.io/api/v1"
    QUOTE_API_KEY: Optional[str] = None
    QUOTE_TIMEOUT_SECONDS: float = 10.0
    QUOTE_MAX_CONCURRENCY: int = 8

    # ======================
    # Scheduler
    # ======================
    SCHEDULER_ENABLED: bool = True
    POLL_INTERVAL_SECONDS: int = 60

    # ======================
    # Identity provider (passwordless login)
    # ======================
    AUTH_BASE_URL: str = "http://localhost:9999/auth/v1"
    AUTH_API_KEY: Optional[str] = None
    AUTH_REDIRECT_URL: Optional[str] = None
    AUTH_TIMEOUT_SECONDS: float = 10.0

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
