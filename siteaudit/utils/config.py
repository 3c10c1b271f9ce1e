"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database (DATABASE_URL wins, then POSTGRES_URL, then a local SQLite file)
    DATABASE_URL: Optional[str] = None
    POSTGRES_URL: Optional[str] = None
    SQLITE_PATH: str = "siteaudit_dev.db"
    SQL_DEBUG: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Signal provider (external page-analysis collaborator)
    SIGNAL_PROVIDER_URL: str = "http://localhost:8100"
    SIGNAL_PROVIDER_API_KEY: Optional[str] = None

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Limits
    DAILY_ANALYSIS_LIMIT: int = 20

    # Timeouts
    SIGNAL_TIMEOUT_SECONDS: float = 30.0

    # Tracking
    TRACKING_REDIRECT_URL: str = "/contact"
    TRACKING_CODE_BYTES: int = 18

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
