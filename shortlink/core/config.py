"""Application configuration module.

This module contains settings for the short-link engine,
loaded from environment variables with appropriate defaults.
"""

from __future__ import annotations

import string
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import logging

from pydantic import computed_field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Characters that are easy to confuse when read aloud or typed by hand
AMBIGUOUS_CHARS = "0O1lI"


class EnvironmentType(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Engine settings loaded from environment variables with defaults.

    Settings are loaded from environment variables, with fallback to
    values in .env file if present, and finally to the default values
    specified here.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    ENVIRONMENT: EnvironmentType = EnvironmentType.DEVELOPMENT

    APP_NAME: str = "Short Link Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Short code generation
    CODE_LENGTH: int = 7  # Starting length for generated codes
    CODE_MAX_LENGTH: int = 16  # Generation gives up past this length
    CODE_MAX_COLLISIONS: int = 5  # Consecutive collisions before the length grows
    CODE_ALPHABET: str = "".join(
        c for c in string.ascii_letters + string.digits if c not in AMBIGUOUS_CHARS
    )

    # Custom aliases
    ALIAS_MIN_LENGTH: int = 3
    ALIAS_MAX_LENGTH: int = 50

    # Creation retries after a uniqueness conflict on the code
    CREATION_MAX_ATTEMPTS: int = 2

    # Cache TTLs (seconds)
    RESOLUTION_CACHE_TTL: int = 86400
    ANALYTICS_CACHE_TTL: int = 3600
    ANALYTICS_CACHE_MAX_ITEMS: int = 100  # Raw click lists above this are not cached
    GEO_CACHE_TTL: int = 30 * 24 * 3600

    # Analytics
    ANALYTICS_ENABLED: bool = True
    ANALYTICS_DEFAULT_LIMIT: int = 100
    DASHBOARD_WINDOW_DAYS: int = 7  # "Recent clicks" on the dashboard
    DASHBOARD_TOP_LINKS: int = 5

    # Link listing
    LIST_DEFAULT_LIMIT: int = 10
    LIST_MAX_LIMIT: int = 100

    # Click recording worker
    CLICK_QUEUE_MAXSIZE: int = 1000
    CLICK_WORKERS: int = 2
    CLICK_DRAIN_TIMEOUT: float = 5.0

    # IP geolocation
    IPINFO_API_KEY: Optional[str] = None
    IPINFO_BASE_URL: str = "https://ipinfo.io"
    IPINFO_TIMEOUT: float = 2.0

    # PostgreSQL settings
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "shortlink"
    DATABASE_URL: Optional[str] = None  # Full override, e.g. sqlite+aiosqlite:///./dev.db

    # PostgreSQL pool settings
    POSTGRES_POOL_SIZE: int = 20
    POSTGRES_POOL_MAX_OVERFLOW: int = 10
    POSTGRES_POOL_TIMEOUT: int = 30
    POSTGRES_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False

    # Redis settings
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0
    REDIS_URL: Optional[str] = None  # Full override
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_SOCKET_TIMEOUT: float = 0.5

    # Logging configuration
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILENAME: str = "shortlink.log"
    LOG_TO_FILE: bool = True
    LOG_ROTATION: str = "10 MB"
    LOG_RETENTION: str = "7 days"
    LOG_FORMAT: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name} | {message}"
    LOG_JSON: bool = True

    @field_validator("CODE_LENGTH", "CODE_MAX_COLLISIONS", "CREATION_MAX_ATTEMPTS", "CLICK_WORKERS")
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("CODE_MAX_LENGTH")
    def validate_max_length(cls, v: int, info: ValidationInfo) -> int:
        start = info.data.get("CODE_LENGTH", 7)
        if v < start:
            raise ValueError("CODE_MAX_LENGTH must not be smaller than CODE_LENGTH")
        return v

    @field_validator("CODE_ALPHABET")
    def validate_alphabet(cls, v: str) -> str:
        if len(set(v)) < 2:
            raise ValueError("CODE_ALPHABET needs at least two distinct characters")
        if any(c in AMBIGUOUS_CHARS for c in v):
            logger.warning("CODE_ALPHABET contains look-alike characters")
        return v

    @field_validator("IPINFO_API_KEY", "DATABASE_URL", "REDIS_URL", mode="before")
    def empty_to_none(cls, v: Any) -> Optional[str]:
        """Treat empty environment values as unset."""
        if v == "":
            return None
        return v

    @computed_field
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Construct the SQLAlchemy database URI from settings or use override."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @computed_field
    def REDIS_URI(self) -> str:
        """Construct the Redis URI from settings or use override."""
        if self.REDIS_URL:
            return self.REDIS_URL
        password_part = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{password_part}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Create a singleton instance of the settings
settings = Settings()
