"""
PR Journal Sync - Configuration
================================

Environment-driven settings for the API, the credential relay and the
three upstream services (GitHub, the work journal, Anthropic).
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

INSECURE_JWT_SECRET = "CHANGE-ME-IN-PRODUCTION-USE-LONG-RANDOM-STRING"


class Settings(BaseSettings):
    """Service settings. Every key can be overridden from the environment or .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Service
    # ==========================================================================
    APP_NAME: str = "PR Journal Sync"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False

    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: list[str] = ["http://localhost:3001"]

    # ==========================================================================
    # Persistence
    # ==========================================================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./journal_sync.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    # ==========================================================================
    # Sessions
    # ==========================================================================
    JWT_SECRET: str = INSECURE_JWT_SECRET
    REFRESH_TOKEN_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_MIN_LENGTH: int = 6

    # Any address on DEMO_LOGIN_DOMAIN logs in and is created on the fly.
    # Development and test only.
    DEMO_LOGIN_ENABLED: bool = False
    DEMO_LOGIN_DOMAIN: str = "example.com"
    DEMO_PASSWORD_MIN_LENGTH: int = 6

    # Secret the AES key for journal credentials is derived from
    ENCRYPTION_KEY: Optional[str] = None

    # ==========================================================================
    # Upstream: GitHub
    # ==========================================================================
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TIMEOUT: float = 30.0
    GITHUB_MAX_RETRIES: int = 3
    GITHUB_PER_PAGE: int = 30

    # ==========================================================================
    # Upstream: Work Journal
    # ==========================================================================
    JOURNAL_ORIGIN: str = "http://localhost:4000"
    JOURNAL_TIMEOUT: float = 30.0

    # ==========================================================================
    # Upstream: Anthropic
    # ==========================================================================
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-opus-20240229"
    ANTHROPIC_MAX_TOKENS: int = 1000
    ANTHROPIC_TIMEOUT: float = 60.0
    SUMMARY_PATCH_MAX_CHARS: int = 2000

    @field_validator("GITHUB_API_URL", "JOURNAL_ORIGIN")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def check_production_secrets(self) -> "Settings":
        if self.ENVIRONMENT == "production" and self.JWT_SECRET == INSECURE_JWT_SECRET:
            raise ValueError("JWT_SECRET must be set in production")
        if self.ENVIRONMENT == "production" and self.DEMO_LOGIN_ENABLED:
            raise ValueError("DEMO_LOGIN_ENABLED is not allowed in production")
        return self

    # ==========================================================================
    # Derived
    # ==========================================================================
    @computed_field  # type: ignore[misc]
    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @computed_field  # type: ignore[misc]
    @property
    def refresh_secret(self) -> str:
        return self.REFRESH_TOKEN_SECRET or self.JWT_SECRET

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_test(self) -> bool:
        return self.ENVIRONMENT == "test"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
