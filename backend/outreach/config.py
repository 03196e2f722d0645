"""
Configuration management for the outreach backend
Environment-based settings with secure defaults
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "outreach"
    APP_ENV: str = "development"  # development, staging, production
    DEBUG: bool = False
    API_VERSION: str = "v1"
    SECRET_KEY: str  # Required - no default for security

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str  # Required
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_NULL_POOL: bool = False  # one connection per session (Lambda, short-lived workers)

    # JWT Auth
    JWT_SECRET_KEY: str  # Required
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # LLM Execution Settings
    LLM_DEFAULT_TEMPERATURE: float = 0.1
    LLM_DEFAULT_MAX_TOKENS: int = 500
    LLM_REQUEST_TIMEOUT: int = 60  # seconds

    # Key selection cache
    KEY_CACHE_TTL_SECONDS: int = 60

    # Campaign pipeline
    CAMPAIGN_SEND_DELAY_SECONDS: float = 1.0
    DEFAULT_SENDER_NAME: str = "Outreach"

    # Progress streaming
    PROGRESS_POLL_INTERVAL_SECONDS: float = 0.1
    PROGRESS_COMPLETION_GRACE_SECONDS: float = 0.5
    PROGRESS_SESSION_TTL_SECONDS: int = 3600

    # SMTP defaults (used when a user has no stored config)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_TIMEOUT: int = 60

    # Attachment storage
    STORAGE_ROOT: str = "./data/attachments"
    STORAGE_PUBLIC_URL: str = "http://localhost:8000/api/v1/attachments/download"
    MAX_USER_STORAGE_MB: int = 50
    MAX_FILE_SIZE_MB: int = 10

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Shared secret for externally triggered maintenance (cron)
    CRON_SECRET: Optional[str] = None

    # Encryption (for stored API keys and SMTP passwords)
    ENCRYPTION_KEY: str  # Required - 32 bytes base64 encoded

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str) -> str:
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader"""
    return Settings()
