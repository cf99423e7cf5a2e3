from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "CMS Sync"
    version: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_DATABASE_DSN: str = "sqlite:////tmp/cms_sync.db"
    REDIS_URL: str = "redis://localhost:6379"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Upstream CMS requests
    CMS_REQUEST_TIMEOUT_SECONDS: float = 30.0
    CONTENTFUL_CDN_URL: str = "https://cdn.contentful.com"
    CONTENTFUL_MANAGEMENT_URL: str = "https://api.contentful.com"

    # Sync runs
    SYNC_PAGE_SIZE: int = 100
    SYNC_MAX_PAGES: int = 1000
    SYNC_RUN_TIMEOUT_MINUTES: int = 120

    # Inbound webhooks
    WEBHOOK_SIGNATURE_HEADER: str = "X-Webhook-Signature"
    REQUIRE_WEBHOOK_SIGNATURE: bool = False

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @field_validator("SYNC_PAGE_SIZE", "SYNC_MAX_PAGES")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v


settings = Settings()
