from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # SendGrid settings
    SENDGRID_API_KEY: str | None = None
    SENDGRID_API_BASE_URL: str = "https://api.sendgrid.com"
    SENDGRID_REQUEST_TIMEOUT: float = 30.0
    # Custom field holding the comma-separated tag text (field name or id, e.g. "e1_T")
    SENDGRID_TAGS_FIELD: str = "tags"

    # =================================================================
    # CONTACT EXPORT SETTINGS
    # =================================================================
    EXPORT_POLL_INTERVAL_SECONDS: float = 1.0
    EXPORT_MAX_POLL_ATTEMPTS: int = 10

    # =================================================================
    # CACHE SETTINGS - memory store when REDIS_URL is unset
    # =================================================================
    REDIS_URL: str | None = None
    CACHE_KEY_PREFIX: str = "sagan"
    CONTACT_CACHE_MAX_AGE_SECONDS: int = 3600  # 1 hour
    CONTACT_CACHE_STALE_AFTER_SECONDS: int = 600  # 10 minutes
    PENDING_JOBS_LIMIT: int = 20

    # =================================================================
    # WORKER SETTINGS
    # =================================================================
    CONTACTS_REFRESH_INTERVAL_SECONDS: int = 600
    PENDING_JOBS_REFRESH_INTERVAL_SECONDS: int = 30

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def sendgrid_configured(self) -> bool:
        return bool(self.SENDGRID_API_KEY and self.SENDGRID_API_KEY.strip())

    def cache_key(self, name: str) -> str:
        """Build a cache key, e.g. 'contacts' -> 'sagan_contacts'."""
        prefix = self.CACHE_KEY_PREFIX.strip("_")
        return f"{prefix}_{name}" if prefix else name

    def get_export_config(self) -> dict:
        """Get export polling configuration."""
        return {
            "poll_interval": max(0.0, self.EXPORT_POLL_INTERVAL_SECONDS),
            "max_attempts": max(1, self.EXPORT_MAX_POLL_ATTEMPTS),
        }


settings = Settings()
