"""Application configuration management."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_path: str = "/data/yearsync.db"

    # Server
    public_url: str = "http://localhost:3000"
    log_level: str = "info"

    # Cloud sync
    sync_debounce_seconds: float = 2.0
    sync_log_retention_entries: int = 500
    sync_log_retention_days: int = 90

    # Google Drive appDataFolder
    drive_api_base: str = "https://www.googleapis.com/drive/v3"
    drive_upload_base: str = "https://www.googleapis.com/upload/drive/v3"
    config_filename: str = "yearsync-config.json"
    drive_max_retries: int = 3
    drive_retry_base_delay_seconds: float = 1.0
    drive_request_timeout_seconds: float = 30.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
