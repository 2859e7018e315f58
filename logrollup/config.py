"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the log rollup API."""

    app_name: str = "Log Rollup"
    app_version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    max_request_body_bytes: int = 4_194_304
    max_ingest_lines: int = 5000
    max_reported_errors: int = 50
    default_query_limit: int = 5
    max_query_limit: int = 1440
    window_selection_strategy: str = "adaptive"
    ingestion_max_reason_labels: int = 64
    access_log_path: str | None = None
    replay_batch_size: int = 1000
    admin_api_token: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings so env parsing only happens once."""

    return Settings()
