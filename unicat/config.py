"""Application settings loaded from the environment.

Usage:
    from unicat.config import get_settings
    settings = get_settings()
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from ``UNICAT_*`` variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="UNICAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite:///./unicat.db",
        description="SQLAlchemy database URL",
    )
    log_level: str = "INFO"

    # Import pipeline
    import_chunk_size: int = Field(default=50, ge=1, le=1000)
    default_duration_months: int = 48
    default_total_credits: int = 120
    max_upload_bytes: int = 10 * 1024 * 1024

    # Navigation projection
    navigation_anchor_term: str = "academic"
    navigation_menu_location: str = "main"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
