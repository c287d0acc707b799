"""Application settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables with CRAGLINE_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="CRAGLINE_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Core ---
    app_version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"

    # --- Document store ---
    store_backend: str = "memory"  # memory | firestore
    firestore_project: str | None = None
    firestore_database: str = "(default)"

    # --- Feed ---
    feed_page_size: int = 10
    featured_fallback_limit: int = 10

    # --- Search ---
    search_min_query_length: int = 2

    # --- Notifications ---
    notification_fetch_limit: int = 50

    # --- Passes ---
    pass_wallet_path: str = "~/.cragline/passes.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
