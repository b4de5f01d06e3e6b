"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Wearlog"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Persistence ---
    # sqlite:///path/to/file.sqlite3, sqlite:///:memory: or postgresql://...
    database_url: str = "sqlite:///wearlog.sqlite3"

    # --- Engine policy ---
    policy_path: str | None = None  # defaults to the bundled policy_config.yaml

    # --- Activity provider ---
    activity_provider: str = "static"  # static | http | apple_health
    activity_provider_url: str | None = None  # required for "http"
    activity_provider_token: str | None = None
    activity_export_path: str | None = None  # export.xml for "apple_health"

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "WEARLOG_",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()
