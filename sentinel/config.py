from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "SENTINEL_",
        "extra": "ignore",
    }

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    # Logging
    log_level: str = "INFO"

    # Storage
    store_backend: str = "sqlite"  # "memory" | "json" | "sqlite"
    data_dir: Path = Path("data")
    seed_file: Path = Path("monitors.yaml")

    # Scheduler
    tick_seconds: float = Field(default=5.0, ge=1, le=10)
    max_concurrency: int = Field(default=5, ge=1)
    check_timeout: float = 10.0  # seconds per HEAD request
    default_interval: int = Field(default=3600, ge=10)  # used until settings are saved

    # Shared-password gate (empty = open, dev mode)
    app_password: str = ""
    secret_key: str = "change-this-secret"

    # Notifications (optional)
    slack_webhook_url: str = ""
    discord_webhook_url: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""


settings = Settings()
