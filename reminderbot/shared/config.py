"""Configuration management using Pydantic Settings."""

from __future__ import annotations

import json
import os
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# Environment variable naming the dotenv-style file to load settings from
CONFIG_FILE_ENV = "CONFIG_FILE"
DEFAULT_CONFIG_FILE = ".env"


def parse_list(v: object) -> list[str]:
    """Parse a list from either a JSON array string, comma-separated string, or list."""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return []
        if v.startswith("["):
            return [str(item) for item in json.loads(v)]
        return [item.strip() for item in v.split(",") if item.strip()]
    return list(v)  # type: ignore[arg-type]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and the config file."""

    # "api" = long-running bot service, "cli" = one-shot command
    run_mode: str = "cli"

    # Discord
    discord_client_secret: str = ""
    # Defaults used by CLI commands that create notifications directly
    discord_channel_id: str = ""
    discord_user_id: str = ""

    # LLM
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 15.0
    llm_max_attempts: int = 2

    # Storage
    database_url: str = "sqlite+aiosqlite:///./data/reminderbot.db"

    # Event bus
    event_bus_capacity: int = 100
    # Discord expects an interaction response within 3 seconds
    publish_timeout_seconds: float = 2.0

    # Pending confirmations
    pending_ttl_minutes: int = 5
    pending_sweep_interval_seconds: float = 30.0

    # Intent routing: the todo branch is optional
    enable_todo_intent: bool = True

    # Reconciliation loops
    notification_loop_interval_seconds: float = 5.0
    # Stored as str: comma-separated or JSON array. Use parse_list() at the point of use.
    notification_lead_minutes: str = "1440,60"
    calendar_loop_interval_seconds: float = 60.0
    calendar_lead_minutes: int = 15
    todo_summary_cron: str = "0 7 * * *"
    timezone: str = "America/New_York"

    # HTTP surface for api mode
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = SettingsConfigDict(env_file=DEFAULT_CONFIG_FILE, extra="ignore")

    @property
    def lead_minutes(self) -> list[int]:
        """Lead times before an event at which deliveries are scheduled."""
        return sorted({int(v) for v in parse_list(self.notification_lead_minutes)}, reverse=True)


def load_settings(config_file: str | None = None) -> Settings:
    """Build settings from the environment plus the config file.

    The file path comes from *config_file*, then the ``CONFIG_FILE`` env var,
    then ``.env``. A missing file is not an error; env vars still apply.
    """
    path = config_file or os.environ.get(CONFIG_FILE_ENV) or DEFAULT_CONFIG_FILE
    return Settings(_env_file=path)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return load_settings()
