"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class ReminderConfig(BaseSettings):
    interval_seconds: int = 300
    min_age_minutes: int = 60
    cooldown_minutes: int = 60
    quick_snooze_hours: int = 2


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/fleet.db"
    bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    group_chat_id: str = ""
    cron_key: str = ""
    webhook_secret: str = ""
    default_reported_by: str = "Dan Miller"
    dialog_ttl_minutes: int = 30
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    rem = ReminderConfig(**y.get("reminders", {}))
    overrides = {
        k: y[k]
        for k in (
            "database_url", "bot_token", "telegram_api_base", "group_chat_id",
            "cron_key", "webhook_secret", "default_reported_by", "dialog_ttl_minutes",
        )
        if k in y
    }
    return Settings(reminders=rem, **overrides)
