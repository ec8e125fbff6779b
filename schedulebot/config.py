"""
Schedule Bot — Centralized configuration.

Loads all settings from .env and validates required keys.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from schedulebot/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Messages starting with this are treated as commands, e.g. "?add mon 9"
    COMMAND_PREFIX: str = "?"

    # SQLite
    DATABASE_PATH: str = "data/schedules.db"

    # Security: empty means everyone may use the bot
    ALLOWED_USER_IDS: list[int] = []

    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("COMMAND_PREFIX")
    @classmethod
    def check_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("COMMAND_PREFIX must not be empty")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        COMMAND_PREFIX=os.getenv("COMMAND_PREFIX", "?"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/schedules.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton — imported by the gateway modules as:
#   from schedulebot.config import settings
settings = _load_settings()
