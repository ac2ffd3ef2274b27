"""
meetbook — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from meetbook/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/meetbook.db"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Advisory timezone label for new users and meetings (never used in comparisons)
    DEFAULT_TIMEZONE: str = "Asia/Kolkata"

    # Dashboard query layer
    DEFAULT_PAGE_SIZE: int = 10

    # Per-user lock around check-then-write sequences (off = documented race)
    SERIALIZE_USER_WRITES: bool = False

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        level = str(v).strip().upper() or "INFO"
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v!r}")
        return level

    @field_validator("DEFAULT_PAGE_SIZE", mode="before")
    @classmethod
    def parse_page_size(cls, v: str | int) -> int:
        size = int(v)
        if size < 1:
            raise ValueError("DEFAULT_PAGE_SIZE must be at least 1")
        return size

    @field_validator("SERIALIZE_USER_WRITES", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in _TRUE_VALUES


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/meetbook.db"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        DEFAULT_TIMEZONE=os.getenv("DEFAULT_TIMEZONE", "Asia/Kolkata"),
        DEFAULT_PAGE_SIZE=os.getenv("DEFAULT_PAGE_SIZE", "10"),
        SERIALIZE_USER_WRITES=os.getenv("SERIALIZE_USER_WRITES", "false"),
    )


# Singleton — imported by all other modules as:
#   from meetbook.config import settings
settings = _load_settings()
