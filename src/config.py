"""
ContextFlow — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite file holding the single snapshot slot
    DATABASE_PATH: str = "data/contextflow.db"
    STORAGE_KEY: str = "context_flow_db_v1"

    # Calendar-day keys (nightly plans, "yesterday") are computed in this zone
    TIMEZONE: str = "UTC"

    # Selection thresholds
    NEGLECT_HOURS: int = 48
    STALE_TASK_HOURS: int = 24
    FORGOTTEN_REFINE_HOURS: int = 168

    LOG_LEVEL: str = "WARNING"

    @field_validator(
        "NEGLECT_HOURS", "STALE_TASK_HOURS", "FORGOTTEN_REFINE_HOURS", mode="before",
    )
    @classmethod
    def parse_hours(cls, v: str | int) -> int:
        hours = int(v)
        if hours <= 0:
            raise ValueError(f"threshold must be positive, got {hours}")
        return hours

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone {v!r}") from exc
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.strip().upper() or "WARNING"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/contextflow.db"),
        STORAGE_KEY=os.getenv("STORAGE_KEY", "context_flow_db_v1"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        NEGLECT_HOURS=os.getenv("NEGLECT_HOURS", "48"),
        STALE_TASK_HOURS=os.getenv("STALE_TASK_HOURS", "24"),
        FORGOTTEN_REFINE_HOURS=os.getenv("FORGOTTEN_REFINE_HOURS", "168"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "WARNING"),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
