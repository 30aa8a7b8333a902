"""
config.py — Runtime settings for the cost prediction tooling.

Values come from environment variables (a local .env file is loaded first).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DB_PATH = Path(__file__).resolve().parent.parent / "data" / "construction.db"
DEFAULT_DATABASE_URL = f"sqlite:///{DB_PATH}"


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


@dataclass
class Settings:
    """Settings read from the environment at construction time."""

    database_url: str = field(
        default_factory=lambda: os.getenv("COST_PREDICTION_DB_URL", DEFAULT_DATABASE_URL)
    )
    history_limit: int = field(default_factory=lambda: int(os.getenv("HISTORY_LIMIT", "50")))
    fetch_timeout_seconds: Optional[float] = field(
        default_factory=lambda: _optional_float("FETCH_TIMEOUT_SECONDS")
    )
    fetch_attempts: int = field(default_factory=lambda: int(os.getenv("FETCH_ATTEMPTS", "1")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


settings = Settings()
