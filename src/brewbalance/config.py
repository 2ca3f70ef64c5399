"""Environment configuration for BrewBalance."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

SQLITE_FILE_NAME = os.environ.get("BREWBALANCE_SQLITE", "brewbalance.db")
_log_path = os.environ.get("BREWBALANCE_LOG", "").strip()
LOG_FILE: Optional[Path] = Path(_log_path) if _log_path else None
DEFAULT_CURRENCY = os.environ.get("BREWBALANCE_CURRENCY", "JPY")
STATS_HORIZON_YEARS = int(os.environ.get("BREWBALANCE_HORIZON_YEARS", "5"))

SETTINGS_KEY = "brewbalance_settings"
ENTRIES_KEY = "brewbalance_entries"


def database_url(file_name: str | None = None) -> str:
    return f"sqlite:///{file_name or SQLITE_FILE_NAME}"


__all__ = [
    "SQLITE_FILE_NAME",
    "LOG_FILE",
    "DEFAULT_CURRENCY",
    "STATS_HORIZON_YEARS",
    "SETTINGS_KEY",
    "ENTRIES_KEY",
    "database_url",
]
