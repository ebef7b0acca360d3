"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "WealthBook"
    DB_FILENAME = "wealthbook.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}
    TESTING = False

    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("WEALTHBOOK_SECRET_KEY", "replace-me")
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("WEALTHBOOK_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("WEALTHBOOK_DATABASE_URL", self._build_sqlite_url())
        self.TIMEZONE = os.getenv("WEALTHBOOK_TIMEZONE", "Asia/Kolkata")
        self.QUOTE_TIMEOUT = _env_float("WEALTHBOOK_QUOTE_TIMEOUT", 8.0)
        self.QUOTE_BATCH_SIZE = _env_int("WEALTHBOOK_QUOTE_BATCH_SIZE", 10)
        self.MF_NAV_URL = os.getenv("WEALTHBOOK_MF_NAV_URL", "https://api.mfapi.in/mf")
        self.CRON_SECRET = os.getenv("WEALTHBOOK_CRON_SECRET")
        self.OPENAI_API_KEY = os.getenv("WEALTHBOOK_OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY")
        self.AI_MODEL = os.getenv("WEALTHBOOK_AI_MODEL", "gpt-4o-mini")
        self.SIP_TICK_MINUTES = _env_int("WEALTHBOOK_SIP_TICK_MINUTES", 15)
        self.ALERT_HOUR = _env_int("WEALTHBOOK_ALERT_HOUR", 21)
        self.PRICE_ALERT_MINUTES = _env_int("WEALTHBOOK_PRICE_ALERT_MINUTES", 5)
        if not self.DEV_MODE and self.SECRET_KEY == "replace-me":
            raise ValueError("WEALTHBOOK_SECRET_KEY must be set in non-dev mode.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("WEALTHBOOK_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            return {"connect_args": {"check_same_thread": False}}
        return {"pool_pre_ping": True}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True


class TestConfig(BaseConfig):
    """Configuration used by the test-suite; never talks to real providers."""

    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.QUOTE_TIMEOUT = 1.0
