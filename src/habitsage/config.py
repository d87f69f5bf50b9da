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
    """Read a positive number from the environment, falling back on bad input."""

    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "HabitSage"
    DB_FILENAME = "habitsage.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    DEFAULT_SYNC_INTERVAL_SECONDS = 120.0
    DEFAULT_SYNC_COOLDOWN_SECONDS = 30.0
    DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
    DEFAULT_REMINDER_DEBOUNCE_SECONDS = 1.0

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("HABITSAGE_DEV_MODE", default=True)
        self.LOG_LEVEL = os.getenv("HABITSAGE_LOG_LEVEL", "INFO").strip().upper()
        self.DATABASE_URL = os.getenv("HABITSAGE_DATABASE_URL", self._build_sqlite_url())
        self.SYNC_INTERVAL_SECONDS = _env_float(
            "HABITSAGE_SYNC_INTERVAL_SECONDS", self.DEFAULT_SYNC_INTERVAL_SECONDS
        )
        self.SYNC_COOLDOWN_SECONDS = _env_float(
            "HABITSAGE_SYNC_COOLDOWN_SECONDS", self.DEFAULT_SYNC_COOLDOWN_SECONDS
        )
        self.FETCH_TIMEOUT_SECONDS = _env_float(
            "HABITSAGE_FETCH_TIMEOUT_SECONDS", self.DEFAULT_FETCH_TIMEOUT_SECONDS
        )
        self.REMINDER_DEBOUNCE_SECONDS = _env_float(
            "HABITSAGE_REMINDER_DEBOUNCE_SECONDS", self.DEFAULT_REMINDER_DEBOUNCE_SECONDS
        )

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("HABITSAGE_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected install locations fall back to per-user storage.
            fallback_path = Path.home() / f".{self.APP_NAME.lower()}"
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        engine_options: dict[str, Any] = {}
        if self.is_sqlite:
            # APScheduler jobs touch the store from worker threads.
            engine_options["connect_args"] = {"check_same_thread": False}
        return engine_options


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestingConfig(BaseConfig):
    """Configuration for automated tests rooted in a throwaway directory."""

    __test__ = False
    DEBUG = False
    TESTING = True

    def __init__(self, data_dir: Path) -> None:
        self._data_dir_override = Path(data_dir)
        super().__init__()
        self.DEV_MODE = True
        self.DATABASE_URL = self._build_sqlite_url()

    def _resolve_data_dir(self) -> Path:
        self._data_dir_override.mkdir(parents=True, exist_ok=True)
        return self._data_dir_override.resolve()
