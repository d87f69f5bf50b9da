"""Settings repository for app-level key/value pairs."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.settings import AUTO_SYNC_KEY, DEBUG_DATE_KEY, AppSetting


class SQLModelSettingsRepository:
    """SQLModel-based settings repository."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[AppSetting]:
        with self.session_factory() as session:
            setting = session.exec(select(AppSetting).where(AppSetting.key == key)).first()
            if setting:
                session.expunge(setting)
            return setting

    def set(self, key: str, value: str, description: str | None = None) -> AppSetting:
        with self.session_factory() as session:
            setting = session.exec(select(AppSetting).where(AppSetting.key == key)).first()
            if setting:
                setting.value = value
                setting.description = description
            else:
                setting = AppSetting(key=key, value=value, description=description)
                session.add(setting)
            session.commit()
            session.expunge(setting)
            return setting

    def delete(self, key: str) -> None:
        with self.session_factory() as session:
            setting = session.exec(select(AppSetting).where(AppSetting.key == key)).first()
            if setting:
                session.delete(setting)
                session.commit()

    def get_debug_date(self) -> Optional[date]:
        """Persisted debug "current date", if time travel is active."""
        setting = self.get(DEBUG_DATE_KEY)
        if setting is None:
            return None
        try:
            return date.fromisoformat(setting.value)
        except ValueError:
            return None

    def set_debug_date(self, day: Optional[date]) -> None:
        if day is None:
            self.delete(DEBUG_DATE_KEY)
        else:
            self.set(DEBUG_DATE_KEY, day.isoformat(), "Debug override for the current date")

    def auto_sync_enabled(self) -> bool:
        if setting := self.get(AUTO_SYNC_KEY):
            return setting.value.lower() in ("true", "1", "yes")
        return True  # Default: enabled

    def set_auto_sync_enabled(self, enabled: bool) -> None:
        self.set(AUTO_SYNC_KEY, "true" if enabled else "false", "Automatic metric sync switch")


__all__ = ["SQLModelSettingsRepository"]
