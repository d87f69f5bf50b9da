"""Application-level settings stored in the database."""

from __future__ import annotations

from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

DEBUG_DATE_KEY = "debug_current_date"
AUTO_SYNC_KEY = "auto_sync_enabled"


class AppSetting(SQLModel, table=True):
    """Key-value storage for runtime switches such as the debug date override."""

    __tablename__: ClassVar[str] = "app_setting"

    key: str = Field(primary_key=True, max_length=64)
    value: str = Field(nullable=False, max_length=255)
    description: Optional[str] = Field(default=None, max_length=255)
