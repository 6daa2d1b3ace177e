import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

DEFAULT_HOME = Path.home() / ".guildlog"
DEFAULT_ICON_CATALOG_URL = (
    "https://api.github.com/repos/RoboMechE/MHW-Database/contents/monster/assets/icons?ref=gh-pages"
)
DEFAULT_ICON_ASSETS_URL = "https://raw.githubusercontent.com/RoboMechE/MHW-Database/gh-pages/monster/assets/icons"


class Settings(BaseSettings):
    home_dir: Path = Field(DEFAULT_HOME, alias="GUILDLOG_HOME")
    database_url: Optional[str] = Field(None, alias="GUILDLOG_DATABASE_URL")
    database_pool_size: int = Field(5, alias="GUILDLOG_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(5, alias="GUILDLOG_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="GUILDLOG_DATABASE_ECHO")
    auto_create_schema: bool = Field(True, alias="GUILDLOG_AUTO_CREATE_SCHEMA")
    session_path: Optional[Path] = Field(None, alias="GUILDLOG_SESSION_PATH")
    icon_catalog_url: str = Field(DEFAULT_ICON_CATALOG_URL, alias="GUILDLOG_ICON_CATALOG_URL")
    icon_assets_url: str = Field(DEFAULT_ICON_ASSETS_URL, alias="GUILDLOG_ICON_ASSETS_URL")
    icon_fetch_timeout_ms: int = Field(5000, alias="GUILDLOG_ICON_FETCH_TIMEOUT_MS")
    lookup_debounce_ms: int = Field(500, alias="GUILDLOG_LOOKUP_DEBOUNCE_MS")
    sync_poll_interval_ms: int = Field(1000, alias="GUILDLOG_SYNC_POLL_INTERVAL_MS")
    sync_max_backoff_ms: int = Field(30000, alias="GUILDLOG_SYNC_MAX_BACKOFF_MS")
    default_avatar: str = Field("Rathalos_Icon.webp", alias="GUILDLOG_DEFAULT_AVATAR")
    default_quest_icon: str = Field("Great_Jagras_Icon.webp", alias="GUILDLOG_DEFAULT_QUEST_ICON")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.home_dir / 'guild.db'}"

    @property
    def resolved_session_path(self) -> Path:
        return self.session_path or self.home_dir / "session.json"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid guild log configuration: {exc}") from exc
