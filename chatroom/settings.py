from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv


load_dotenv()


def _env_bool(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings loaded from environment variables (and .env).

    Reaper timing is expressed in seconds here; the engine converts the
    inactivity threshold to milliseconds to match lastStatus.
    """

    def __init__(self):
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.database_url: str = os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///./chatroom.db"
        )
        self.sql_echo: bool = _env_bool("SQL_ECHO")
        self.reaper_interval: float = float(os.getenv("REAPER_INTERVAL_SECONDS", "15"))
        self.inactivity_threshold: float = float(
            os.getenv("INACTIVITY_THRESHOLD_SECONDS", "10")
        )
        self.reaper_item_timeout: float = float(
            os.getenv("REAPER_ITEM_TIMEOUT_SECONDS", "5")
        )
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "5000"))

    @property
    def is_dev(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
