from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from functools import lru_cache
import os

DEFAULT_DATA_DIR = "./data/"


class Settings(BaseSettings):
    """Database lifecycle settings loaded from the environment and .env (or custom env file)"""

    # Allow overriding env_file via DBKEEPER_ENV_FILE environment variable
    model_config = SettingsConfigDict(  # type: ignore[misc]
        env_file=os.environ.get('DBKEEPER_ENV_FILE', '.env'),
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # Paths
    DATA_DIR: str = ""  # Overrides the "data-dir" launch argument when set
    DB_FILENAME: str = "app.db"

    # Engine
    DB_ENGINE: str = "sqlite"
    CACHE_SIZE_KB: int = 12000  # Page cache budget, issued as a negative cache_size
    POOL_MAX_IDLE: int = 4

    # Shutdown
    CLOSE_SETTLE_SECONDS: float = 2.0

    # Logging
    SQL_LOG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_CATEGORIES: str = ""

    @property
    def data_dir_override(self) -> Path | None:
        """Return the data directory from the environment, None if unset"""
        if not self.DATA_DIR:
            return None
        return Path(self.DATA_DIR)

    @property
    def engine(self) -> str:
        return self.DB_ENGINE.lower()

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL.upper()

    @property
    def log_categories(self) -> list[str]:
        if not self.LOG_CATEGORIES:
            return []
        return [cat.strip() for cat in self.LOG_CATEGORIES.split(',')]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
