from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- Core ----
    PROJECT_NAME: str = "Bitespeed Contact Reconciliation API"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # ---- Database ----
    DATABASE_PATH: str = "contacts.db"
    # Seconds a writer waits on the SQLite write lock before giving up
    DB_TIMEOUT: float = 5.0

    # ---- Server ----
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
