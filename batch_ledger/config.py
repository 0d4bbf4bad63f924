"""Runtime configuration sourced from environment variables and ``.env``."""
from __future__ import annotations

from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ledger_db_path: str = "data/ledger.db"
    low_stock_threshold: float = 100
    top_products_limit: int = 10
    log_level: str = "INFO"
    log_file: str | None = None


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    try:
        return Settings()
    except ValidationError as exc:
        invalid = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise RuntimeError(
            "Invalid configuration values for: " + ", ".join(invalid)
        ) from exc


__all__ = ["Settings", "get_settings"]
