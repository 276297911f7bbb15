"""Configuration helpers using environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    APP_NAME: str = "NeuroVol"
    ENVIRONMENT: Literal["dev", "test", "prod"] = "dev"
    LOG_LEVEL: str = "INFO"

    # Packaged reference tables are used when these are unset.
    NORMATIVE_TABLE_PATH: Optional[Path] = None
    ALIAS_TABLE_PATH: Optional[Path] = None

    Z_SCORE_THRESHOLD: float = Field(default=2.0, gt=0)
    ASYMMETRY_THRESHOLD_PCT: float = Field(default=10.0, ge=0, le=100)
    SECTION_HEADERS: Optional[List[str]] = None
    MAX_REPORT_CHARS: int = Field(default=500_000, gt=0)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""

    return Settings()
