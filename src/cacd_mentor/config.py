"""
Configuration settings for the mentor.

Values come from CACD_* environment variables or a local .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from cacd_mentor.db import DEFAULT_DB_PATH


class Settings(BaseSettings):
    gemini_api_key: Optional[str] = None
    db_path: str = DEFAULT_DB_PATH
    work_minutes: int = 25
    break_minutes: int = 5
    grading_model: str = "gemini-2.5-pro"
    explain_model: str = "gemini-2.5-flash"
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(env_prefix="CACD_", env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
