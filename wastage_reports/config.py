from __future__ import annotations

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    db_path: str = Field("wastage.db", alias="WASTAGE_DB")
    reports_dir: str = Field("reports", alias="REPORTS_DIR")
    export_dir: str = Field("csv", alias="EXPORT_DIR")
    tick_seconds: int = Field(10, alias="TICK_SECONDS")
    log_file: str = Field("wastage_reports.log", alias="LOG_FILE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator("db_path", "reports_dir", "export_dir")
    @classmethod
    def _path_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("path settings must be non-empty strings")
        return v.strip()

    @field_validator("tick_seconds")
    @classmethod
    def _tick_divides_minute(cls, v: int) -> int:
        # A tick that does not divide 60 drifts across minute boundaries.
        if v <= 0 or 60 % v:
            raise ValueError("TICK_SECONDS must be a positive divisor of 60")
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


@lru_cache()
def get_settings() -> Settings:
    """Return application settings loaded from the environment."""
    return Settings()  # type: ignore[call-arg]


__all__ = ["Settings", "get_settings"]
