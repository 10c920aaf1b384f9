"""
File Update Monitor Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


ErrorPolicy = Literal["log", "stop"]


class MonitorSettings(BaseSettings):
    """Directory monitor configuration settings."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_")

    debounce_interval_ms: int = Field(default=1000, ge=0, description="Quiet period per file")
    recursive: bool = Field(default=True)
    queue_capacity: int = Field(default=1, ge=1, description="Pending provider events")
    poll_interval_seconds: float = Field(default=0.1, gt=0.0, le=5.0)
    error_policy: ErrorPolicy = Field(
        default="log",
        description="What a failing callback does to the watch loop",
    )
    shutdown_timeout_seconds: float = Field(default=5.0, ge=0.0)

    @field_validator("error_policy", mode="before")
    @classmethod
    def normalize_error_policy(cls, v: str) -> str:
        """Accept policy names in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="json")  # "json" or "console"
    file_path: Path | None = Field(default=None)


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="FileUpdateMonitor")
    app_version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    """
    return Settings()
