import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class SchedulerSettings(BaseSettings):
    """
    Runtime settings, read from ``TASK_SCHEDULER_*`` environment variables and
    an optional ``.env`` file. CLI flags override them.
    """
    model_config = SettingsConfigDict(
        env_prefix="TASK_SCHEDULER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    schedule: Optional[str] = Field(None, description="Import path of the schedule, 'package.module:attribute'")
    cache_url: str = Field("sqlite+aiosqlite:///task_scheduler_cache.db", description="Shared cache for mutexes and the interrupt flag")
    cache_prefix: str = Field("", description="Prefix for every cache key")
    timezone: Optional[str] = Field(None, description="Default timezone of tasks that set none")
    environment: str = Field("production", description="Name of the running environment")
    maintenance_file: str = Field("var/.maintenance.flag", description="The application is down for maintenance while this file exists")
    poll_interval: float = Field(0.1, gt=0, description="Seconds between repeat-loop polls")
    output: str = Field(os.devnull, description="Default output file of shell tasks")
    finish_command: Optional[str] = Field(None, description="Command line background runs report completion through")
    log_level: str = Field("INFO")

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, got '{v}'")
        return upper

    def is_down_for_maintenance(self) -> bool:
        return Path(self.maintenance_file).exists()


@lru_cache(maxsize=1)
def get_settings() -> SchedulerSettings:
    return SchedulerSettings()
