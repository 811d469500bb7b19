"""Configuration utilities for the motif workflow engine."""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class MotifSettings(BaseSettings):
    """Engine, logging, persistence and HTTP settings, read from `MOTIF_*` variables."""

    model_config = SettingsConfigDict(
        env_prefix="MOTIF_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_name: str = "motif"
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Logger middleware defaults
    logger_prefix: str = "[motif] "
    logger_show_payload: bool = True

    # Where WorkflowStateManager.save()/load() keep exports (.json or .yaml)
    state_path: Path = Path(".motif/state.json")

    api_prefix: str = "/api/v1/motif"


@lru_cache
def get_settings() -> MotifSettings:
    """Return the process-wide MotifSettings, parsed from the environment once."""

    return MotifSettings()
