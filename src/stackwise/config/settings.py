"""
Application settings using Pydantic.

Provides environment-based configuration loading with STACKWISE_ prefix.
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STACKWISE_",
        extra="ignore",
    )

    # Stack definition
    stack_file: Path = Path("stack.yaml")

    # State store
    state_backend: Literal["memory", "file", "sql"] = "file"
    state_dir: Path = Path(".stackwise/state")
    database_url: str = "sqlite:///.stackwise/state.db"

    # Provisioning backend
    provisioning_backend: str = "memory"
    provisioning_url: str | None = None
    provisioning_token: str | None = None

    # HTTP client settings
    http_timeout: int = 30
    http_max_retries: int = 3

    # Execution
    max_parallel: int = 1

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"
