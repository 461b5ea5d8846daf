"""
Configuration file loading and merging.

Search order:
1. Explicit path (--config flag)
2. .stackwise/config.yaml (project root)
3. ~/.stackwise/config.yaml (user home)
4. Default configuration

Environment variables always win over values read from a file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import structlog
import yaml

from stackwise.config.settings import Settings
from stackwise.core.errors import ConfigurationError

logger = structlog.get_logger()


def get_config_path(explicit_path: str | Path | None = None) -> Path | None:
    """
    Find the configuration file to use.

    Returns:
        Path to config file or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigurationError(f"Config file not found: {path}", {"path": str(path)})

    cwd_config = Path.cwd() / ".stackwise" / "config.yaml"
    if cwd_config.exists():
        return cwd_config

    home_config = Path.home() / ".stackwise" / "config.yaml"
    if home_config.exists():
        return home_config

    return None


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read config file: {e}", {"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a mapping", {"path": str(path)})

    logger.debug("loaded_config", path=str(path), keys=sorted(data))
    return data


def load_settings(path: str | Path | None = None) -> Settings:
    """
    Build settings from environment variables layered over a config file.

    Args:
        path: Optional explicit config file path

    Returns:
        Settings instance
    """
    from_env = Settings()
    config_path = get_config_path(path)
    if config_path is None:
        return from_env

    file_data = _read_config_file(config_path)
    env_values = {name: getattr(from_env, name) for name in from_env.model_fields_set}

    try:
        return Settings(**{**file_data, **env_values})
    except pydantic.ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {e.error_count()} error(s)",
            {"path": str(config_path), "errors": [err["msg"] for err in e.errors()]},
        ) from e
