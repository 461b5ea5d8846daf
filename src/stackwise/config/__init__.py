"""
stackwise configuration system.

Provides:
- Pydantic-based settings (environment variables, .env files)
- Per-project and user-level YAML config files
"""

from stackwise.config.loader import get_config_path, load_settings
from stackwise.config.settings import Settings

__all__ = [
    "Settings",
    "get_config_path",
    "load_settings",
]
