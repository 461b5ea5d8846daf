"""Persistence of applied resource group state."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url

from stackwise.config.settings import Settings
from stackwise.core.errors import ConfigurationError
from stackwise.state.base import StateStore, snapshot
from stackwise.state.file import FileStateStore
from stackwise.state.memory import InMemoryStateStore
from stackwise.state.models import AppliedState
from stackwise.state.sql import SQLStateStore


def create_state_store(settings: Settings) -> StateStore:
    """Build the state store selected by ``settings.state_backend``."""
    if settings.state_backend == "memory":
        return InMemoryStateStore()
    if settings.state_backend == "file":
        return FileStateStore(settings.state_dir)
    if settings.state_backend == "sql":
        url = make_url(settings.database_url)
        if url.drivername.startswith("sqlite") and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return SQLStateStore(settings.database_url)
    raise ConfigurationError(f"Unknown state backend '{settings.state_backend}'")


__all__ = [
    "AppliedState",
    "FileStateStore",
    "InMemoryStateStore",
    "SQLStateStore",
    "StateStore",
    "create_state_store",
    "snapshot",
]
