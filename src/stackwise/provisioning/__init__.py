"""Provisioning backends and built-in registrations."""

from __future__ import annotations

from typing import Any

# Import built-in backends for side effects (registration)
from stackwise.provisioning import http as _http  # noqa: F401
from stackwise.provisioning import memory as _memory  # noqa: F401
from stackwise.config.settings import Settings
from stackwise.provisioning.base import ProvisioningBackend
from stackwise.provisioning.http import HttpProvisioningBackend
from stackwise.provisioning.memory import InMemoryBackend
from stackwise.provisioning.registry import (
    create_backend,
    list_backends,
    register_backend,
)


def create_backend_from_settings(settings: Settings) -> Any:
    """Instantiate the backend named by ``settings.provisioning_backend``."""
    return create_backend(
        settings.provisioning_backend,
        url=settings.provisioning_url,
        token=settings.provisioning_token,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
    )


__all__ = [
    "HttpProvisioningBackend",
    "InMemoryBackend",
    "ProvisioningBackend",
    "create_backend",
    "create_backend_from_settings",
    "list_backends",
    "register_backend",
]
