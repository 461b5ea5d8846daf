from __future__ import annotations

from typing import Any, Dict, Mapping

import structlog

from stackwise.clients.base import BaseHTTPClient, PermanentHTTPError
from stackwise.core.errors import ConfigurationError
from stackwise.provisioning.registry import register_backend
from stackwise.specs.models import Scalar

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "stackwise-provisioning-http/0.1.0"


class HttpProvisioningBackend(BaseHTTPClient):
    """Provisioning backend that delegates to a remote provisioning service.

    ``PUT /resource-groups/{name}`` with ``{"inputs": {...}}`` converges a
    group and answers ``{"outputs": {...}}``. ``DELETE`` removes it; a 404
    means it is already gone.
    """

    name = "http"

    def __init__(
        self,
        url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
    ) -> None:
        super().__init__(
            url,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )
        self._token = token

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": DEFAULT_USER_AGENT,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def create_or_update(
        self, resource_group: str, inputs: Mapping[str, Scalar]
    ) -> Dict[str, Scalar]:
        data = await self.put(f"/resource-groups/{resource_group}", json={"inputs": dict(inputs)})
        outputs: Any = data.get("outputs", {})
        if not isinstance(outputs, dict):
            raise ValueError(f"Malformed outputs for {resource_group}: expected an object")
        return outputs

    async def destroy(self, resource_group: str) -> None:
        try:
            await self.delete(f"/resource-groups/{resource_group}")
        except PermanentHTTPError as exc:
            if exc.status_code != 404:
                raise
            logger.info("resource_group_already_absent", resource_group=resource_group)


def _create_http_backend(
    *,
    url: str | None = None,
    token: str | None = None,
    timeout: float = 30.0,
    max_retries: int = 3,
    **_: Any,
) -> HttpProvisioningBackend:
    if not url:
        raise ConfigurationError(
            "The http provisioning backend requires a URL (set STACKWISE_PROVISIONING_URL)"
        )
    return HttpProvisioningBackend(url, token, timeout=timeout, max_retries=max_retries)


register_backend(
    "http",
    _create_http_backend,
    version="1.0.0",
    description="Remote provisioning service over HTTP",
)
