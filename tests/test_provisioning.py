"""Tests for provisioning backends and their registry."""

import json

import pytest
import respx
from httpx import Response

from stackwise.clients.base import PermanentHTTPError, RetryableHTTPError
from stackwise.config.settings import Settings
from stackwise.core.errors import ConfigurationError
from stackwise.provisioning import (
    HttpProvisioningBackend,
    InMemoryBackend,
    ProvisioningBackend,
    create_backend,
    create_backend_from_settings,
    list_backends,
)
from stackwise.provisioning.memory import SimulatedProvisioningError
from stackwise.provisioning.registry import BackendRegistry

BASE_URL = "https://provisioner.example.com"


class TestInMemoryBackend:
    @pytest.mark.asyncio
    async def test_outputs_are_deterministic(self):
        backend = InMemoryBackend()

        first = await backend.create_or_update("network", {"cidr": "10.0.0.0/16"})
        second = await backend.create_or_update("network", {"cidr": "10.0.0.0/16"})

        assert first == second
        assert first["cidr"] == "10.0.0.0/16"
        assert first["id"].startswith("network-")

    @pytest.mark.asyncio
    async def test_injected_failure(self):
        backend = InMemoryBackend(fail_on=["network"])

        with pytest.raises(SimulatedProvisioningError):
            await backend.create_or_update("network", {})

        assert "network" not in backend.resources

    @pytest.mark.asyncio
    async def test_destroy(self):
        backend = InMemoryBackend()
        await backend.create_or_update("network", {})

        await backend.destroy("network")
        await backend.destroy("network")

        assert backend.resources == {}
        assert backend.called_groups("destroy") == ["network", "network"]

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryBackend(), ProvisioningBackend)


class TestRegistry:
    def test_builtin_backends_registered(self):
        names = {spec.name for spec in list_backends()}

        assert {"memory", "http"} <= names

    def test_create_memory_backend(self):
        assert isinstance(create_backend("memory"), InMemoryBackend)

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_backend("terraform-cloud")

        assert "memory" in exc_info.value.details["available"]

    def test_register_custom_backend(self):
        registry = BackendRegistry()
        registry.register("fake", lambda **kwargs: kwargs, description="test double")

        assert registry.create("fake", url="x") == {"url": "x"}
        assert registry.list()[0].description == "test double"

    def test_name_required(self):
        with pytest.raises(ValueError):
            BackendRegistry().register("", lambda **_: None)

    def test_http_backend_requires_url(self):
        with pytest.raises(ConfigurationError, match="STACKWISE_PROVISIONING_URL"):
            create_backend_from_settings(Settings(provisioning_backend="http"))

    def test_http_backend_from_settings(self):
        backend = create_backend_from_settings(
            Settings(provisioning_backend="http", provisioning_url=BASE_URL, provisioning_token="t")
        )

        assert isinstance(backend, HttpProvisioningBackend)
        assert isinstance(backend, ProvisioningBackend)


def http_backend(**kwargs):
    kwargs.setdefault("max_retries", 2)
    return HttpProvisioningBackend(BASE_URL, "test-token", backoff_factor=0, **kwargs)


class TestHttpProvisioningBackend:
    @pytest.mark.asyncio
    async def test_create_or_update(self):
        backend = http_backend()

        with respx.mock:
            route = respx.put(f"{BASE_URL}/resource-groups/network").mock(
                return_value=Response(200, json={"outputs": {"id": "vpc-1"}})
            )

            outputs = await backend.create_or_update("network", {"cidr": "10.0.0.0/16"})

        assert outputs == {"id": "vpc-1"}
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {"inputs": {"cidr": "10.0.0.0/16"}}

    @pytest.mark.asyncio
    async def test_retry_on_503(self):
        backend = http_backend()

        with respx.mock:
            route = respx.put(f"{BASE_URL}/resource-groups/network")
            route.side_effect = [
                Response(503),
                Response(200, json={"outputs": {"id": "vpc-1"}}),
            ]

            outputs = await backend.create_or_update("network", {})

        assert outputs == {"id": "vpc-1"}
        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        backend = http_backend()

        with respx.mock:
            route = respx.put(f"{BASE_URL}/resource-groups/network").mock(return_value=Response(502))

            with pytest.raises(RetryableHTTPError):
                await backend.create_or_update("network", {})

        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        backend = http_backend()

        with respx.mock:
            route = respx.put(f"{BASE_URL}/resource-groups/network").mock(return_value=Response(422))

            with pytest.raises(PermanentHTTPError) as exc_info:
                await backend.create_or_update("network", {})

        assert exc_info.value.status_code == 422
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_malformed_outputs(self):
        backend = http_backend()

        with respx.mock:
            respx.put(f"{BASE_URL}/resource-groups/network").mock(
                return_value=Response(200, json={"outputs": ["not", "a", "mapping"]})
            )

            with pytest.raises(ValueError, match="Malformed outputs"):
                await backend.create_or_update("network", {})

    @pytest.mark.asyncio
    async def test_destroy(self):
        backend = http_backend()

        with respx.mock:
            route = respx.delete(f"{BASE_URL}/resource-groups/network").mock(return_value=Response(204))

            await backend.destroy("network")

        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_destroy_already_absent(self):
        backend = http_backend()

        with respx.mock:
            respx.delete(f"{BASE_URL}/resource-groups/network").mock(return_value=Response(404))

            await backend.destroy("network")

    @pytest.mark.asyncio
    async def test_destroy_failure_propagates(self):
        backend = http_backend()

        with respx.mock:
            respx.delete(f"{BASE_URL}/resource-groups/network").mock(return_value=Response(409))

            with pytest.raises(PermanentHTTPError):
                await backend.destroy("network")
