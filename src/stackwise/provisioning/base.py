from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable

from stackwise.specs.models import Scalar


@runtime_checkable
class ProvisioningBackend(Protocol):
    """Contract for whatever actually creates infrastructure.

    Each call is one blocking operation that either succeeds or raises.
    Callers do not interpret exception types; retries, if any, happen
    inside the backend.
    """

    name: str

    async def create_or_update(
        self, resource_group: str, inputs: Mapping[str, Scalar]
    ) -> dict[str, Scalar]:
        """Converge ``resource_group`` to ``inputs`` and return its outputs."""
        ...

    async def destroy(self, resource_group: str) -> None:
        """Remove everything belonging to ``resource_group``."""
        ...
