from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping

from stackwise.provisioning.registry import register_backend
from stackwise.specs.models import Scalar, hash_inputs

OutputFactory = Callable[[str, Mapping[str, Scalar]], Dict[str, Scalar]]


class SimulatedProvisioningError(RuntimeError):
    pass


@dataclass(frozen=True)
class BackendCall:
    action: str
    resource_group: str
    inputs: Dict[str, Scalar]


def default_outputs(resource_group: str, inputs: Mapping[str, Scalar]) -> Dict[str, Scalar]:
    """Echo the inputs back with a stable id derived from them."""
    return {**inputs, "id": f"{resource_group}-{hash_inputs(inputs)[:12]}"}


class InMemoryBackend:
    """Local provisioning backend that simulates resources in a dict.

    Outputs are deterministic for identical inputs, so repeated runs
    converge. Failures can be injected per group for exercising partial
    applies.
    """

    name = "memory"

    def __init__(
        self,
        *,
        outputs: OutputFactory | None = None,
        fail_on: Iterable[str] = (),
        fail_destroy_on: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self._outputs = outputs or default_outputs
        self.fail_on = set(fail_on)
        self.fail_destroy_on = set(fail_destroy_on)
        self._delay = delay
        self.resources: Dict[str, Dict[str, Scalar]] = {}
        self.calls: List[BackendCall] = []

    async def create_or_update(
        self, resource_group: str, inputs: Mapping[str, Scalar]
    ) -> Dict[str, Scalar]:
        self.calls.append(BackendCall("create_or_update", resource_group, dict(inputs)))
        if self._delay:
            await asyncio.sleep(self._delay)
        if resource_group in self.fail_on:
            raise SimulatedProvisioningError(f"simulated failure provisioning {resource_group}")
        outputs = self._outputs(resource_group, inputs)
        self.resources[resource_group] = dict(outputs)
        return dict(outputs)

    async def destroy(self, resource_group: str) -> None:
        self.calls.append(BackendCall("destroy", resource_group, {}))
        if self._delay:
            await asyncio.sleep(self._delay)
        if resource_group in self.fail_destroy_on:
            raise SimulatedProvisioningError(f"simulated failure destroying {resource_group}")
        self.resources.pop(resource_group, None)

    def called_groups(self, action: str = "create_or_update") -> List[str]:
        """Resource groups touched by ``action``, in call order."""
        return [call.resource_group for call in self.calls if call.action == action]


register_backend(
    "memory",
    lambda **_: InMemoryBackend(),
    version="1.0.0",
    description="Simulated resources held in process memory",
)
