"""
Stack orchestrator for the unified plan/apply workflow.

Wires a stack's resource group declarations to a state store and a
provisioning backend, and exposes plan, apply and destroy as single calls.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import structlog

from stackwise.config.settings import Settings
from stackwise.orchestration.executor import Executor, RunCancellation
from stackwise.orchestration.graph import StackGraph
from stackwise.orchestration.planner import Planner
from stackwise.orchestration.results import ApplyResult, Plan
from stackwise.provisioning import ProvisioningBackend, create_backend_from_settings
from stackwise.specs.models import ResourceGroupSpec
from stackwise.specs.parser import load_stack_file
from stackwise.state import StateStore, create_state_store, snapshot

logger = structlog.get_logger()


class StackOrchestrator:
    """Plans and applies one stack of resource groups."""

    def __init__(
        self,
        specs: Sequence[ResourceGroupSpec],
        *,
        store: StateStore,
        backend: ProvisioningBackend,
        stack_name: str = "stack",
        max_parallel: int = 1,
    ) -> None:
        self.specs: List[ResourceGroupSpec] = list(specs)
        self.store = store
        self.backend = backend
        self.stack_name = stack_name
        self.max_parallel = max_parallel

    @classmethod
    def from_stack_file(
        cls,
        path: Path,
        settings: Settings,
        *,
        environment: Optional[str] = None,
        store: StateStore | None = None,
        backend: ProvisioningBackend | None = None,
    ) -> StackOrchestrator:
        """Build an orchestrator from a stack file and settings."""
        stack_name, specs = load_stack_file(path, environment=environment)
        return cls(
            specs,
            store=store or create_state_store(settings),
            backend=backend or create_backend_from_settings(settings),
            stack_name=stack_name,
            max_parallel=settings.max_parallel,
        )

    def graph(self) -> StackGraph:
        """Dependency graph of the declared groups, validated against applied state."""
        return StackGraph(self.specs, applied_names=snapshot(self.store))

    def plan(self, *, targets: Iterable[str] | None = None, destroy: bool = False) -> Plan:
        """Diff declared groups against the state store."""
        prior = snapshot(self.store)
        if destroy:
            return Planner().plan([], prior)

        ordered = StackGraph(self.specs, applied_names=prior).order()
        return Planner().plan(ordered, prior, targets=targets)

    async def apply(
        self,
        plan: Plan | None = None,
        *,
        targets: Iterable[str] | None = None,
        destroy: bool = False,
        cancel: RunCancellation | None = None,
    ) -> ApplyResult:
        """Apply ``plan``, computing a fresh one when none is given."""
        if plan is None:
            plan = self.plan(targets=targets, destroy=destroy)

        executor = Executor(self.backend, self.store, max_parallel=self.max_parallel)
        result = await executor.apply(plan, cancel=cancel)
        logger.info(
            "stack_applied",
            stack=self.stack_name,
            success=result.success,
            failed_at=result.failed_at,
        )
        return result

    def apply_sync(self, plan: Plan | None = None, **kwargs) -> ApplyResult:
        """Blocking wrapper around :meth:`apply` for synchronous callers."""
        return asyncio.run(self.apply(plan, **kwargs))
