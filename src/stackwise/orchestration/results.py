"""Result types for stack orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping

from stackwise.core.errors import DestroyFailure, ProvisioningFailure
from stackwise.specs.models import Reference, ResourceGroupSpec, Scalar
from stackwise.state.models import AppliedState


class ChangeAction(str, Enum):
    """What the executor will do to a resource group."""

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"
    NOOP = "no-op"


@dataclass(frozen=True)
class PlannedChange:
    """One resource group's pending change."""

    target: ResourceGroupSpec
    action: ChangeAction
    resolved_inputs: Mapping[str, Scalar] = field(default_factory=dict)
    pending_references: Mapping[str, Reference] = field(default_factory=dict)
    inputs_hash: str | None = None
    prior_hash: str | None = None

    @property
    def name(self) -> str:
        return self.target.name

    @property
    def deferred(self) -> bool:
        """Whether some inputs can only be resolved once upstream groups apply."""
        return bool(self.pending_references)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_group": self.name,
            "action": self.action.value,
            "resolved_inputs": dict(self.resolved_inputs),
            "pending_references": {key: str(ref) for key, ref in self.pending_references.items()},
            "inputs_hash": self.inputs_hash,
        }


@dataclass
class Plan:
    """Ordered changes reconciling declared resource groups with applied state.

    ``prior_hashes`` records the state each planned group was diffed against
    so the executor can refuse a plan whose basis has since changed.
    """

    changes: List[PlannedChange] = field(default_factory=list)
    prior_hashes: Dict[str, str | None] = field(default_factory=dict)
    targets: tuple[str, ...] | None = None
    consumed: bool = False

    @property
    def forward_changes(self) -> List[PlannedChange]:
        """Creates, updates and no-ops, in topological order."""
        return [c for c in self.changes if c.action is not ChangeAction.DESTROY]

    @property
    def destroys(self) -> List[PlannedChange]:
        """Destroys, in reverse topological order."""
        return [c for c in self.changes if c.action is ChangeAction.DESTROY]

    @property
    def has_changes(self) -> bool:
        return any(c.action is not ChangeAction.NOOP for c in self.changes)

    def by_action(self, action: ChangeAction) -> List[PlannedChange]:
        return [c for c in self.changes if c.action is action]

    def summary(self) -> Dict[str, int]:
        """Count of changes per action."""
        counts = {action.value: 0 for action in ChangeAction}
        for change in self.changes:
            counts[change.action.value] += 1
        return counts

    def get(self, name: str) -> PlannedChange | None:
        return next((c for c in self.changes if c.name == name), None)


@dataclass
class ApplyResult:
    """Outcome of executing a plan.

    A failed run is still a well-defined partial apply: ``succeeded`` lists
    everything recorded in the state store before forward progress stopped.
    """

    succeeded: List[AppliedState] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failures: List[ProvisioningFailure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    destroyed: List[str] = field(default_factory=list)
    destroy_errors: List[DestroyFailure] = field(default_factory=list)
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def failed_at(self) -> str | None:
        """Name of the first group whose change failed."""
        return self.failures[0].group if self.failures else None

    @property
    def error(self) -> ProvisioningFailure | None:
        return self.failures[0] if self.failures else None

    @property
    def success(self) -> bool:
        """Whether every planned change was carried out."""
        return not self.failures and not self.destroy_errors and not self.cancelled

    @property
    def applied_names(self) -> List[str]:
        return [state.resource_group_name for state in self.succeeded]

    def raise_for_status(self) -> None:
        """Raise the first recorded error, if any."""
        if self.failures:
            raise self.failures[0]
        if self.destroy_errors:
            raise self.destroy_errors[0]


class ResultCollector:
    """Aggregates per-group outcomes during execution."""

    def __init__(self) -> None:
        self._result = ApplyResult()

    @property
    def halted(self) -> bool:
        return bool(self._result.failures) or self._result.cancelled

    def record(self, state: AppliedState) -> None:
        """Record a change that was applied and persisted."""
        self._result.succeeded.append(state)

    def record_unchanged(self, name: str) -> None:
        self._result.unchanged.append(name)

    def record_failure(self, failure: ProvisioningFailure) -> None:
        self._result.failures.append(failure)

    def record_skipped(self, name: str) -> None:
        self._result.skipped.append(name)

    def record_destroyed(self, name: str) -> None:
        self._result.destroyed.append(name)

    def record_destroy_error(self, failure: DestroyFailure) -> None:
        self._result.destroy_errors.append(failure)

    def record_cancelled(self) -> None:
        self._result.cancelled = True

    def finalize(self, duration: float) -> ApplyResult:
        """Return the final result with duration set."""
        self._result.duration_seconds = duration
        return self._result
