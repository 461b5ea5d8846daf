"""Diffs declared resource groups against applied state."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence

import structlog

from stackwise.core.errors import UnknownReference
from stackwise.orchestration.graph import StackGraph, destroy_order
from stackwise.orchestration.results import ChangeAction, Plan, PlannedChange
from stackwise.specs.models import (
    LiteralValue,
    Reference,
    ResourceGroupSpec,
    Scalar,
    hash_inputs,
)
from stackwise.state.models import AppliedState

logger = structlog.get_logger()


class Planner:
    """Computes the minimal set of changes that reconciles specs with state."""

    def plan(
        self,
        specs: Sequence[ResourceGroupSpec],
        prior_state: Mapping[str, AppliedState],
        *,
        targets: Iterable[str] | None = None,
    ) -> Plan:
        """Plan changes for ``specs``, which must already be in topological order.

        With ``targets`` only those groups are planned and nothing is
        destroyed; references to groups outside the run resolve against
        ``prior_state``, so their upstream must already be applied.
        """
        target_names = tuple(targets) if targets else None
        if target_names:
            declared = {spec.name for spec in specs}
            for name in target_names:
                if name not in declared:
                    raise UnknownReference("<target>", name, reason="no such resource group")
            specs = [spec for spec in specs if spec.name in target_names]

        in_run = {spec.name for spec in specs}
        plan = Plan(targets=target_names)
        for spec in specs:
            for name in sorted(spec.depends_on - in_run):
                if name not in prior_state:
                    raise UnknownReference(
                        spec.name,
                        name,
                        reason="the group is outside this run and has never been applied",
                    )
            # upstream read from state must not change before apply
            for name in sorted(spec.declared_dependencies - in_run):
                if name in prior_state:
                    plan.prior_hashes[name] = prior_state[name].inputs_hash
        known_outputs: Dict[str, Dict[str, Scalar]] = {}

        for spec in specs:
            prior = prior_state.get(spec.name)
            plan.prior_hashes[spec.name] = prior.inputs_hash if prior else None

            resolved, pending = self._resolve(spec, in_run, known_outputs, prior_state)
            prior_hash = prior.inputs_hash if prior else None

            if pending:
                action = ChangeAction.UPDATE if prior else ChangeAction.CREATE
                change = PlannedChange(
                    target=spec,
                    action=action,
                    resolved_inputs=resolved,
                    pending_references=pending,
                    prior_hash=prior_hash,
                )
            else:
                inputs_hash = hash_inputs(resolved)
                if prior is None:
                    action = ChangeAction.CREATE
                elif prior.inputs_hash == inputs_hash and prior.dependencies == spec.dependency_names:
                    action = ChangeAction.NOOP
                    known_outputs[spec.name] = dict(prior.outputs)
                else:
                    action = ChangeAction.UPDATE
                change = PlannedChange(
                    target=spec,
                    action=action,
                    resolved_inputs=resolved,
                    inputs_hash=inputs_hash,
                    prior_hash=prior_hash,
                )
            plan.changes.append(change)

        if target_names is None:
            removed = [state for name, state in prior_state.items() if name not in in_run]
            for name in destroy_order(removed):
                state = prior_state[name]
                plan.prior_hashes[name] = state.inputs_hash
                plan.changes.append(
                    PlannedChange(
                        target=ResourceGroupSpec(name=name, depends_on=frozenset(state.dependencies)),
                        action=ChangeAction.DESTROY,
                        prior_hash=state.inputs_hash,
                    )
                )

        logger.info("plan_computed", targets=target_names, **plan.summary())
        return plan

    def _resolve(
        self,
        spec: ResourceGroupSpec,
        in_run: set[str],
        known_outputs: Mapping[str, Mapping[str, Scalar]],
        prior_state: Mapping[str, AppliedState],
    ) -> tuple[Dict[str, Scalar], Dict[str, Reference]]:
        resolved: Dict[str, Scalar] = {}
        pending: Dict[str, Reference] = {}

        for key, value in spec.inputs.items():
            if isinstance(value, LiteralValue):
                resolved[key] = value.value
                continue

            if value.group in in_run:
                outputs = known_outputs.get(value.group)
                if outputs is None:
                    # upstream is being created or updated in this run
                    pending[key] = value
                    continue
            else:
                upstream = prior_state.get(value.group)
                if upstream is None:
                    raise UnknownReference(
                        spec.name,
                        value.group,
                        value.output,
                        reason="the group is outside this run and has never been applied",
                    )
                outputs = upstream.outputs

            if value.output not in outputs:
                raise UnknownReference(
                    spec.name,
                    value.group,
                    value.output,
                    reason=f"'{value.group}' has no output '{value.output}'",
                )
            resolved[key] = outputs[value.output]

        return resolved, pending


def plan_stack(
    specs: Sequence[ResourceGroupSpec],
    prior_state: Mapping[str, AppliedState],
    *,
    targets: Iterable[str] | None = None,
) -> Plan:
    """Order ``specs`` and plan them against ``prior_state`` in one step."""
    ordered: List[ResourceGroupSpec] = StackGraph(specs, applied_names=prior_state).order()
    return Planner().plan(ordered, prior_state, targets=targets)
