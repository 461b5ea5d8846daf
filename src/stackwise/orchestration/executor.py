"""Executes plans against a provisioning backend."""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List

import structlog

from stackwise.core.errors import (
    DestroyFailure,
    ProvisioningFailure,
    StalePlanError,
    StateStoreError,
)
from stackwise.logging import bind_context
from stackwise.orchestration.results import (
    ApplyResult,
    ChangeAction,
    Plan,
    PlannedChange,
    ResultCollector,
)
from stackwise.provisioning.base import ProvisioningBackend
from stackwise.specs.models import Scalar, hash_inputs
from stackwise.state.base import StateStore
from stackwise.state.models import AppliedState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunCancellation:
    """Cooperative cancellation, honoured between resource groups.

    Safe to trigger from another thread or a signal handler.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class Executor:
    """Applies a plan one resource group at a time, in dependency order.

    Creates and updates stop at the first failure and nothing is rolled
    back; every success is persisted before the next group starts, so a
    fresh plan resumes where this run stopped. Destroys run last and are
    best-effort.
    """

    def __init__(
        self,
        backend: ProvisioningBackend,
        store: StateStore,
        *,
        max_parallel: int = 1,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend = backend
        self._store = store
        self._max_parallel = max(1, max_parallel)
        self._clock = clock

    async def apply(
        self,
        plan: Plan,
        *,
        cancel: RunCancellation | None = None,
        run_id: str | None = None,
    ) -> ApplyResult:
        run_id = run_id or uuid.uuid4().hex[:12]
        log = bind_context(run_id=run_id)
        collector = ResultCollector()
        started = time.monotonic()

        with self._store.lock(run_id):
            self._check_fresh(plan)
            plan.consumed = True
            log.info("apply_started", changes=plan.summary(), max_parallel=self._max_parallel)

            await self._apply_forward(plan, collector, cancel, log)

            if collector.halted:
                for change in plan.destroys:
                    collector.record_skipped(change.name)
            else:
                await self._apply_destroys(plan, collector, cancel, log)

        result = collector.finalize(time.monotonic() - started)
        log.info(
            "apply_finished",
            success=result.success,
            applied=len(result.succeeded),
            unchanged=len(result.unchanged),
            destroyed=len(result.destroyed),
            failed_at=result.failed_at,
            skipped=len(result.skipped),
            cancelled=result.cancelled,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    def _check_fresh(self, plan: Plan) -> None:
        if plan.consumed:
            raise StalePlanError("Plan has already been applied; create a new plan")
        for name, planned_hash in plan.prior_hashes.items():
            current = self._store.get(name)
            current_hash = current.inputs_hash if current else None
            if current_hash != planned_hash:
                raise StalePlanError(
                    f"State of '{name}' changed since the plan was created; create a new plan",
                    {"group": name},
                )

    async def _apply_forward(
        self,
        plan: Plan,
        collector: ResultCollector,
        cancel: RunCancellation | None,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        changes = plan.forward_changes
        position = {change.name: i for i, change in enumerate(changes)}
        in_run = set(position)
        outputs: Dict[str, Dict[str, Scalar]] = {}
        completed: set[str] = set()
        pending: List[PlannedChange] = list(changes)
        running: Dict[asyncio.Task, PlannedChange] = {}

        while pending or running:
            if not collector.halted:
                for change in list(pending):
                    if len(running) >= self._max_parallel:
                        break
                    upstream = change.target.declared_dependencies & in_run
                    if not upstream <= completed:
                        continue
                    if change.action is ChangeAction.NOOP:
                        pending.remove(change)
                        prior = self._store.get(change.name)
                        outputs[change.name] = dict(prior.outputs) if prior else {}
                        completed.add(change.name)
                        collector.record_unchanged(change.name)
                        continue
                    if cancel is not None and cancel.cancelled:
                        collector.record_cancelled()
                        log.warning("apply_cancelled", remaining=[c.name for c in pending])
                        break
                    pending.remove(change)
                    log.info("change_started", resource_group=change.name, action=change.action.value)
                    task = asyncio.create_task(self._converge(change, outputs))
                    running[task] = change

            if not running:
                break

            done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
            for task in sorted(done, key=lambda t: position[running[t].name]):
                change = running.pop(task)
                try:
                    state, changed = task.result()
                    if changed:
                        self._store.put(state)
                except ProvisioningFailure as failure:
                    self._record_failure(collector, failure, log)
                    continue
                except StateStoreError as e:
                    failure = ProvisioningFailure(change.name, change.action.value, e.message)
                    self._record_failure(collector, failure, log)
                    continue

                outputs[change.name] = dict(state.outputs)
                completed.add(change.name)
                if changed:
                    collector.record(state)
                    log.info(
                        "change_applied",
                        resource_group=change.name,
                        action=change.action.value,
                        inputs_hash=state.inputs_hash,
                    )
                else:
                    collector.record_unchanged(change.name)
                    log.info("change_converged", resource_group=change.name)

        for change in pending:
            collector.record_skipped(change.name)

    def _record_failure(
        self,
        collector: ResultCollector,
        failure: ProvisioningFailure,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        first = not collector.halted
        collector.record_failure(failure)
        log.error(
            "change_failed",
            resource_group=failure.group,
            action=failure.action,
            error=failure.message,
        )
        if first:
            log.warning("apply_halted", failed_at=failure.group)

    async def _converge(
        self,
        change: PlannedChange,
        outputs: Dict[str, Dict[str, Scalar]],
    ) -> tuple[AppliedState, bool]:
        """Resolve deferred inputs and call the backend.

        Returns the state to record and whether anything changed.
        """
        inputs: Dict[str, Scalar] = dict(change.resolved_inputs)
        for key, reference in change.pending_references.items():
            source = outputs.get(reference.group)
            if source is None:
                upstream = self._store.get(reference.group)
                source = upstream.outputs if upstream else None
            if source is None or reference.output not in source:
                raise ProvisioningFailure(
                    change.name,
                    change.action.value,
                    f"reference {reference} did not resolve to an output",
                )
            inputs[key] = source[reference.output]

        inputs_hash = hash_inputs(inputs)
        if change.deferred and change.prior_hash == inputs_hash:
            prior = self._store.get(change.name)
            if prior is not None and prior.dependencies == change.target.dependency_names:
                return prior, False

        try:
            result = await self._backend.create_or_update(change.name, inputs)
        except Exception as exc:
            # Backend error types are opaque by contract.
            raise ProvisioningFailure(
                change.name, change.action.value, str(exc) or type(exc).__name__
            ) from exc

        state = AppliedState(
            resource_group_name=change.name,
            inputs_hash=inputs_hash,
            outputs=dict(result),
            applied_at=self._clock(),
            dependencies=change.target.dependency_names,
        )
        return state, True

    async def _apply_destroys(
        self,
        plan: Plan,
        collector: ResultCollector,
        cancel: RunCancellation | None,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        destroys = plan.destroys
        for i, change in enumerate(destroys):
            if cancel is not None and cancel.cancelled:
                collector.record_cancelled()
                log.warning("apply_cancelled", remaining=[c.name for c in destroys[i:]])
                for remaining in destroys[i:]:
                    collector.record_skipped(remaining.name)
                return

            log.info("destroy_started", resource_group=change.name)
            try:
                await self._backend.destroy(change.name)
            except Exception as exc:
                failure = DestroyFailure(change.name, str(exc) or type(exc).__name__)
                collector.record_destroy_error(failure)
                log.error("destroy_failed", resource_group=change.name, error=failure.message)
                continue

            try:
                self._store.delete(change.name)
            except StateStoreError as e:
                collector.record_destroy_error(DestroyFailure(change.name, e.message))
                log.error("destroy_failed", resource_group=change.name, error=e.message)
                continue

            collector.record_destroyed(change.name)
            log.info("resource_group_destroyed", resource_group=change.name)
