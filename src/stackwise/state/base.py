from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from stackwise.state.models import AppliedState


class StateStore(Protocol):
    """Durable record of what has been applied, keyed by resource group name.

    ``put`` must replace the full record atomically: a failed write leaves
    the previous record untouched. ``lock`` guards an entire apply run and
    raises ``ConcurrentModification`` instead of waiting when another run
    holds it. Reads never take the run lock.
    """

    def get(self, name: str) -> AppliedState | None: ...

    def put(self, state: AppliedState) -> None: ...

    def delete(self, name: str) -> None: ...

    def list(self) -> list[AppliedState]: ...

    def lock(self, owner: str) -> AbstractContextManager[None]: ...


def snapshot(store: StateStore) -> dict[str, AppliedState]:
    """Read every record into a name-keyed mapping."""
    return {state.resource_group_name: state for state in store.list()}
