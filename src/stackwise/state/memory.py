from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from stackwise.core.errors import ConcurrentModification
from stackwise.state.models import AppliedState


class InMemoryStateStore:
    """Process-local state store for tests and throwaway runs."""

    def __init__(self) -> None:
        self._records: Dict[str, AppliedState] = {}
        self._guard = threading.Lock()
        self._run_lock = threading.Lock()
        self._owner: str | None = None

    def get(self, name: str) -> AppliedState | None:
        with self._guard:
            return self._records.get(name)

    def put(self, state: AppliedState) -> None:
        with self._guard:
            self._records[state.resource_group_name] = state

    def delete(self, name: str) -> None:
        with self._guard:
            self._records.pop(name, None)

    def list(self) -> list[AppliedState]:
        with self._guard:
            return sorted(self._records.values(), key=lambda s: s.resource_group_name)

    @contextmanager
    def lock(self, owner: str) -> Iterator[None]:
        if not self._run_lock.acquire(blocking=False):
            raise ConcurrentModification(
                "Another apply run holds the state lock",
                {"holder": self._owner, "owner": owner},
            )
        self._owner = owner
        try:
            yield
        finally:
            self._owner = None
            self._run_lock.release()
