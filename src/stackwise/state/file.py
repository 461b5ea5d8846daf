from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

import structlog

from stackwise.core.errors import ConcurrentModification, StateStoreError
from stackwise.state.models import AppliedState

logger = structlog.get_logger()

DEFAULT_STATE_DIR = Path(".stackwise/state")
LOCK_FILENAME = ".lock"
RECORD_SUFFIX = ".json"


class FileStateStore:
    """One JSON record per resource group under a state directory.

    Records are written to a temporary file in the same directory and then
    moved into place with ``os.replace`` so readers only ever see a complete
    record. The run lock is an exclusively created lock file.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_STATE_DIR

    @property
    def lock_path(self) -> Path:
        return self.path / LOCK_FILENAME

    def _record_path(self, name: str) -> Path:
        return self.path / f"{name}{RECORD_SUFFIX}"

    def get(self, name: str) -> AppliedState | None:
        record = self._record_path(name)
        if not record.exists():
            return None
        return self._read(record)

    def put(self, state: AppliedState) -> None:
        payload = json.dumps(state.to_dict(), indent=2, sort_keys=True) + "\n"
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path, prefix=".tmp-", suffix=RECORD_SUFFIX)
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self._record_path(state.resource_group_name))
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StateStoreError(
                f"Failed to write state for '{state.resource_group_name}': {e}",
                {"path": str(self.path)},
            ) from e

    def delete(self, name: str) -> None:
        try:
            self._record_path(name).unlink(missing_ok=True)
        except OSError as e:
            raise StateStoreError(f"Failed to delete state for '{name}': {e}") from e

    def list(self) -> list[AppliedState]:
        if not self.path.exists():
            return []
        return [
            self._read(record)
            for record in sorted(self.path.glob(f"*{RECORD_SUFFIX}"))
            if not record.name.startswith(".")
        ]

    @contextmanager
    def lock(self, owner: str) -> Iterator[None]:
        self.path.mkdir(parents=True, exist_ok=True)
        holder = {
            "owner": owner,
            "pid": os.getpid(),
            "acquired_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            raise ConcurrentModification(
                "Another apply run holds the state lock",
                {"lock": str(self.lock_path), "holder": self.lock_holder()},
            ) from e

        with os.fdopen(fd, "w") as f:
            json.dump(holder, f)
        logger.debug("state_lock_acquired", path=str(self.lock_path), owner=owner)
        try:
            yield
        finally:
            self.lock_path.unlink(missing_ok=True)
            logger.debug("state_lock_released", path=str(self.lock_path), owner=owner)

    def lock_holder(self) -> dict[str, Any] | None:
        """Describe the current lock holder, if any."""
        try:
            return json.loads(self.lock_path.read_text())
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError):
            return {"owner": "unknown"}

    def force_unlock(self) -> bool:
        """Remove a lock left behind by a crashed run. Returns True if one existed."""
        existed = self.lock_path.exists()
        self.lock_path.unlink(missing_ok=True)
        if existed:
            logger.warning("state_lock_forced", path=str(self.lock_path))
        return existed

    def _read(self, record: Path) -> AppliedState:
        try:
            return AppliedState.from_dict(json.loads(record.read_text()))
        except (OSError, ValueError, KeyError) as e:
            raise StateStoreError(f"Corrupt state record {record.name}: {e}", {"path": str(record)}) from e
