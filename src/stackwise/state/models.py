from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from stackwise.specs.models import Scalar


@dataclass(frozen=True)
class AppliedState:
    """Last successfully applied configuration of one resource group."""

    resource_group_name: str
    inputs_hash: str
    outputs: dict[str, Scalar] = field(default_factory=dict)
    applied_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dependencies: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_group_name": self.resource_group_name,
            "inputs_hash": self.inputs_hash,
            "outputs": dict(self.outputs),
            "applied_at": self.applied_at.isoformat(),
            "dependencies": list(self.dependencies),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppliedState:
        applied_at = datetime.fromisoformat(data["applied_at"])
        if applied_at.tzinfo is None:
            applied_at = applied_at.replace(tzinfo=timezone.utc)
        return cls(
            resource_group_name=data["resource_group_name"],
            inputs_hash=data["inputs_hash"],
            outputs=dict(data.get("outputs") or {}),
            applied_at=applied_at,
            dependencies=tuple(data.get("dependencies") or ()),
        )
