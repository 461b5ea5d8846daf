"""
Stack file parsing.

A stack file declares resource groups in YAML::

    stack: fullstack
    defaults:
      region: us-east-1
    environments:
      prod:
        defaults: {instance_class: t3.small}
        resource_groups:
          database: {multi_az: true}
    resource_groups:
      - name: network
        inputs: {cidr: 10.0.0.0/16}
      - name: database
        depends_on: [network]
        inputs:
          vpc_id: ${network.vpc_id}

Group inputs are layered as: stack defaults, environment defaults, group
inputs, environment group overrides.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import structlog
import yaml
from pydantic import BaseModel, Field

from stackwise.core.errors import ValidationError
from stackwise.specs.models import ResourceGroupSpec, Scalar

logger = structlog.get_logger()

GROUP_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class ResourceGroupDocument(BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    name: str = Field(pattern=GROUP_NAME_PATTERN)
    description: str | None = None
    depends_on: list[str] = Field(default_factory=list)
    inputs: dict[str, Scalar] = Field(default_factory=dict)


class EnvironmentDocument(BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    defaults: dict[str, Scalar] = Field(default_factory=dict)
    resource_groups: dict[str, dict[str, Scalar]] = Field(default_factory=dict)


class StackDocument(BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    stack: str
    defaults: dict[str, Scalar] = Field(default_factory=dict)
    environments: dict[str, EnvironmentDocument] = Field(default_factory=dict)
    resource_groups: list[ResourceGroupDocument] = Field(default_factory=list)


def parse_stack(data: Any, environment: str | None = None) -> tuple[str, list[ResourceGroupSpec]]:
    """Validate a loaded stack document and build specs in declaration order."""
    try:
        document = StackDocument.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid stack definition: {e.error_count()} error(s)",
            {"errors": [_format_validation_error(err) for err in e.errors()]},
        ) from e

    overlay = EnvironmentDocument()
    if environment:
        if environment not in document.environments:
            raise ValidationError(
                f"Unknown environment '{environment}'",
                {"available": sorted(document.environments)},
            )
        overlay = document.environments[environment]

    declared = {group.name for group in document.resource_groups}
    unknown_overrides = sorted(set(overlay.resource_groups) - declared)
    if unknown_overrides:
        raise ValidationError(
            f"Environment '{environment}' overrides undeclared resource groups",
            {"groups": unknown_overrides},
        )

    specs = []
    for group in document.resource_groups:
        inputs: dict[str, Scalar] = {
            **document.defaults,
            **overlay.defaults,
            **group.inputs,
            **overlay.resource_groups.get(group.name, {}),
        }
        specs.append(
            ResourceGroupSpec.create(
                group.name,
                inputs,
                depends_on=group.depends_on,
                description=group.description,
            )
        )

    return document.stack, specs


def load_stack_file(
    path: str | Path, environment: str | None = None
) -> tuple[str, list[ResourceGroupSpec]]:
    """Read and parse a stack file from disk."""
    stack_path = Path(path)
    try:
        with open(stack_path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ValidationError(f"Stack file not found: {stack_path}", {"path": str(stack_path)}) from e
    except yaml.YAMLError as e:
        raise ValidationError(f"Stack file is not valid YAML: {e}", {"path": str(stack_path)}) from e

    stack_name, specs = parse_stack(data, environment=environment)
    logger.debug(
        "stack_loaded",
        path=str(stack_path),
        stack=stack_name,
        environment=environment,
        resource_groups=len(specs),
    )
    return stack_name, specs


def _format_validation_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))
