"""Tests for resource group declarations and stack file parsing."""

import pytest

from stackwise.core.errors import ValidationError
from stackwise.specs.models import (
    LiteralValue,
    Reference,
    ResourceGroupSpec,
    hash_inputs,
    to_value,
)
from stackwise.specs.parser import load_stack_file, parse_stack


class TestValues:
    def test_reference_string_becomes_reference(self):
        assert to_value("${network.vpc_id}") == Reference("network", "vpc_id")

    def test_embedded_reference_stays_literal(self):
        """Only a whole-string reference wires groups together."""
        assert to_value("arn:${network.vpc_id}") == LiteralValue("arn:${network.vpc_id}")

    def test_scalars_are_literals(self):
        assert to_value(3) == LiteralValue(3)
        assert to_value(None) == LiteralValue(None)
        assert to_value(True) == LiteralValue(True)

    def test_reference_renders_back(self):
        assert str(Reference("a", "b")) == "${a.b}"


class TestResourceGroupSpec:
    def test_declared_dependencies_combine_references_and_depends_on(self):
        spec = ResourceGroupSpec.create(
            "app",
            {"db": "${database.endpoint}", "region": "us-east-1"},
            depends_on=["network"],
        )
        assert spec.declared_dependencies == frozenset({"database", "network"})
        assert set(spec.references) == {"db"}

    def test_specs_are_hashable(self):
        spec = ResourceGroupSpec.create("network", depends_on=["base"])
        assert spec.depends_on == frozenset({"base"})


class TestHashInputs:
    def test_key_order_does_not_matter(self):
        assert hash_inputs({"a": 1, "b": "x"}) == hash_inputs({"b": "x", "a": 1})

    def test_value_changes_change_hash(self):
        assert hash_inputs({"size": "small"}) != hash_inputs({"size": "large"})

    def test_types_are_distinguished(self):
        assert hash_inputs({"port": 5432}) != hash_inputs({"port": "5432"})


STACK = {
    "stack": "fullstack",
    "defaults": {"region": "us-east-1"},
    "environments": {
        "prod": {
            "defaults": {"region": "eu-west-1"},
            "resource_groups": {"database": {"size": "large"}},
        }
    },
    "resource_groups": [
        {"name": "network", "inputs": {"cidr": "10.0.0.0/16"}},
        {
            "name": "database",
            "description": "Primary database",
            "depends_on": ["network"],
            "inputs": {"vpc_id": "${network.vpc_id}", "size": "small"},
        },
    ],
}


class TestParseStack:
    def test_declaration_order_preserved(self):
        name, specs = parse_stack(STACK)

        assert name == "fullstack"
        assert [s.name for s in specs] == ["network", "database"]
        assert specs[1].description == "Primary database"

    def test_defaults_are_layered_under_group_inputs(self):
        _, specs = parse_stack(STACK)
        database = specs[1]

        assert database.inputs["region"] == LiteralValue("us-east-1")
        assert database.inputs["size"] == LiteralValue("small")
        assert database.inputs["vpc_id"] == Reference("network", "vpc_id")

    def test_environment_overlay(self):
        _, specs = parse_stack(STACK, environment="prod")
        network, database = specs

        assert network.inputs["region"] == LiteralValue("eu-west-1")
        assert database.inputs["size"] == LiteralValue("large")

    def test_unknown_environment(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_stack(STACK, environment="qa")

        assert exc_info.value.details["available"] == ["prod"]

    def test_override_of_undeclared_group(self):
        data = {
            "stack": "s",
            "environments": {"dev": {"resource_groups": {"cache": {"size": "tiny"}}}},
            "resource_groups": [{"name": "network"}],
        }
        with pytest.raises(ValidationError) as exc_info:
            parse_stack(data, environment="dev")

        assert exc_info.value.details["groups"] == ["cache"]

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            parse_stack({"stack": "s", "resource_groups": [{"name": "a", "input": {}}]})

    def test_invalid_group_name_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_stack({"stack": "s", "resource_groups": [{"name": "bad name"}]})

        assert exc_info.value.details["errors"]

    def test_nested_inputs_rejected(self):
        with pytest.raises(ValidationError):
            parse_stack({"stack": "s", "resource_groups": [{"name": "a", "inputs": {"tags": {"k": "v"}}}]})


class TestLoadStackFile:
    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text(
            """
stack: demo
resource_groups:
  - name: network
    inputs:
      cidr: 10.0.0.0/16
  - name: app
    inputs:
      vpc: ${network.id}
"""
        )

        name, specs = load_stack_file(path)

        assert name == "demo"
        assert specs[1].inputs["vpc"] == Reference("network", "id")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="not found"):
            load_stack_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text("stack: [unterminated\n")

        with pytest.raises(ValidationError, match="not valid YAML"):
            load_stack_file(path)
