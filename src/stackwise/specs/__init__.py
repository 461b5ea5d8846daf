"""Resource group declarations and the stack file spec source."""

from stackwise.specs.models import (
    LiteralValue,
    Reference,
    ResourceGroupSpec,
    Scalar,
    Value,
    hash_inputs,
    to_value,
)
from stackwise.specs.parser import load_stack_file, parse_stack

__all__ = [
    "LiteralValue",
    "Reference",
    "ResourceGroupSpec",
    "Scalar",
    "Value",
    "hash_inputs",
    "load_stack_file",
    "parse_stack",
    "to_value",
]
