"""Core modules for stackwise - centralized definitions and utilities."""

from stackwise.core.errors import (
    ConcurrentModification,
    ConfigurationError,
    CycleDetected,
    DanglingReference,
    DestroyFailure,
    DuplicateResourceGroup,
    ExitCode,
    GraphError,
    ProvisioningFailure,
    StackwiseError,
    StalePlanError,
    StateStoreError,
    UnknownReference,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "StackwiseError",
    "ConfigurationError",
    "ValidationError",
    "GraphError",
    "DuplicateResourceGroup",
    "CycleDetected",
    "UnknownReference",
    "DanglingReference",
    "ProvisioningFailure",
    "DestroyFailure",
    "StateStoreError",
    "ConcurrentModification",
    "StalePlanError",
    "main_with_error_handling",
    "format_error_message",
]
