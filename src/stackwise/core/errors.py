"""
Unified error handling for stackwise.

Every failure the orchestrator can report is a ``StackwiseError`` subclass
carrying an exit code, so CLI commands and library callers share one
taxonomy.

Exit Codes:
- 0: Success
- 2: Blocked (another run holds the state lock, or the plan is stale)
- 10: Configuration error
- 11: Provisioning error (backend create/update/destroy failed)
- 12: Validation error (stack file, cycles, unknown references)
- 13: State store error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, Iterable, Sequence, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    BLOCKED = 2
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    STATE_ERROR = 13
    UNKNOWN_ERROR = 127


class StackwiseError(Exception):
    """Base exception for stackwise errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(StackwiseError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(StackwiseError):
    """Raised when a stack definition is malformed."""

    exit_code = ExitCode.VALIDATION_ERROR


class GraphError(ValidationError):
    """Raised when resource group dependencies cannot be ordered."""


class DuplicateResourceGroup(GraphError):
    """Two resource groups were declared with the same name."""

    def __init__(self, name: str):
        super().__init__(f"Resource group '{name}' is declared more than once", {"group": name})
        self.group = name


class CycleDetected(GraphError):
    """The dependency relation contains one or more cycles."""

    def __init__(self, cycles: Sequence[Sequence[str]]):
        self.cycles = [list(cycle) for cycle in cycles]
        self.participants = [name for cycle in self.cycles for name in cycle]
        rendered = "; ".join(", ".join(cycle) for cycle in self.cycles)
        super().__init__(
            f"Dependency cycle detected among: {rendered}",
            {"participants": self.participants},
        )


class UnknownReference(GraphError):
    """A resource group references a group or output that does not exist."""

    def __init__(self, group: str, referenced: str, output: str | None = None, reason: str = ""):
        self.group = group
        self.referenced = referenced
        self.output = output
        target = f"{referenced}.{output}" if output else referenced
        message = f"Resource group '{group}' references unknown '{target}'"
        if reason:
            message = f"{message}: {reason}"
        details: dict[str, Any] = {"group": group, "referenced": referenced}
        if output:
            details["output"] = output
        super().__init__(message, details)


class DanglingReference(UnknownReference):
    """A still-declared group references a group that was removed from the stack."""

    def __init__(self, group: str, referenced: str):
        super().__init__(
            group,
            referenced,
            reason="it was removed from the stack but is still referenced; "
            "remove the reference before destroying it",
        )


class ProvisioningFailure(StackwiseError):
    """A create/update call against the provisioning backend failed."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(self, group: str, action: str, message: str):
        super().__init__(
            f"{action.capitalize()} of '{group}' failed: {message}",
            {"group": group, "action": action},
        )
        self.group = group
        self.action = action


class DestroyFailure(StackwiseError):
    """A destroy call against the provisioning backend failed."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(self, group: str, message: str):
        super().__init__(f"Destroy of '{group}' failed: {message}", {"group": group})
        self.group = group


class StateStoreError(StackwiseError):
    """Raised when persisted state cannot be read or written."""

    exit_code = ExitCode.STATE_ERROR


class ConcurrentModification(StackwiseError):
    """Raised when another apply run already holds the state lock."""

    exit_code = ExitCode.BLOCKED


class StalePlanError(ConcurrentModification):
    """Raised when a plan no longer matches the state it was computed from."""


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI command functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - StackwiseError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except StackwiseError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                _print_error(format_error_message(e))
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: StackwiseError) -> str:
    """Format an error message for display to users."""
    return error.message


def format_errors(errors: Iterable[StackwiseError]) -> list[str]:
    """Format a batch of collected errors, one line each."""
    return [format_error_message(error) for error in errors]


def _print_error(message: str) -> None:
    from stackwise.cli.ux import error as print_error

    print_error(message)
