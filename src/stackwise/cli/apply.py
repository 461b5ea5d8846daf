"""
CLI commands for applying and destroying a stack.
"""

import asyncio
import json
from typing import List, Optional

from rich.markup import escape

from stackwise.cli.plan import build_orchestrator, print_plan_summary
from stackwise.cli.ux import confirm, console, error, is_interactive, success, warning
from stackwise.core.errors import ExitCode, format_errors, main_with_error_handling
from stackwise.orchestration.results import ApplyResult


def print_apply_summary(result: ApplyResult, verbose: bool = False) -> None:
    """Print apply summary with rich formatting."""
    console.print()

    for state in result.succeeded:
        console.print(f"  [green]✓ {state.resource_group_name:<20}[/green] applied")
        if verbose:
            for key, value in sorted(state.outputs.items()):
                console.print(f"     [dim]└ {key} = {escape(repr(value))}[/dim]")
    if verbose:
        for name in result.unchanged:
            console.print(f"  [dim]= {name:<20} unchanged[/dim]")
    for name in result.destroyed:
        console.print(f"  [red]- {name:<20}[/red] destroyed")
    for name in result.skipped:
        console.print(f"  [yellow]… {name:<20}[/yellow] skipped")

    console.print()
    duration = f" in {result.duration_seconds:.1f}s" if result.duration_seconds > 0 else ""
    counts = (
        f"{len(result.succeeded)} applied, {len(result.destroyed)} destroyed, "
        f"{len(result.unchanged)} unchanged"
    )
    if result.success:
        success(f"Apply complete{duration}: {counts}")
    elif result.cancelled:
        warning(f"Apply cancelled{duration}: {counts}")
    else:
        error(f"Apply failed{duration}: {counts}")

    for message in format_errors([*result.failures, *result.destroy_errors]):
        console.print(f"  [red]•[/red] {escape(message)}")
    if result.failures:
        console.print()
        console.print("[dim]Fix the error and run apply again; applied groups will be unchanged.[/dim]")

    console.print()


def print_apply_json(result: ApplyResult) -> None:
    """Print apply result in JSON format."""
    output = {
        "success": result.success,
        "succeeded": [state.to_dict() for state in result.succeeded],
        "unchanged": result.unchanged,
        "destroyed": result.destroyed,
        "skipped": result.skipped,
        "failed_at": result.failed_at,
        "errors": [failure.message for failure in result.failures],
        "destroy_errors": [failure.message for failure in result.destroy_errors],
        "cancelled": result.cancelled,
        "duration_seconds": result.duration_seconds,
    }
    print(json.dumps(output, indent=2, default=str))


@main_with_error_handling()
def apply_command(
    stack_file: Optional[str] = None,
    env: Optional[str] = None,
    targets: Optional[List[str]] = None,
    destroy: bool = False,
    auto_approve: bool = False,
    parallelism: Optional[int] = None,
    output_format: str = "text",
    verbose: bool = False,
    config: Optional[str] = None,
) -> int:
    """
    Plan and apply a stack.

    Args:
        stack_file: Path to stack YAML file (defaults to settings.stack_file)
        env: Environment overlay to apply
        targets: Only apply these resource groups
        destroy: Destroy every applied resource group instead
        auto_approve: Skip the interactive confirmation
        parallelism: Maximum resource groups applied concurrently
        output_format: Output format (text, json)
        verbose: Show outputs and unchanged groups
        config: Explicit config file path

    Returns:
        Exit code (0 for success)
    """
    orchestrator = build_orchestrator(stack_file, env=env, config=config, parallelism=parallelism)
    plan = orchestrator.plan(targets=targets, destroy=destroy)

    if output_format != "json":
        print_plan_summary(plan, orchestrator.stack_name, verbose=verbose)

    if not plan.has_changes:
        if output_format == "json":
            print_apply_json(ApplyResult(unchanged=[c.name for c in plan.changes]))
        return 0

    if not auto_approve:
        if not is_interactive():
            error("Refusing to apply without confirmation; pass --auto-approve")
            return ExitCode.BLOCKED
        verb = "destroy" if destroy else "apply"
        if not confirm(f"Do you want to {verb} these changes?"):
            warning("Apply cancelled")
            return 0

    result = asyncio.run(orchestrator.apply(plan))

    if output_format == "json":
        print_apply_json(result)
    else:
        print_apply_summary(result, verbose=verbose)

    if result.success:
        return 0
    if result.cancelled and not result.failures:
        return 130
    return ExitCode.PROVIDER_ERROR


def destroy_command(
    stack_file: Optional[str] = None,
    env: Optional[str] = None,
    auto_approve: bool = False,
    output_format: str = "text",
    verbose: bool = False,
    config: Optional[str] = None,
) -> int:
    """Destroy every applied resource group, dependents first."""
    return apply_command(
        stack_file,
        env=env,
        destroy=True,
        auto_approve=auto_approve,
        output_format=output_format,
        verbose=verbose,
        config=config,
    )
