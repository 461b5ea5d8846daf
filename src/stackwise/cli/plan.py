"""
CLI command for planning (dry-run) a stack.
"""

import json
from pathlib import Path
from typing import List, Optional

from rich.markup import escape

from stackwise.cli.ux import action_label, console, header, success
from stackwise.config import load_settings
from stackwise.core.errors import main_with_error_handling
from stackwise.orchestration.results import ChangeAction, Plan
from stackwise.orchestrator import StackOrchestrator


def build_orchestrator(
    stack_file: Optional[str],
    env: Optional[str] = None,
    config: Optional[str] = None,
    parallelism: Optional[int] = None,
) -> StackOrchestrator:
    """Load settings and the stack file into an orchestrator."""
    settings = load_settings(config)
    orchestrator = StackOrchestrator.from_stack_file(
        Path(stack_file) if stack_file else settings.stack_file,
        settings,
        environment=env,
    )
    if parallelism:
        orchestrator.max_parallel = parallelism
    return orchestrator


def print_plan_summary(plan: Plan, stack_name: str, verbose: bool = False) -> None:
    """Print plan summary."""
    header(f"Plan: {stack_name}")
    console.print()

    if not plan.changes:
        console.print("[muted]No resource groups declared or applied.[/muted]")
        console.print()
        return

    for change in plan.changes:
        if change.action is ChangeAction.NOOP and not verbose:
            continue
        console.print(f"  {action_label(change.action.value):<24} [bold]{change.name}[/bold]")
        if change.action in (ChangeAction.CREATE, ChangeAction.UPDATE):
            for key, value in sorted(change.resolved_inputs.items()):
                console.print(f"     [muted]└[/muted] {key} = {escape(repr(value))}")
            for key, reference in sorted(change.pending_references.items()):
                console.print(f"     [muted]└[/muted] {key} = [info](known after apply: {reference})[/info]")

    counts = plan.summary()
    console.print()
    console.print(
        f"[bold]Plan:[/bold] {counts['create']} to create, {counts['update']} to update, "
        f"{counts['destroy']} to destroy, {counts['no-op']} unchanged"
    )
    if not plan.has_changes:
        success("Infrastructure is up to date")
    console.print()


def print_plan_json(plan: Plan, stack_name: str) -> None:
    """Print plan in JSON format."""
    output = {
        "stack": stack_name,
        "targets": list(plan.targets) if plan.targets else None,
        "changes": [change.to_dict() for change in plan.changes],
        "summary": plan.summary(),
        "has_changes": plan.has_changes,
    }
    print(json.dumps(output, indent=2, default=str))


@main_with_error_handling()
def plan_command(
    stack_file: Optional[str] = None,
    env: Optional[str] = None,
    targets: Optional[List[str]] = None,
    destroy: bool = False,
    output_format: str = "text",
    verbose: bool = False,
    config: Optional[str] = None,
) -> int:
    """
    Preview the changes an apply would make.

    Args:
        stack_file: Path to stack YAML file (defaults to settings.stack_file)
        env: Environment overlay to apply
        targets: Only plan these resource groups
        destroy: Plan destruction of every applied resource group
        output_format: Output format (text, json)
        verbose: Also list unchanged resource groups
        config: Explicit config file path

    Returns:
        Exit code (0 for success)
    """
    orchestrator = build_orchestrator(stack_file, env=env, config=config)
    plan = orchestrator.plan(targets=targets, destroy=destroy)

    if output_format == "json":
        print_plan_json(plan, orchestrator.stack_name)
    else:
        print_plan_summary(plan, orchestrator.stack_name, verbose=verbose)

    return 0
