"""
CLI commands for inspecting applied state and the dependency graph.
"""

import json
from typing import List, Optional

from rich.markup import escape

from stackwise.cli.plan import build_orchestrator
from stackwise.cli.ux import console, header, info, print_key_value, print_table, success, warning
from stackwise.config import load_settings
from stackwise.core.errors import StateStoreError, main_with_error_handling
from stackwise.state import create_state_store


def _store(config: Optional[str]):
    return create_state_store(load_settings(config))


@main_with_error_handling()
def state_list_command(output_format: str = "text", config: Optional[str] = None) -> int:
    """List every applied resource group."""
    states = _store(config).list()

    if output_format == "json":
        print(json.dumps([state.to_dict() for state in states], indent=2))
        return 0

    if not states:
        info("No resource groups have been applied")
        return 0

    print_table(
        "Applied resource groups",
        ["Resource group", "Inputs hash", "Applied at", "Depends on"],
        [
            [
                state.resource_group_name,
                state.inputs_hash[:12],
                state.applied_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
                ", ".join(state.dependencies) or "-",
            ]
            for state in states
        ],
    )
    return 0


@main_with_error_handling()
def state_show_command(name: str, output_format: str = "text", config: Optional[str] = None) -> int:
    """Show the recorded state of one resource group."""
    state = _store(config).get(name)
    if state is None:
        raise StateStoreError(f"No applied state for '{name}'", {"group": name})

    if output_format == "json":
        print(json.dumps(state.to_dict(), indent=2))
        return 0

    print_key_value(
        {
            "inputs_hash": state.inputs_hash,
            "applied_at": state.applied_at.isoformat(),
            "dependencies": ", ".join(state.dependencies) or "-",
        },
        title=state.resource_group_name,
    )
    print_key_value({key: escape(repr(value)) for key, value in sorted(state.outputs.items())}, title="Outputs")
    return 0


@main_with_error_handling()
def state_rm_command(name: str, config: Optional[str] = None) -> int:
    """Forget a resource group without destroying it."""
    store = _store(config)
    if store.get(name) is None:
        raise StateStoreError(f"No applied state for '{name}'", {"group": name})

    with store.lock(f"state-rm:{name}"):
        store.delete(name)
    success(f"Removed '{name}' from state; the resources themselves were not touched")
    return 0


@main_with_error_handling()
def state_unlock_command(config: Optional[str] = None) -> int:
    """Release a run lock left behind by a crashed apply."""
    store = _store(config)
    force_unlock = getattr(store, "force_unlock", None)
    if force_unlock is None:
        warning("This state backend has no persistent lock")
        return 0

    if force_unlock():
        success("State lock released")
    else:
        info("State was not locked")
    return 0


@main_with_error_handling()
def graph_command(
    stack_file: Optional[str] = None,
    env: Optional[str] = None,
    targets: Optional[List[str]] = None,
    output_format: str = "text",
    config: Optional[str] = None,
) -> int:
    """Print resource groups in apply order with their dependencies."""
    orchestrator = build_orchestrator(stack_file, env=env, config=config)
    graph = orchestrator.graph()
    ordered = graph.order()
    if targets:
        selected = graph.upstream(targets)
        ordered = [spec for spec in ordered if spec.name in selected]

    if output_format == "json":
        output = {
            "stack": orchestrator.stack_name,
            "order": [spec.name for spec in ordered],
            "dependencies": {spec.name: graph.dependencies(spec.name) for spec in ordered},
        }
        print(json.dumps(output, indent=2))
        return 0

    header(f"Graph: {orchestrator.stack_name}")
    console.print()
    for position, spec in enumerate(ordered, start=1):
        deps = graph.dependencies(spec.name)
        suffix = f" [muted]← {', '.join(deps)}[/muted]" if deps else ""
        console.print(f"  {position:>3}. [bold]{spec.name}[/bold]{suffix}")
    console.print()
    return 0
