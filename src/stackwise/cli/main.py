"""
Command line entrypoint for stackwise.

Usage:
    stackwise <command> [args]
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from stackwise import __version__
from stackwise.config import Settings, load_settings
from stackwise.core.errors import ConfigurationError
from stackwise.logging import configure_logging


def _add_stack_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("stack_file", nargs="?", help="Path to stack YAML file (default: settings)")
    parser.add_argument("--env", help="Environment overlay (dev, staging, prod)")
    parser.add_argument("--config", help="Path to stackwise config file")
    parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stackwise", description="Plan and apply stacks of resource groups")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Override log level (DEBUG, INFO, WARNING, ERROR)")
    subparsers = parser.add_subparsers(dest="command")

    plan_parser = subparsers.add_parser("plan", help="Preview changes without applying them")
    _add_stack_arguments(plan_parser)
    plan_parser.add_argument("--target", dest="targets", action="append", help="Only plan this resource group (repeatable)")
    plan_parser.add_argument("--destroy", action="store_true", help="Plan destruction of everything applied")
    plan_parser.add_argument("-v", "--verbose", action="store_true", help="Also show unchanged resource groups")

    apply_parser = subparsers.add_parser("apply", help="Apply changes to reach the declared state")
    _add_stack_arguments(apply_parser)
    apply_parser.add_argument("--target", dest="targets", action="append", help="Only apply this resource group (repeatable)")
    apply_parser.add_argument("--auto-approve", action="store_true", help="Skip interactive confirmation")
    apply_parser.add_argument("--parallelism", type=int, help="Apply up to N independent resource groups at once")
    apply_parser.add_argument("-v", "--verbose", action="store_true", help="Show outputs of applied groups")

    destroy_parser = subparsers.add_parser("destroy", help="Destroy every applied resource group")
    _add_stack_arguments(destroy_parser)
    destroy_parser.add_argument("--auto-approve", action="store_true", help="Skip interactive confirmation")
    destroy_parser.add_argument("-v", "--verbose", action="store_true", help="Show more detail")

    graph_parser = subparsers.add_parser("graph", help="Show resource groups in apply order")
    _add_stack_arguments(graph_parser)
    graph_parser.add_argument("--target", dest="targets", action="append", help="Only show this group and its upstream")

    state_parser = subparsers.add_parser("state", help="Inspect and edit applied state")
    state_subparsers = state_parser.add_subparsers(dest="state_command")

    state_list = state_subparsers.add_parser("list", help="List applied resource groups")
    state_list.add_argument("--config", help="Path to stackwise config file")
    state_list.add_argument("--output", choices=["text", "json"], default="text", help="Output format")

    state_show = state_subparsers.add_parser("show", help="Show one resource group's applied state")
    state_show.add_argument("name", help="Resource group name")
    state_show.add_argument("--config", help="Path to stackwise config file")
    state_show.add_argument("--output", choices=["text", "json"], default="text", help="Output format")

    state_rm = state_subparsers.add_parser("rm", help="Forget a resource group without destroying it")
    state_rm.add_argument("name", help="Resource group name")
    state_rm.add_argument("--config", help="Path to stackwise config file")

    state_unlock = state_subparsers.add_parser("unlock", help="Release a stale run lock")
    state_unlock.add_argument("--config", help="Path to stackwise config file")

    return parser


def _startup_settings(config: str | None) -> Settings:
    try:
        return load_settings(config)
    except ConfigurationError:
        # the command reports a broken config file itself
        return Settings()


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = _startup_settings(getattr(args, "config", None))
    configure_logging(args.log_level or settings.log_level, settings.log_format)

    if args.command == "plan":
        from stackwise.cli.plan import plan_command

        sys.exit(plan_command(
            args.stack_file,
            env=args.env,
            targets=args.targets,
            destroy=args.destroy,
            output_format=args.output,
            verbose=args.verbose,
            config=args.config,
        ))

    if args.command == "apply":
        from stackwise.cli.apply import apply_command

        sys.exit(apply_command(
            args.stack_file,
            env=args.env,
            targets=args.targets,
            auto_approve=args.auto_approve,
            parallelism=args.parallelism,
            output_format=args.output,
            verbose=args.verbose,
            config=args.config,
        ))

    if args.command == "destroy":
        from stackwise.cli.apply import destroy_command

        sys.exit(destroy_command(
            args.stack_file,
            env=args.env,
            auto_approve=args.auto_approve,
            output_format=args.output,
            verbose=args.verbose,
            config=args.config,
        ))

    if args.command == "graph":
        from stackwise.cli.state import graph_command

        sys.exit(graph_command(
            args.stack_file,
            env=args.env,
            targets=args.targets,
            output_format=args.output,
            config=args.config,
        ))

    if args.command == "state":
        from stackwise.cli import state as state_cli

        if args.state_command == "list":
            sys.exit(state_cli.state_list_command(output_format=args.output, config=args.config))
        if args.state_command == "show":
            sys.exit(state_cli.state_show_command(args.name, output_format=args.output, config=args.config))
        if args.state_command == "rm":
            sys.exit(state_cli.state_rm_command(args.name, config=args.config))
        if args.state_command == "unlock":
            sys.exit(state_cli.state_unlock_command(config=args.config))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
