"""Orchestration package: dependency graph, planning and execution."""

from stackwise.orchestration.executor import Executor, RunCancellation
from stackwise.orchestration.graph import StackGraph, build, destroy_order
from stackwise.orchestration.planner import Planner, plan_stack
from stackwise.orchestration.results import (
    ApplyResult,
    ChangeAction,
    Plan,
    PlannedChange,
    ResultCollector,
)

__all__ = [
    "ApplyResult",
    "ChangeAction",
    "Executor",
    "Plan",
    "PlannedChange",
    "Planner",
    "ResultCollector",
    "RunCancellation",
    "StackGraph",
    "build",
    "destroy_order",
    "plan_stack",
]
