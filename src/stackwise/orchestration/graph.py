"""Dependency graph over resource groups."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Iterator, List, Sequence, Set, Tuple

from stackwise.core.errors import (
    CycleDetected,
    DanglingReference,
    DuplicateResourceGroup,
    UnknownReference,
)
from stackwise.specs.models import ResourceGroupSpec
from stackwise.state.models import AppliedState


class StackGraph:
    """DAG where each resource group points at the groups it depends on.

    Declaration order is significant: it breaks ties between independent
    groups so the same stack always yields the same apply order.
    """

    def __init__(
        self,
        specs: Sequence[ResourceGroupSpec],
        *,
        applied_names: Iterable[str] = (),
    ) -> None:
        self._specs: Dict[str, ResourceGroupSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise DuplicateResourceGroup(spec.name)
            self._specs[spec.name] = spec
        self._position = {name: i for i, name in enumerate(self._specs)}

        applied = set(applied_names)
        for spec in self._specs.values():
            for reference in spec.references.values():
                if reference.group not in self._specs:
                    if reference.group in applied:
                        raise DanglingReference(spec.name, reference.group)
                    raise UnknownReference(spec.name, reference.group, reference.output)
            for name in sorted(spec.depends_on):
                if name not in self._specs:
                    if name in applied:
                        raise DanglingReference(spec.name, name)
                    raise UnknownReference(spec.name, name)

        self._edges: Dict[str, List[str]] = {
            name: sorted(spec.declared_dependencies, key=self._position.__getitem__)
            for name, spec in self._specs.items()
        }

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def dependencies(self, name: str) -> List[str]:
        """Direct dependencies of ``name``, in declaration order."""
        return list(self._edges[name])

    def dependents(self, name: str) -> List[str]:
        """Groups that directly depend on ``name``, in declaration order."""
        return [other for other, deps in self._edges.items() if name in deps]

    def upstream(self, names: Iterable[str]) -> Set[str]:
        """``names`` plus everything they transitively depend on."""
        seen: Set[str] = set()
        pending = list(names)
        while pending:
            name = pending.pop()
            if name in seen:
                continue
            if name not in self._specs:
                raise UnknownReference("<target>", name, reason="no such resource group")
            seen.add(name)
            pending.extend(self._edges[name])
        return seen

    def find_cycles(self) -> List[List[str]]:
        """Every strongly connected component that forms a cycle.

        Members of each cycle are listed in declaration order.
        """
        index: Dict[str, int] = {}
        low: Dict[str, int] = {}
        stack: List[str] = []
        on_stack: Set[str] = set()
        components: List[List[str]] = []

        for root in self._specs:
            if root in index:
                continue
            index[root] = low[root] = len(index)
            stack.append(root)
            on_stack.add(root)
            work: List[Tuple[str, Iterator[str]]] = [(root, iter(self._edges[root]))]

            while work:
                node, deps = work[-1]
                dep = next(deps, None)
                if dep is not None:
                    if dep not in index:
                        index[dep] = low[dep] = len(index)
                        stack.append(dep)
                        on_stack.add(dep)
                        work.append((dep, iter(self._edges[dep])))
                    elif dep in on_stack:
                        low[node] = min(low[node], index[dep])
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(component)

        cycles = [
            sorted(component, key=self._position.__getitem__)
            for component in components
            if len(component) > 1 or component[0] in self._edges[component[0]]
        ]
        return sorted(cycles, key=lambda cycle: self._position[cycle[0]])

    def order(self) -> List[ResourceGroupSpec]:
        """Topological order: every dependency precedes its dependents."""
        cycles = self.find_cycles()
        if cycles:
            raise CycleDetected(cycles)

        return [self._specs[name] for name in _post_order(self._specs, self._edges.__getitem__)]


def _post_order(roots: Iterable[str], edges: Callable[[str], Iterable[str]]) -> List[str]:
    """Depth-first post-order from each root in turn, without recursion."""
    ordered: List[str] = []
    visited: Set[str] = set()
    for root in roots:
        if root in visited:
            continue
        visited.add(root)
        work: List[Tuple[str, Iterator[str]]] = [(root, iter(edges(root)))]
        while work:
            name, deps = work[-1]
            for dep in deps:
                if dep not in visited:
                    visited.add(dep)
                    work.append((dep, iter(edges(dep))))
                    break
            else:
                work.pop()
                ordered.append(name)
    return ordered


def build(
    specs: Sequence[ResourceGroupSpec], applied_names: Iterable[str] = ()
) -> List[ResourceGroupSpec]:
    """Order ``specs`` so every group follows the groups it depends on."""
    return StackGraph(specs, applied_names=applied_names).order()


def destroy_order(states: Sequence[AppliedState]) -> List[str]:
    """Reverse topological order over recorded dependencies.

    Only dependencies among ``states`` are considered; ties go by name.
    """
    by_name = {state.resource_group_name: state for state in states}

    def edges(name: str) -> List[str]:
        return [dep for dep in sorted(by_name[name].dependencies) if dep in by_name]

    return list(reversed(_post_order(sorted(by_name), edges)))
