"""Tests for dependency ordering of resource groups."""

import pytest

from stackwise.core.errors import (
    CycleDetected,
    DanglingReference,
    DuplicateResourceGroup,
    UnknownReference,
)
from stackwise.orchestration.graph import StackGraph, build, destroy_order
from stackwise.specs.models import ResourceGroupSpec
from stackwise.state.models import AppliedState


def spec(name, *deps, **inputs):
    refs = {f"from_{dep}": f"${{{dep}.id}}" for dep in deps}
    return ResourceGroupSpec.create(name, {**inputs, **refs})


def names(specs):
    return [s.name for s in specs]


class TestOrder:
    def test_dependency_precedes_dependent(self):
        ordered = build([spec("database", "network"), spec("network")])

        assert names(ordered) == ["network", "database"]

    def test_independent_groups_keep_declaration_order(self):
        ordered = build([spec("c"), spec("a"), spec("b")])

        assert names(ordered) == ["c", "a", "b"]

    def test_diamond(self):
        ordered = build(
            [
                spec("app", "cache", "database"),
                spec("cache", "network"),
                spec("database", "network"),
                spec("network"),
            ]
        )

        assert names(ordered) == ["network", "cache", "database", "app"]

    def test_depends_on_orders_without_wiring(self):
        ordered = build(
            [
                ResourceGroupSpec.create("dns", depends_on=["app"]),
                ResourceGroupSpec.create("app"),
            ]
        )

        assert names(ordered) == ["app", "dns"]

    def test_deterministic(self):
        specs = [spec("x", "z"), spec("y"), spec("z", "y")]

        assert names(build(specs)) == names(build(list(specs)))

    def test_empty(self):
        assert build([]) == []


class TestCycles:
    def test_cycle_names_every_member(self):
        specs = [spec("network"), spec("a", "c"), spec("b", "a"), spec("c", "b")]

        with pytest.raises(CycleDetected) as exc_info:
            build(specs)

        assert exc_info.value.cycles == [["a", "b", "c"]]
        assert "a, b, c" in exc_info.value.message

    def test_self_reference_is_a_cycle(self):
        with pytest.raises(CycleDetected) as exc_info:
            build([spec("loop", "loop")])

        assert exc_info.value.participants == ["loop"]

    def test_multiple_cycles_reported_together(self):
        specs = [spec("a", "b"), spec("b", "a"), spec("c", "d"), spec("d", "c"), spec("e", "a")]

        with pytest.raises(CycleDetected) as exc_info:
            build(specs)

        assert exc_info.value.cycles == [["a", "b"], ["c", "d"]]

    def test_find_cycles_on_acyclic_graph(self):
        assert StackGraph([spec("a"), spec("b", "a")]).find_cycles() == []


class TestValidation:
    def test_unknown_reference(self):
        with pytest.raises(UnknownReference) as exc_info:
            build([spec("app", "database")])

        assert exc_info.value.group == "app"
        assert exc_info.value.referenced == "database"
        assert not isinstance(exc_info.value, DanglingReference)

    def test_unknown_depends_on(self):
        with pytest.raises(UnknownReference):
            build([ResourceGroupSpec.create("app", depends_on=["ghost"])])

    def test_reference_to_removed_group_is_dangling(self):
        """A group dropped from the stack but still referenced cannot be destroyed."""
        with pytest.raises(DanglingReference) as exc_info:
            build([spec("app", "database")], applied_names=["database", "app"])

        assert exc_info.value.referenced == "database"
        assert "still referenced" in exc_info.value.message

    def test_duplicate_names(self):
        with pytest.raises(DuplicateResourceGroup):
            build([spec("a"), spec("a")])


class TestNeighbours:
    @pytest.fixture
    def graph(self):
        return StackGraph(
            [spec("network"), spec("database", "network"), spec("app", "database"), spec("cdn")]
        )

    def test_dependencies_and_dependents(self, graph):
        assert graph.dependencies("app") == ["database"]
        assert graph.dependents("network") == ["database"]
        assert graph.dependents("cdn") == []

    def test_upstream_is_transitive(self, graph):
        assert graph.upstream(["app"]) == {"app", "database", "network"}

    def test_upstream_unknown_name(self, graph):
        with pytest.raises(UnknownReference):
            graph.upstream(["nope"])

    def test_membership(self, graph):
        assert "cdn" in graph
        assert "nope" not in graph
        assert len(graph) == 4


def applied(name, *deps):
    return AppliedState(resource_group_name=name, inputs_hash="h", dependencies=deps)


class TestDestroyOrder:
    def test_dependents_destroyed_first(self):
        states = [applied("network"), applied("database", "network"), applied("app", "database")]

        assert destroy_order(states) == ["app", "database", "network"]

    def test_dependencies_outside_the_set_are_ignored(self):
        states = [applied("app", "database"), applied("cdn")]

        assert destroy_order(states) == ["cdn", "app"]


class TestLongChains:
    DEPTH = 5000

    def chain(self):
        """Each group depends on the one before it, declared last-first."""
        specs = [spec("g0")] + [spec(f"g{i}", f"g{i - 1}") for i in range(1, self.DEPTH)]
        return list(reversed(specs))

    def test_order_is_not_limited_by_depth(self):
        ordered = build(self.chain())

        assert names(ordered) == [f"g{i}" for i in range(self.DEPTH)]

    def test_cycle_through_long_chain(self):
        specs = self.chain()
        specs[-1] = spec("g0", f"g{self.DEPTH - 1}")

        with pytest.raises(CycleDetected) as exc_info:
            build(specs)

        assert len(exc_info.value.participants) == self.DEPTH

    def test_destroy_order_is_not_limited_by_depth(self):
        states = [applied("g0")] + [applied(f"g{i}", f"g{i - 1}") for i in range(1, self.DEPTH)]

        assert destroy_order(states) == [f"g{i}" for i in reversed(range(self.DEPTH))]
