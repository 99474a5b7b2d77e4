"""Tests for the flow dependency graph and the static flow checks."""

import pytest

from nodeflow import (
    EdgeData,
    EntryMode,
    EntryState,
    ErrorLevel,
    FlowGraph,
    FlowState,
    NodeEntry,
    NodeKind,
    NodeMeta,
    NumberType,
    StringType,
    builtin_registry,
    check_flow,
    create_node,
    duplicate_input_edges,
    find_cycle,
    invalidate,
    reset_flow,
)
from nodeflow._builtins import MATH_PLUS


def _chain(*ids: str) -> FlowState:
    """Plus nodes where each node's ``a`` input reads the previous node's output."""
    flow = FlowState(nodes=[create_node(MATH_PLUS, node_id) for node_id in ids])
    for src, dst in zip(ids, ids[1:], strict=False):
        flow.get_node(dst).input("a").config.mode = EntryMode.HANDLE
        flow.edges.append(EdgeData(src, "output", dst, "a"))
    return flow


class TestFlowGraph:
    """Tests for FlowGraph."""

    def test_predecessors_and_successors(self) -> None:
        graph = FlowGraph.from_flow(_chain("x", "y", "z"))

        assert graph.predecessors("y") == ("x",)
        assert graph.successors("y") == ("z",)
        assert graph.predecessors("x") == ()

    def test_descendants(self) -> None:
        graph = FlowGraph.from_flow(_chain("x", "y", "z"))

        assert graph.descendants("x") == frozenset({"y", "z"})
        assert graph.descendants("z") == frozenset()

    def test_parallel_edges_are_one_dependency(self) -> None:
        flow = _chain("x", "y")
        flow.get_node("y").input("b").config.mode = EntryMode.HANDLE
        flow.edges.append(EdgeData("x", "output", "y", "b"))

        assert FlowGraph.from_flow(flow).predecessors("y") == ("x",)

    def test_dangling_edges_are_ignored(self) -> None:
        flow = _chain("x")
        flow.edges.append(EdgeData("ghost", "output", "x", "a"))

        graph = FlowGraph.from_flow(flow)

        assert len(graph) == 1
        assert "ghost" not in graph


class TestFindCycle:
    """Tests for find_cycle."""

    def test_acyclic(self) -> None:
        assert find_cycle(_chain("x", "y", "z")) is None

    def test_cycle_is_a_closed_path(self) -> None:
        flow = _chain("x", "y", "z")
        flow.edges.append(EdgeData("z", "output", "x", "a"))

        cycle = find_cycle(flow)

        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"x", "y", "z"}

    def test_self_loop(self) -> None:
        flow = _chain("x")
        flow.edges.append(EdgeData("x", "output", "x", "a"))

        assert find_cycle(flow) == ["x", "x"]


class TestDuplicateInputEdges:
    """Tests for duplicate_input_edges."""

    def test_groups_edges_per_input(self) -> None:
        flow = _chain("x", "y", "z")
        extra = EdgeData("x", "output", "z", "a", id="extra")
        flow.edges.append(extra)

        groups = duplicate_input_edges(flow)

        assert groups == [[EdgeData("y", "output", "z", "a"), extra]]

    def test_no_duplicates(self) -> None:
        assert duplicate_input_edges(_chain("x", "y")) == []


class TestInvalidate:
    """Tests for invalidate and reset_flow."""

    @staticmethod
    def _settled(flow: FlowState) -> FlowState:
        for node in flow.nodes:
            for entry in node.entries():
                entry.runtime.set_data(1)
        return flow

    def test_resets_node_and_descendants(self) -> None:
        flow = self._settled(_chain("x", "y", "z"))

        affected = invalidate(flow, "y")

        assert affected == {"y", "z"}
        assert flow.get_node("x").output("output").runtime.state == EntryState.DATA_READY
        assert flow.get_node("y").output("output").runtime.state == EntryState.INIT
        assert flow.get_node("z").input("a").runtime.state == EntryState.INIT

    def test_unknown_node(self) -> None:
        with pytest.raises(KeyError):
            invalidate(_chain("x"), "nope")

    def test_reset_flow_descends_into_sub_flows(self) -> None:
        inner = self._settled(_chain("inner"))
        compound = NodeMeta(id="test/compound", kind=NodeKind.COMPOUND, flow=inner)
        flow = FlowState(nodes=[create_node(compound, "c")])
        sub_flow = flow.get_node("c").flow
        assert sub_flow is not None
        self._settled(sub_flow)

        reset_flow(flow)

        assert sub_flow.get_node("inner").output("output").runtime.state == EntryState.INIT


class TestCheckFlow:
    """Tests for check_flow."""

    def test_valid_flow(self) -> None:
        assert check_flow(_chain("x", "y"), builtin_registry()) == []

    def test_unknown_definition(self) -> None:
        flow = FlowState(nodes=[create_node(NodeMeta(id="test/missing"), "m")])

        issues = check_flow(flow, builtin_registry())

        assert [issue.location for issue in issues] == ["m"]
        assert "Unknown node definition" in issues[0].message

    def test_dangling_edge(self) -> None:
        flow = _chain("x")
        flow.get_node("x").input("a").config.mode = EntryMode.HANDLE
        flow.edges.append(EdgeData("ghost", "output", "x", "a"))

        issues = check_flow(flow, builtin_registry())

        assert len(issues) == 1
        assert issues[0].location == "x.a"
        assert "'ghost' does not exist" in issues[0].message

    def test_missing_entry(self) -> None:
        flow = _chain("x", "y")
        flow.edges.append(EdgeData("x", "output", "y", "c"))

        issues = check_flow(flow, builtin_registry())

        assert [issue.location for issue in issues] == ["y.c"]
        assert "has no input 'c'" in issues[0].message

    def test_incompatible_types(self) -> None:
        text = NodeMeta(id="test/text", outputs=(NodeEntry("value", StringType()),))
        registry = builtin_registry()
        registry.register(text)
        flow = _chain("p")
        flow.nodes.append(create_node(text, "t"))
        flow.get_node("p").input("b").config.mode = EntryMode.HANDLE
        flow.edges.append(EdgeData("t", "value", "p", "b"))

        issues = check_flow(flow, registry)

        assert len(issues) == 1
        assert issues[0].level == ErrorLevel.ERROR
        assert "can never be assigned" in issues[0].message

    def test_overlapping_types_are_accepted(self) -> None:
        ranged = NodeMeta(id="test/ranged", outputs=(NodeEntry("value", NumberType(min=-10, max=10)),))
        registry = builtin_registry()
        registry.register(ranged)
        flow = _chain("p")
        flow.nodes.append(create_node(ranged, "r"))
        flow.get_node("p").input("b").config.mode = EntryMode.HANDLE
        flow.edges.append(EdgeData("r", "value", "p", "b"))

        assert check_flow(flow, registry) == []

    def test_cycle(self) -> None:
        flow = _chain("x", "y")
        flow.edges.append(EdgeData("y", "output", "x", "a"))

        issues = check_flow(flow, builtin_registry())

        assert any(issue.message.startswith("Cycle detected in flow") for issue in issues)

    def test_duplicate_edges_are_warnings(self) -> None:
        flow = _chain("x", "y", "z")
        flow.edges.append(EdgeData("x", "output", "z", "a"))

        issues = check_flow(flow, builtin_registry())

        assert len(issues) == 1
        assert issues[0].level == ErrorLevel.WARNING
        assert issues[0].location == "z.a"

    def test_sub_flow_issues_are_prefixed(self) -> None:
        inner = _chain("inner")
        inner.get_node("inner").input("a").config.mode = EntryMode.HANDLE
        inner.edges.append(EdgeData("ghost", "output", "inner", "a"))
        compound = NodeMeta(id="test/compound", kind=NodeKind.COMPOUND, flow=inner)
        registry = builtin_registry()
        registry.register(compound)
        flow = FlowState(nodes=[create_node(compound, "c")])

        issues = check_flow(flow, registry)

        assert [issue.location for issue in issues] == ["c/inner.a"]

    def test_edge_into_literal_input_is_a_warning(self) -> None:
        flow = _chain("x", "y")
        flow.edges.append(EdgeData("x", "output", "y", "b"))

        issues = check_flow(flow, builtin_registry())

        assert len(issues) == 1
        assert issues[0].level == ErrorLevel.WARNING
        assert issues[0].location == "y.b"
        assert "input mode" in issues[0].message
