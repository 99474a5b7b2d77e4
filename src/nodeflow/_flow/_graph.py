"""Dependency graph of the nodes in a flow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._model import EdgeData, FlowState


@dataclass(frozen=True, slots=True)
class FlowGraph:
    """Node-level dependency graph of a flow.

    ``predecessors[b] = {a}`` means "b reads an output of a". Node ids keep the flow's
    declaration order so that traversals are deterministic.
    """

    node_ids: tuple[str, ...] = ()
    _predecessors: dict[str, tuple[str, ...]] = field(default_factory=dict)
    _successors: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_flow(cls, flow: FlowState) -> FlowGraph:
        """Build the graph of a flow; edges naming unknown nodes are ignored."""
        node_ids = tuple(node.id for node in flow.nodes)
        known = set(node_ids)
        predecessors: dict[str, list[str]] = {n: [] for n in node_ids}
        successors: dict[str, list[str]] = {n: [] for n in node_ids}
        for edge in flow.edges:
            src, dst = edge.source_node, edge.target_node
            if src not in known or dst not in known:
                continue
            if src not in predecessors[dst]:
                predecessors[dst].append(src)
                successors[src].append(dst)
        return cls(
            node_ids=node_ids,
            _predecessors={k: tuple(v) for k, v in predecessors.items()},
            _successors={k: tuple(v) for k, v in successors.items()},
        )

    def predecessors(self, node: str) -> tuple[str, ...]:
        return self._predecessors.get(node, ())

    def successors(self, node: str) -> tuple[str, ...]:
        return self._successors.get(node, ())

    def descendants(self, node: str) -> frozenset[str]:
        """Get all nodes that transitively depend on ``node``."""
        visited: set[str] = set()
        stack = list(self.successors(node))
        while stack:
            current = stack.pop()
            if current not in visited:
                visited.add(current)
                stack.extend(self.successors(current))
        return frozenset(visited)

    def find_cycle(self) -> list[str] | None:
        """Return one cycle as a closed path of node ids, or ``None`` when acyclic."""
        visiting: list[str] = []
        done: set[str] = set()

        def visit(node: str) -> list[str] | None:
            if node in visiting:
                return [*visiting[visiting.index(node) :], node]
            if node in done:
                return None
            visiting.append(node)
            for successor in self.successors(node):
                if (cycle := visit(successor)) is not None:
                    return cycle
            visiting.pop()
            done.add(node)
            return None

        for node in self.node_ids:
            if (cycle := visit(node)) is not None:
                return cycle
        return None

    def __len__(self) -> int:
        return len(self.node_ids)

    def __contains__(self, node: str) -> bool:
        return node in self._predecessors


def find_cycle(flow: FlowState) -> list[str] | None:
    """Find a dependency cycle in a flow (not descending into sub-flows)."""
    return FlowGraph.from_flow(flow).find_cycle()


def duplicate_input_edges(flow: FlowState) -> list[list[EdgeData]]:
    """Groups of edges feeding the same input entry, for every input fed more than once."""
    groups: dict[tuple[str, str], list[EdgeData]] = {}
    for edge in flow.edges:
        groups.setdefault((edge.target_node, edge.target_entry), []).append(edge)
    return [edges for edges in groups.values() if len(edges) > 1]


def reset_flow(flow: FlowState) -> None:
    """Put every entry of the flow, including embedded sub-flows, back to ``init``."""
    for node in flow.nodes:
        node.reset()
        for sub_flow in (node.flow, node.template):
            if sub_flow is not None:
                reset_flow(sub_flow)


def invalidate(flow: FlowState, node_id: str) -> set[str]:
    """Reset a node and every node depending on it.

    Call this after changing an input literal or an upstream value so that the next
    preparation recomputes the affected nodes.

    Returns:
        Ids of the nodes that were reset.

    Raises:
        KeyError: If the flow has no node with this id.

    """
    graph = FlowGraph.from_flow(flow)
    if node_id not in graph:
        msg = f"No node '{node_id}' in flow"
        raise KeyError(msg)
    affected = {node_id} | graph.descendants(node_id)
    for node in flow.nodes:
        if node.id in affected:
            node.reset()
            for sub_flow in (node.flow, node.template):
                if sub_flow is not None:
                    reset_flow(sub_flow)
    return affected
