"""Static checks of a flow against the node definitions it uses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from nodeflow._assignable import may_assign
from nodeflow._enums import EntryMode, ErrorLevel

from ._graph import duplicate_input_edges, find_cycle

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._model import EdgeData, FlowState, NodeMeta, NodeMetaRef


@dataclass(frozen=True, slots=True)
class FlowIssue:
    """One problem found by :func:`check_flow`.

    ``location`` is a dotted path: ``node``, ``node.entry`` or ``compound/inner``.
    """

    location: str
    message: str
    level: ErrorLevel = ErrorLevel.ERROR


def _edges_into_literals(flow: FlowState) -> list[EdgeData]:
    literal = {
        (node.id, entry.name) for node in flow.nodes for entry in node.inputs if entry.config.mode == EntryMode.INPUT
    }
    return [edge for edge in flow.edges if (edge.target_node, edge.target_entry) in literal]


def check_flow(  # noqa: C901
    flow: FlowState,
    resolve_meta: Callable[[NodeMetaRef], NodeMeta | None],
    *,
    prefix: str = "",
) -> list[FlowIssue]:
    """Check a flow without evaluating it.

    Reports unknown definitions, dangling edges, cycles and edges whose declared types
    cannot overlap. Inputs fed by several edges, or fed by an edge while taking a literal
    value, are reported as warnings. Embedded sub-flows are checked too.
    """
    issues: list[FlowIssue] = []
    metas: dict[str, NodeMeta] = {}
    for node in flow.nodes:
        meta = resolve_meta(node.meta)
        if meta is None:
            issues.append(FlowIssue(f"{prefix}{node.id}", f"Unknown node definition '{node.meta}'"))
        else:
            metas[node.id] = meta
        if node.sub_flow is not None:
            issues.extend(check_flow(node.sub_flow, resolve_meta, prefix=f"{prefix}{node.id}/"))

    for edge in flow.edges:
        location = f"{prefix}{edge.target_node}.{edge.target_entry}"
        if not flow.has_node(edge.source_node):
            issues.append(FlowIssue(location, f"Edge source node '{edge.source_node}' does not exist"))
            continue
        if not flow.has_node(edge.target_node):
            issues.append(FlowIssue(location, f"Edge target node '{edge.target_node}' does not exist"))
            continue
        source_meta, target_meta = metas.get(edge.source_node), metas.get(edge.target_node)
        if source_meta is None or target_meta is None:
            continue
        try:
            source = source_meta.output(edge.source_entry)
            target = target_meta.input(edge.target_entry)
        except KeyError as e:
            issues.append(FlowIssue(location, e.args[0]))
            continue
        if not may_assign(target.type, source.type):
            msg = f"Output {edge.source_node}.{edge.source_entry} can never be assigned to this input"
            issues.append(FlowIssue(location, msg))

    if (cycle := find_cycle(flow)) is not None:
        issues.append(FlowIssue(prefix.rstrip("/") or "<flow>", "Cycle detected in flow: " + " -> ".join(cycle)))

    for edges in duplicate_input_edges(flow):
        first = edges[0]
        msg = f"Input is fed by {len(edges)} edges; only the first one is used"
        issues.append(FlowIssue(f"{prefix}{first.target_node}.{first.target_entry}", msg, ErrorLevel.WARNING))

    for edge in _edges_into_literals(flow):
        msg = f"Edge from {edge.source_node}.{edge.source_entry} is ignored while the input is in input mode"
        issues.append(FlowIssue(f"{prefix}{edge.target_node}.{edge.target_entry}", msg, ErrorLevel.WARNING))

    return issues
