"""Aggregation of entry states into node-level states."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nodeflow._enums import EntryState, NodeState, RecommendationLevel

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nodeflow._flow import NodeEntry, NodeEntryData


def input_state(declared: Sequence[NodeEntry], entries: Sequence[NodeEntryData]) -> NodeState:
    """Readiness of a node's inputs.

    ``not-ready`` when an input at ``MUST`` level is neither data- nor type-ready,
    ``type-ready`` when some input is only known by type, ``data-ready`` otherwise.
    Inputs below ``MUST`` level that are missing do not block the node.
    """
    type_only = False
    for decl, entry in zip(declared, entries, strict=True):
        state = entry.runtime.state
        if not state.is_known:
            if decl.level >= RecommendationLevel.MUST:
                return NodeState.NOT_READY
            continue
        if state == EntryState.TYPE_READY:
            type_only = True
    return NodeState.TYPE_READY if type_only else NodeState.DATA_READY


def output_state(entries: Sequence[NodeEntryData], inputs: NodeState) -> NodeState:
    """State of a node's outputs; a node without outputs mirrors its input state."""
    if not entries:
        return inputs
    states = [entry.runtime.state for entry in entries]
    if EntryState.VALIDATE_FAILED in states:
        return NodeState.VALIDATE_FAILED
    if all(state == EntryState.DATA_READY for state in states):
        return NodeState.DATA_READY
    if all(state.is_known for state in states):
        return NodeState.TYPE_READY
    return NodeState.NOT_READY
