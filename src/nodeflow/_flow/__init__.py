"""Flow model: node definitions and instances, edges, registries and graph utilities."""

from ._check import FlowIssue, check_flow
from ._factory import create_node
from ._graph import FlowGraph, duplicate_input_edges, find_cycle, invalidate, reset_flow
from ._model import (
    EdgeData,
    EntryConfig,
    EntryRuntime,
    ExceptionError,
    FlowState,
    NodeData,
    NodeEntry,
    NodeEntryData,
    NodeError,
    NodeMeta,
    NodeMetaRef,
    ValidateError,
)
from ._registry import NodeRegistry, compare_versions

__all__ = [
    "EdgeData",
    "EntryConfig",
    "EntryRuntime",
    "ExceptionError",
    "FlowGraph",
    "FlowIssue",
    "FlowState",
    "NodeData",
    "NodeEntry",
    "NodeEntryData",
    "NodeError",
    "NodeMeta",
    "NodeMetaRef",
    "NodeRegistry",
    "ValidateError",
    "check_flow",
    "compare_versions",
    "create_node",
    "duplicate_input_edges",
    "find_cycle",
    "invalidate",
    "reset_flow",
]
