"""Execution and inference engine for nodeflow.

The engine prepares nodes by pulling their inputs from upstream outputs, invoking
their data-producing or type-inferring implementations and recording per-entry state.

Key types:
- EngineContext: Explicit configuration (definitions, capabilities, code evaluator)
- NodeResult: Snapshot of a prepared node
- FlowResult: Snapshots of every node of a flow and the errors found
- prepare_node / prepare_flow / execute_sub_flow: Entry points
"""

from ._context import EngineContext
from ._engine import (
    INPUT_CATEGORY,
    INPUT_NAME_ATTRIBUTE,
    OUTPUT_CATEGORY,
    OUTPUT_NAME_ATTRIBUTE,
    SINK_ENTRY,
    SOURCE_ENTRY,
    FlowResult,
    NodeResult,
    execute_sub_flow,
    prepare_flow,
    prepare_node,
)

__all__ = [
    "INPUT_CATEGORY",
    "INPUT_NAME_ATTRIBUTE",
    "OUTPUT_CATEGORY",
    "OUTPUT_NAME_ATTRIBUTE",
    "SINK_ENTRY",
    "SOURCE_ENTRY",
    "EngineContext",
    "FlowResult",
    "NodeResult",
    "execute_sub_flow",
    "prepare_flow",
    "prepare_node",
]
