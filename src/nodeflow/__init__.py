"""Typed dataflow graphs with pull-based execution and type inference."""

__all__ = [
    "ANY",
    "BUILTIN_METAS",
    "NEVER",
    "AnyType",
    "ArrayType",
    "BoolType",
    "Capabilities",
    "Code",
    "CodeRef",
    "ConfigurationError",
    "CycleError",
    "DictField",
    "DictType",
    "EdgeData",
    "EngineContext",
    "EntryConfig",
    "EntryMode",
    "EntryRuntime",
    "EntryState",
    "ErrorLevel",
    "FlowDocument",
    "FlowGraph",
    "FlowIssue",
    "FlowResult",
    "FlowState",
    "LibraryDocument",
    "MalformedResultError",
    "MissingNodeMetaError",
    "NDArray",
    "NDArrayType",
    "NeverType",
    "NodeData",
    "NodeEntry",
    "NodeEntryData",
    "NodeEntryType",
    "NodeError",
    "NodeKind",
    "NodeMeta",
    "NodeMetaRef",
    "NodeRegistry",
    "NodeResult",
    "NodeState",
    "NodeflowError",
    "NumberType",
    "Produced",
    "PythonObject",
    "PythonObjectType",
    "RecommendationLevel",
    "Skip",
    "StringConstraint",
    "StringType",
    "Tensor",
    "TensorType",
    "TypeModelError",
    "UniformShape",
    "UnionType",
    "UnknownCapabilityError",
    "Unsupported",
    "ValidationFailed",
    "build_flow",
    "builtin_capabilities",
    "builtin_registry",
    "check_flow",
    "combine",
    "combine_union",
    "compare",
    "create_node",
    "default_value",
    "dump_entry_type",
    "dump_flow_runtime",
    "duplicate_input_edges",
    "evaluate_python",
    "execute_sub_flow",
    "export_results_to_toml",
    "find_cycle",
    "invalidate",
    "load_flow",
    "load_library",
    "may_assign",
    "must_assign",
    "normalize",
    "parse_entry_type",
    "prepare_flow",
    "prepare_node",
    "reset_flow",
    "sort_types",
    "try_combine",
    "type_of_value",
    "types_equal",
    "validate_value",
]

from ._assignable import may_assign, must_assign
from ._builtins import BUILTIN_METAS, builtin_capabilities, builtin_registry
from ._code import Capabilities, Code, CodeRef, Produced, Skip, Unsupported, evaluate_python
from ._combine import combine, combine_union, try_combine
from ._compare import compare, sort_types, types_equal
from ._default import default_value
from ._engine import EngineContext, FlowResult, NodeResult, execute_sub_flow, prepare_flow, prepare_node
from ._enums import EntryMode, EntryState, ErrorLevel, NodeKind, NodeState, RecommendationLevel
from ._errors import (
    ConfigurationError,
    CycleError,
    MalformedResultError,
    MissingNodeMetaError,
    NodeflowError,
    TypeModelError,
    UnknownCapabilityError,
    ValidationFailed,
)
from ._flow import (
    EdgeData,
    EntryConfig,
    EntryRuntime,
    FlowGraph,
    FlowIssue,
    FlowState,
    NodeData,
    NodeEntry,
    NodeEntryData,
    NodeError,
    NodeMeta,
    NodeMetaRef,
    NodeRegistry,
    check_flow,
    create_node,
    duplicate_input_edges,
    find_cycle,
    invalidate,
    reset_flow,
)
from ._io import (
    FlowDocument,
    LibraryDocument,
    build_flow,
    dump_flow_runtime,
    export_results_to_toml,
    load_flow,
    load_library,
)
from ._normalize import normalize
from ._types import (
    ANY,
    NEVER,
    AnyType,
    ArrayType,
    BoolType,
    DictField,
    DictType,
    NDArrayType,
    NeverType,
    NodeEntryType,
    NumberType,
    PythonObjectType,
    StringConstraint,
    StringType,
    TensorType,
    UniformShape,
    UnionType,
    dump_entry_type,
    parse_entry_type,
)
from ._validate import validate_value
from ._values import NDArray, PythonObject, Tensor, type_of_value
