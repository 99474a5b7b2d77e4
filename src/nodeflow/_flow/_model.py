"""Node definitions, node instances, edges and flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nodeflow._enums import EntryMode, EntryState, ErrorLevel, NodeKind, NodeState, RecommendationLevel
from nodeflow._normalize import normalize
from nodeflow._types import ANY, NodeEntryType

if TYPE_CHECKING:
    from collections.abc import Iterator

    from nodeflow._code import Implementation


@dataclass(frozen=True, slots=True)
class NodeEntry:
    """Declaration of a single input or output of a node definition.

    The declared type is normalized on construction.

    Attributes:
        name: Entry name, unique among the inputs (or outputs) of a node.
        type: Declared type.
        level: Recommendation level; ``MUST`` inputs block readiness when missing.
        description: Human readable description.
        check_code: Optional verification code run on every value of the entry.

    """

    name: str
    type: NodeEntryType = ANY
    level: RecommendationLevel = RecommendationLevel.NORMAL
    description: str = ""
    check_code: Implementation | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", normalize(self.type))


@dataclass(frozen=True, slots=True)
class NodeMetaRef:
    """Identity of a node definition; a missing version means the latest one."""

    id: str
    version: str | None = None

    def __str__(self) -> str:
        return self.id if self.version is None else f"{self.id}@{self.version}"


@dataclass(frozen=True, slots=True)
class NodeMeta:
    """Immutable definition of a node.

    A ``base`` node is backed by a data-producing implementation (``impl``) and/or a
    type-inferring one (``type_code``). A ``compound`` node is backed by ``flow``, the
    sub-flow copied into each of its instances.
    """

    id: str
    version: str = "0.0.0"
    title: str = ""
    kind: NodeKind = NodeKind.BASE
    category: str = ""
    inputs: tuple[NodeEntry, ...] = ()
    outputs: tuple[NodeEntry, ...] = ()
    impl: Implementation | None = None
    type_code: Implementation | None = None
    check_code: Implementation | None = None
    flow: FlowState | None = None
    description: str = ""

    @property
    def ref(self) -> NodeMetaRef:
        return NodeMetaRef(self.id, self.version)

    def input(self, name: str) -> NodeEntry:
        """Get an input declaration by name.

        Raises:
            KeyError: If the node has no such input.

        """
        for entry in self.inputs:
            if entry.name == name:
                return entry
        msg = f"Node '{self.id}' has no input '{name}'"
        raise KeyError(msg)

    def output(self, name: str) -> NodeEntry:
        """Get an output declaration by name.

        Raises:
            KeyError: If the node has no such output.

        """
        for entry in self.outputs:
            if entry.name == name:
                return entry
        msg = f"Node '{self.id}' has no output '{name}'"
        raise KeyError(msg)


@dataclass(slots=True)
class EntryConfig:
    """Per-instance configuration of an entry."""

    name: str
    mode: EntryMode = EntryMode.HANDLE
    value: Any = None


@dataclass(slots=True)
class EntryRuntime:
    """Mutable evaluation state of an entry.

    Exactly one of ``data``, ``type`` and ``error`` is meaningful, depending on ``state``.
    """

    state: EntryState = EntryState.INIT
    data: Any = None
    type: NodeEntryType | None = None
    error: str | None = None

    def set_data(self, data: Any, type_: NodeEntryType | None = None) -> None:
        self.state = EntryState.DATA_READY
        self.data = data
        self.type = type_
        self.error = None

    def set_type(self, type_: NodeEntryType) -> None:
        self.state = EntryState.TYPE_READY
        self.data = None
        self.type = type_
        self.error = None

    def set_failed(self, message: str, data: Any = None) -> None:
        self.state = EntryState.VALIDATE_FAILED
        self.data = data
        self.type = None
        self.error = message

    def set_unavailable(self) -> None:
        self.state = EntryState.UNAVAILABLE
        self.data = None
        self.type = None
        self.error = None

    def set_error(self, message: str) -> None:
        self.state = EntryState.ERROR
        self.data = None
        self.type = None
        self.error = message

    def reset(self) -> None:
        self.state = EntryState.INIT
        self.data = None
        self.type = None
        self.error = None


@dataclass(slots=True)
class NodeEntryData:
    config: EntryConfig
    runtime: EntryRuntime = field(default_factory=EntryRuntime)

    @property
    def name(self) -> str:
        return self.config.name


@dataclass(frozen=True, slots=True)
class ValidateError:
    level: ErrorLevel
    entries: list[str]
    message: str


@dataclass(frozen=True, slots=True)
class ExceptionError:
    message: str


@dataclass(slots=True)
class NodeError:
    """Errors recorded while preparing the inputs or the outputs of a node."""

    validates: list[ValidateError] = field(default_factory=list)
    exception: ExceptionError | None = None

    def __bool__(self) -> bool:
        return bool(self.validates) or self.exception is not None

    def add(self, message: str, entries: list[str], level: ErrorLevel = ErrorLevel.ERROR) -> None:
        self.validates.append(ValidateError(level, entries, message))


@dataclass(slots=True)
class NodeData:
    """One instance of a node definition inside a flow.

    Attributes:
        id: Identifier, unique within the flow.
        meta: Reference to the node definition.
        inputs: Input entries, in declaration order.
        outputs: Output entries, in declaration order.
        attributes: Free-form attributes (e.g. ``outputName`` on sub-flow sinks).
        flow: Embedded sub-flow of a compound node.
        template: Sub-flow overriding ``flow`` when present.
        input_state: Aggregated input readiness after the last preparation.
        output_state: Aggregated output state after the last preparation.
        input_error: Errors found while preparing the inputs.
        output_error: Errors found while producing the outputs.
        success: ``True`` when every output settled, ``False`` on any failure and
            ``None`` when some outputs were simply not produced.

    """

    id: str
    meta: NodeMetaRef
    inputs: list[NodeEntryData] = field(default_factory=list)
    outputs: list[NodeEntryData] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)
    flow: FlowState | None = None
    template: FlowState | None = None
    input_state: NodeState | None = None
    output_state: NodeState | None = None
    input_error: NodeError = field(default_factory=NodeError)
    output_error: NodeError = field(default_factory=NodeError)
    success: bool | None = None

    def input(self, name: str) -> NodeEntryData:
        for entry in self.inputs:
            if entry.name == name:
                return entry
        msg = f"Node '{self.id}' has no input '{name}'"
        raise KeyError(msg)

    def output(self, name: str) -> NodeEntryData:
        for entry in self.outputs:
            if entry.name == name:
                return entry
        msg = f"Node '{self.id}' has no output '{name}'"
        raise KeyError(msg)

    def entries(self) -> Iterator[NodeEntryData]:
        yield from self.inputs
        yield from self.outputs

    @property
    def sub_flow(self) -> FlowState | None:
        """The flow a compound instance evaluates: the template when present."""
        return self.template if self.template is not None else self.flow

    def reset(self) -> None:
        """Put every entry back to ``init`` and forget recorded errors."""
        for entry in self.entries():
            entry.runtime.reset()
        self.input_state = None
        self.output_state = None
        self.input_error = NodeError()
        self.output_error = NodeError()
        self.success = None


@dataclass(frozen=True, slots=True)
class EdgeData:
    """Directed connection from an output entry to an input entry."""

    source_node: str
    source_entry: str
    target_node: str
    target_entry: str
    id: str = ""


@dataclass(slots=True)
class FlowState:
    """Nodes and edges of a flow, in declaration order."""

    nodes: list[NodeData] = field(default_factory=list)
    edges: list[EdgeData] = field(default_factory=list)

    def get_node(self, node_id: str) -> NodeData:
        """Get a node by id.

        Raises:
            KeyError: If no node has this id.

        """
        for node in self.nodes:
            if node.id == node_id:
                return node
        msg = f"No node '{node_id}' in flow"
        raise KeyError(msg)

    def has_node(self, node_id: str) -> bool:
        return any(node.id == node_id for node in self.nodes)

    def incoming(self, node_id: str, entry: str) -> list[EdgeData]:
        """Edges feeding an input entry, in declaration order."""
        return [e for e in self.edges if e.target_node == node_id and e.target_entry == entry]

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: str) -> bool:
        return self.has_node(node_id)
