"""Documents: loading libraries and flows, exporting prepared results.

Documents are TOML or JSON files validated by pydantic models. They are converted
into the in-memory flow model here and nowhere else.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ._code import Code, CodeRef
from ._enums import EntryMode, NodeKind, RecommendationLevel
from ._errors import ConfigurationError, MissingNodeMetaError
from ._flow import EdgeData, FlowState, NodeData, NodeEntry, NodeMeta, NodeMetaRef, NodeRegistry, create_node
from ._normalize import normalize
from ._types import dump_entry_type

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ._flow import EntryRuntime, NodeError

logger = logging.getLogger(__name__)


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CodeDocument(_Document):
    """Inline code (``code``) or a reference to a registered implementation (``ref``)."""

    code: str | None = None
    ref: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> Self:
        if (self.code is None) == (self.ref is None):
            msg = "Exactly one of 'code' and 'ref' must be given"
            raise ValueError(msg)
        return self

    def to_implementation(self) -> Code | CodeRef:
        if self.code is not None:
            return Code(self.code)
        return CodeRef(self.ref or "")


class NodeEntryDocument(_Document):
    name: str
    type: Any = Field(default_factory=lambda: {"name": "any"}, description="Entry type in wire form")
    level: RecommendationLevel = RecommendationLevel.NORMAL
    description: str = ""
    check_code: CodeDocument | None = None

    @field_validator("type")
    @classmethod
    def _valid_type(cls, value: Any) -> Any:
        # Raises TypeModelError (a ValueError) for malformed types.
        normalize(value)
        return value

    @field_validator("level", mode="before")
    @classmethod
    def _level_by_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return RecommendationLevel[value.upper()]
            except KeyError:
                msg = f"Unknown recommendation level: {value!r}"
                raise ValueError(msg) from None
        return value

    def to_entry(self) -> NodeEntry:
        return NodeEntry(
            name=self.name,
            type=normalize(self.type),
            level=self.level,
            description=self.description,
            check_code=self.check_code.to_implementation() if self.check_code else None,
        )


class EntryConfigDocument(_Document):
    """Per-instance input configuration; a value without a mode means ``input`` mode."""

    name: str
    mode: EntryMode | None = None
    value: Any = None


class EdgeDocument(_Document):
    source_node: str
    source_entry: str
    target_node: str
    target_entry: str
    id: str = ""


class NodeDocument(_Document):
    id: str
    meta: str = Field(description="Node definition id")
    version: str | None = None
    inputs: list[EntryConfigDocument] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)
    flow: FlowDocument | None = None
    template: FlowDocument | None = None


class FlowDocument(_Document):
    nodes: list[NodeDocument] = Field(default_factory=list)
    edges: list[EdgeDocument] = Field(default_factory=list)


class NodeMetaDocument(_Document):
    id: str
    version: str = "0.0.0"
    title: str = ""
    kind: NodeKind = NodeKind.BASE
    category: str = ""
    description: str = ""
    inputs: list[NodeEntryDocument] = Field(default_factory=list)
    outputs: list[NodeEntryDocument] = Field(default_factory=list)
    impl: CodeDocument | None = None
    type_code: CodeDocument | None = None
    check_code: CodeDocument | None = None
    flow: FlowDocument | None = None

    def to_meta(self, resolve_meta: Callable[[NodeMetaRef], NodeMeta | None]) -> NodeMeta:
        return NodeMeta(
            id=self.id,
            version=self.version,
            title=self.title or self.id,
            kind=self.kind,
            category=self.category,
            description=self.description,
            inputs=tuple(e.to_entry() for e in self.inputs),
            outputs=tuple(e.to_entry() for e in self.outputs),
            impl=self.impl.to_implementation() if self.impl else None,
            type_code=self.type_code.to_implementation() if self.type_code else None,
            check_code=self.check_code.to_implementation() if self.check_code else None,
            flow=build_flow(self.flow, resolve_meta) if self.flow is not None else None,
        )


class LibraryDocument(_Document):
    """A set of node definitions (``[[nodes]]`` tables)."""

    nodes: list[NodeMetaDocument] = Field(default_factory=list)


NodeDocument.model_rebuild()


def _node_from_document(document: NodeDocument, resolve_meta: Callable[[NodeMetaRef], NodeMeta | None]) -> NodeData:
    ref = NodeMetaRef(document.meta, document.version)
    meta = resolve_meta(ref)
    if meta is None:
        msg = f"Node '{document.id}' refers to unknown node definition '{ref}'"
        raise MissingNodeMetaError(msg)
    node = create_node(meta, document.id, attributes=document.attributes)
    for config in document.inputs:
        try:
            entry = node.input(config.name)
        except KeyError as e:
            raise ConfigurationError(e.args[0]) from None
        if config.mode is not None:
            entry.config.mode = config.mode
        elif config.value is not None:
            entry.config.mode = EntryMode.INPUT
        if config.value is not None or config.mode == EntryMode.INPUT:
            entry.config.value = config.value
    if document.flow is not None:
        node.flow = build_flow(document.flow, resolve_meta)
    if document.template is not None:
        node.template = build_flow(document.template, resolve_meta)
    return node


def build_flow(document: FlowDocument, resolve_meta: Callable[[NodeMetaRef], NodeMeta | None]) -> FlowState:
    """Convert a flow document into a flow.

    Raises:
        MissingNodeMetaError: If a node refers to an unknown definition.
        ConfigurationError: If a node configures an input its definition lacks.

    """
    return FlowState(
        nodes=[_node_from_document(node, resolve_meta) for node in document.nodes],
        edges=[
            EdgeData(
                source_node=edge.source_node,
                source_entry=edge.source_entry,
                target_node=edge.target_node,
                target_entry=edge.target_entry,
                id=edge.id,
            )
            for edge in document.edges
        ],
    )


def _read_document(path: Path) -> Any:
    match path.suffix.lower():
        case ".toml":
            with path.open("rb") as f:
                return tomllib.load(f)
        case ".json":
            with path.open(encoding="utf-8") as f:
                return json.load(f)
        case suffix:
            msg = f"Unsupported document format '{suffix}' for {path}"
            raise ConfigurationError(msg)


def load_library(paths: Iterable[Path], base: NodeRegistry | None = None) -> NodeRegistry:
    """Load node definitions from library documents.

    Definitions are registered in document order, so a compound definition may use
    any definition declared before it (or in ``base``).

    Args:
        paths: Library documents (TOML or JSON).
        base: Definitions available to every library, e.g. the built-in nodes.

    Returns:
        A registry holding ``base`` and the loaded definitions.

    """
    registry = NodeRegistry(base or ())
    for path in paths:
        logger.debug("Loading library %s", path)
        document = LibraryDocument.model_validate(_read_document(path))
        for meta_document in document.nodes:
            registry.register(meta_document.to_meta(registry.resolve))
    return registry


def load_flow(path: Path, resolve_meta: Callable[[NodeMetaRef], NodeMeta | None]) -> FlowState:
    """Load a flow document (TOML or JSON)."""
    logger.debug("Loading flow %s", path)
    document = FlowDocument.model_validate(_read_document(path))
    return build_flow(document, resolve_meta)


def _serialize_value(value: Any) -> Any:
    """Recursively serialize a value for TOML export.

    Handles:
    - Value handles (NDArray, Tensor, PythonObject): converted to tables
    - dict: values serialized, None dropped (TOML has no null)
    - list/tuple: items serialized
    - Path: converted to string
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _serialize_value(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items() if v is not None}
    if isinstance(value, list | tuple):
        return [_serialize_value(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


def _dump_entry(runtime: EntryRuntime) -> dict[str, Any]:
    return {
        "state": runtime.state.value,
        "data": runtime.data,
        "type": dump_entry_type(runtime.type) if runtime.type is not None else None,
        "error": runtime.error,
    }


def _dump_errors(error: NodeError) -> list[dict[str, Any]]:
    errors = [{"level": v.level.value, "entries": v.entries, "message": v.message} for v in error.validates]
    if error.exception is not None:
        errors.append({"level": "exception", "entries": [], "message": error.exception.message})
    return errors


def dump_flow_runtime(flow: FlowState) -> dict[str, Any]:
    """Runtime state of every node of a flow (and its sub-flows) as plain data."""
    result: dict[str, Any] = {}
    for node in flow.nodes:
        node_data: dict[str, Any] = {
            "input_state": node.input_state.value if node.input_state else None,
            "output_state": node.output_state.value if node.output_state else None,
            "success": node.success,
            "inputs": {e.name: _dump_entry(e.runtime) for e in node.inputs},
            "outputs": {e.name: _dump_entry(e.runtime) for e in node.outputs},
            "errors": _dump_errors(node.input_error) + _dump_errors(node.output_error),
        }
        if node.sub_flow is not None:
            node_data["flow"] = dump_flow_runtime(node.sub_flow)
        result[node.id] = node_data
    return result


def export_results_to_toml(flow: FlowState, output_path: Path) -> None:
    """Write the runtime state of a prepared flow to a TOML file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("wb") as f:
        tomli_w.dump(_serialize_value(dump_flow_runtime(flow)), f)
