"""Pull-based execution and type inference over flows."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nodeflow._code import Produced, Skip
from nodeflow._enums import EntryMode, EntryState, NodeKind, NodeState
from nodeflow._errors import ConfigurationError, TypeModelError, ValidationFailed
from nodeflow._flow import EntryConfig, EntryRuntime, ExceptionError, NodeData, NodeEntryData, NodeError, NodeMetaRef
from nodeflow._normalize import normalize
from nodeflow._validate import run_check_code
from nodeflow._values import type_of_value

from ._context import EngineContext, EvaluationPass, Scope
from ._invoke import invoke_data, invoke_type
from ._resolution import copy_entry, settle_type, settle_value
from ._state import input_state, output_state

if TYPE_CHECKING:
    from collections.abc import Mapping

    from nodeflow._flow import FlowState, NodeEntry, NodeMeta

logger = logging.getLogger(__name__)

INPUT_CATEGORY = "input"
OUTPUT_CATEGORY = "output"
INPUT_NAME_ATTRIBUTE = "inputName"
OUTPUT_NAME_ATTRIBUTE = "outputName"
SINK_ENTRY = "output"
SOURCE_ENTRY = "input"


@dataclass(frozen=True, slots=True)
class NodeResult:
    """Snapshot of a node after preparation.

    Attributes:
        node_id: Id of the node.
        input_state: Aggregated input readiness.
        output_state: Aggregated output state.
        success: ``True`` if every output settled, ``False`` on failure, ``None`` when
            some outputs were not produced.
        inputs: Copies of the input entry states, by entry name.
        outputs: Copies of the output entry states, by entry name.
        input_error: Errors recorded while preparing the inputs.
        output_error: Errors recorded while producing the outputs.

    """

    node_id: str
    input_state: NodeState | None
    output_state: NodeState | None
    success: bool | None
    inputs: dict[str, EntryRuntime] = field(default_factory=dict)
    outputs: dict[str, EntryRuntime] = field(default_factory=dict)
    input_error: NodeError = field(default_factory=NodeError)
    output_error: NodeError = field(default_factory=NodeError)

    @classmethod
    def of(cls, node: NodeData) -> NodeResult:
        return cls(
            node_id=node.id,
            input_state=node.input_state,
            output_state=node.output_state,
            success=node.success,
            inputs={e.name: copy.copy(e.runtime) for e in node.inputs},
            outputs={e.name: copy.copy(e.runtime) for e in node.outputs},
            input_error=copy.deepcopy(node.input_error),
            output_error=copy.deepcopy(node.output_error),
        )

    @property
    def failed(self) -> bool:
        return bool(self.input_error) or self.output_state in (NodeState.EXCEPTION, NodeState.VALIDATE_FAILED)


@dataclass(frozen=True, slots=True)
class FlowResult:
    """Result of preparing every node of a flow.

    Attributes:
        node_results: Node snapshots by node id, in declaration order.
        errors: ``(node_id, message)`` for every exception and validation failure.

    """

    node_results: dict[str, NodeResult] = field(default_factory=dict)
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if preparation completed without errors."""
        return len(self.errors) == 0

    def get_result(self, node_id: str) -> NodeResult:
        """Get the snapshot of a node.

        Raises:
            KeyError: If the flow has no node with this id.

        """
        return self.node_results[node_id]

    def get_entry(self, node_id: str, entry: str) -> EntryRuntime:
        """Get an entry state by node id and entry name, outputs first.

        Raises:
            KeyError: If no such node or entry exists.

        """
        result = self.node_results[node_id]
        if entry in result.outputs:
            return result.outputs[entry]
        return result.inputs[entry]


def _entries_of(node: NodeData, declared: tuple[NodeEntry, ...], side: str) -> list[NodeEntryData]:
    # Definitions may gain entries after a node was created; those start empty.
    entries = node.inputs if side == "input" else node.outputs
    by_name = {entry.name: entry for entry in entries}
    ordered: list[NodeEntryData] = []
    for decl in declared:
        entry = by_name.get(decl.name)
        if entry is None:
            entry = NodeEntryData(EntryConfig(decl.name))
            entries.append(entry)
        ordered.append(entry)
    return ordered


def _mark_unavailable(entries: list[NodeEntryData]) -> None:
    for entry in entries:
        entry.runtime.set_unavailable()


def _pull_source(
    ctx: EngineContext,
    run: EvaluationPass,
    scope: Scope,
    node: NodeData,
    name: str,
) -> EntryRuntime | None:
    """Locate, and if needed prepare, the upstream output feeding an input entry."""
    edges = scope.flow.incoming(node.id, name)
    if not edges:
        return None
    if len(edges) > 1:
        logger.warning(
            "Input %s.%s has %d incoming edges, using the first one",
            node.id,
            name,
            len(edges),
        )
    edge = edges[0]
    try:
        source = scope.flow.get_node(edge.source_node)
        source_entry = source.output(edge.source_entry)
    except KeyError as e:
        msg = f"Edge into {node.id}.{name} has a dangling source: {e.args[0]}"
        raise ConfigurationError(msg) from e
    if source_entry.runtime.state == EntryState.INIT or (run.force and not run.is_done(source)):
        _prepare(ctx, run, scope, source)
    return source_entry.runtime


def _record_entry_error(node: NodeData, entry: NodeEntryData, error: Exception) -> None:
    message = f"{type(error).__name__}: {error}"
    logger.warning("Validating %s.%s raised %s", node.id, entry.name, message)
    entry.runtime.set_error(message)
    node.input_error.exception = ExceptionError(message)


def _prepare_inputs(  # noqa: C901
    ctx: EngineContext,
    run: EvaluationPass,
    scope: Scope,
    node: NodeData,
    meta: NodeMeta,
) -> NodeState:
    node.input_error = NodeError()
    entries = _entries_of(node, meta.inputs, "input")
    for decl, entry in zip(meta.inputs, entries, strict=True):
        runtime = entry.runtime
        source = None
        if entry.config.mode == EntryMode.HANDLE:
            source = _pull_source(ctx, run, scope, node, decl.name)
            if source is None:
                runtime.set_unavailable()
                continue
        try:
            if source is None:
                value = entry.config.value
                settle_value(ctx, runtime, decl, value, type_of_value(value), node.input_error)
            else:
                copy_entry(ctx, runtime, decl, source, node.input_error, strict=False)
        except ConfigurationError:
            raise
        except Exception as e:  # noqa: BLE001
            _record_entry_error(node, entry, e)

    state = input_state(meta.inputs, entries)
    if state == NodeState.DATA_READY and meta.check_code is not None:
        args = {entry.name: entry.runtime.data for entry in entries}
        try:
            run_check_code(
                meta.check_code,
                data=args,
                entry=None,
                capabilities=ctx.capabilities,
                evaluator=ctx.evaluator,
                entries=[decl.name for decl in meta.inputs],
            )
        except ValidationFailed as e:
            for entry in entries:
                if entry.name in e.entries:
                    entry.runtime.set_failed(e.message, entry.runtime.data)
            node.input_error.add(e.message, e.entries)
            state = NodeState.VALIDATE_FAILED
        except ConfigurationError:
            raise
        except Exception as e:  # noqa: BLE001
            logger.warning("Check code of node %s raised %s: %s", node.id, type(e).__name__, e)
            node.input_error.exception = ExceptionError(f"{type(e).__name__}: {e}")
            state = NodeState.EXCEPTION
    return state


def _record_exception(node: NodeData, outputs: list[NodeEntryData], error: Exception) -> None:
    logger.warning("Node %s raised %s: %s", node.id, type(error).__name__, error)
    node.output_error.exception = ExceptionError(f"{type(error).__name__}: {error}")
    _mark_unavailable(outputs)
    node.output_state = NodeState.EXCEPTION
    node.success = False


def _record_failure(node: NodeData, outputs: list[NodeEntryData], error: ValidationFailed) -> None:
    # Outputs not named by the failure are left unproduced.
    names = set(error.entries) or {entry.name for entry in outputs}
    for entry in outputs:
        if entry.name in names:
            entry.runtime.set_failed(error.message)
        else:
            entry.runtime.set_unavailable()
    node.output_error.add(error.message, sorted(names))
    node.output_state = NodeState.VALIDATE_FAILED
    node.success = False


def _evaluate_base(  # noqa: C901, PLR0912
    ctx: EngineContext,
    node: NodeData,
    meta: NodeMeta,
    inputs: list[NodeEntryData],
    outputs: list[NodeEntryData],
) -> None:
    declared = {decl.name: decl for decl in meta.outputs}
    by_name = {entry.name: entry for entry in outputs}
    settled: set[str] = set()
    failed = False
    skipped = False

    if node.input_state == NodeState.DATA_READY and meta.impl is not None:
        args = {
            entry.name: entry.runtime.data if entry.runtime.state == EntryState.DATA_READY else None for entry in inputs
        }
        try:
            match invoke_data(ctx, meta, args):
                case Produced(values):
                    for name, value in values.items():
                        if name not in declared:
                            logger.debug("Ignoring undeclared output %s of node %s", name, node.id)
                            continue
                        target = by_name[name].runtime
                        ok = settle_value(ctx, target, declared[name], value, type_of_value(value), node.output_error)
                        failed = failed or not ok
                        settled.add(name)
                case Skip():
                    skipped = True
        except ConfigurationError:
            raise
        except ValidationFailed as e:
            _record_failure(node, outputs, e)
            return
        except Exception as e:  # noqa: BLE001
            _record_exception(node, outputs, e)
            return

    pending = [name for name in declared if name not in settled]
    if pending and not skipped and meta.type_code is not None:
        arg_types = {
            entry.name: entry.runtime.type if entry.runtime.type is not None else decl.type
            for decl, entry in zip(meta.inputs, inputs, strict=True)
        }
        try:
            outcome = invoke_type(ctx, meta, arg_types)
        except ConfigurationError:
            raise
        except ValidationFailed as e:
            _record_failure(node, outputs, e)
            return
        except Exception as e:  # noqa: BLE001
            _record_exception(node, outputs, e)
            return
        match outcome:
            case Produced(values):
                for name in pending:
                    if name not in values:
                        continue
                    target = by_name[name].runtime
                    try:
                        inferred = normalize(values[name])
                    except TypeModelError as e:
                        target.set_failed(str(e))
                        node.output_error.add(str(e), [name])
                        ok = False
                    else:
                        ok = settle_type(target, declared[name], inferred, node.output_error, strict=True)
                    failed = failed or not ok
                    settled.add(name)
            case Skip():
                skipped = True

    for name in declared:
        if name in settled:
            continue
        if skipped:
            by_name[name].runtime.set_unavailable()
        else:
            by_name[name].runtime.set_type(declared[name].type)

    node.output_state = output_state(outputs, node.input_state or NodeState.NOT_READY)
    if failed:
        node.success = False
    elif len(settled) == len(declared):
        node.success = True
    else:
        node.success = None


def _evaluate_source(
    ctx: EngineContext,
    scope: Scope,
    node: NodeData,
    meta: NodeMeta,
    outputs: list[NodeEntryData],
) -> None:
    """Publish an input of the enclosing compound node inside its sub-flow."""
    name = node.attributes.get(INPUT_NAME_ATTRIBUTE)
    parent_entry: EntryRuntime | None = None
    if scope.parent is not None and name is not None:
        try:
            parent_entry = scope.parent.input(name).runtime
        except KeyError:
            logger.warning("Compound node %s has no input %s", scope.parent.id, name)
    failed = False
    for decl, entry in zip(meta.outputs, outputs, strict=True):
        if parent_entry is None:
            entry.runtime.set_unavailable()
            continue
        try:
            copy_entry(ctx, entry.runtime, decl, parent_entry, node.output_error, strict=False)
        except ConfigurationError:
            raise
        except Exception as e:  # noqa: BLE001
            _record_exception(node, outputs, e)
            return
        failed = failed or entry.runtime.state == EntryState.VALIDATE_FAILED
    node.output_state = output_state(outputs, node.input_state or NodeState.NOT_READY)
    if failed:
        node.success = False
    else:
        node.success = all(entry.runtime.state.is_known for entry in outputs) or None


def _evaluate_compound(  # noqa: C901
    ctx: EngineContext,
    run: EvaluationPass,
    node: NodeData,
    meta: NodeMeta,
    outputs: list[NodeEntryData],
) -> None:
    sub_flow = node.sub_flow
    sinks = []
    if sub_flow is not None:
        sinks = [n for n in sub_flow.nodes if ctx.meta_of(n).category == OUTPUT_CATEGORY]
    declared = {decl.name: decl for decl in meta.outputs}
    by_name = {entry.name: entry for entry in outputs}
    published: set[str] = set()
    failed = False

    for sink in sinks:
        if not run.is_done(sink):
            _prepare(ctx, run, Scope(sub_flow, node), sink)  # ty: ignore[invalid-argument-type]
        name = sink.attributes.get(OUTPUT_NAME_ATTRIBUTE)
        if name not in declared:
            logger.warning("Sink %s publishes unknown output %r of node %s", sink.id, name, node.id)
            continue
        try:
            source = sink.input(SINK_ENTRY).runtime
        except KeyError:
            msg = f"Output node '{sink.id}' has no '{SINK_ENTRY}' input"
            raise ConfigurationError(msg) from None
        target = by_name[name].runtime
        try:
            copy_entry(ctx, target, declared[name], source, node.output_error, strict=True)
        except ConfigurationError:
            raise
        except Exception as e:  # noqa: BLE001
            _record_exception(node, outputs, e)
            return
        if target.state == EntryState.UNAVAILABLE and sink.output_state == NodeState.EXCEPTION:
            node.output_error.add(f"Output node '{sink.id}' raised an exception", [name])
        failed = failed or target.state in (EntryState.VALIDATE_FAILED, EntryState.ERROR) or sink.success is False
        published.add(name)

    for name, entry in by_name.items():
        if name not in published:
            entry.runtime.set_unavailable()

    node.output_state = output_state(outputs, node.input_state or NodeState.NOT_READY)
    if failed:
        node.success = False
    elif not sinks or all(by_name[name].runtime.state.is_known for name in declared):
        node.success = True
    else:
        node.success = None


def _prepare(ctx: EngineContext, run: EvaluationPass, scope: Scope, node: NodeData) -> None:
    run.enter(node)
    completed = False
    try:
        logger.debug("Preparing node %s", node.id)
        meta = ctx.meta_of(node)
        node.output_error = NodeError()
        node.success = None
        node.input_state = _prepare_inputs(ctx, run, scope, node, meta)
        inputs = _entries_of(node, meta.inputs, "input")
        outputs = _entries_of(node, meta.outputs, "output")

        if node.input_state not in (NodeState.DATA_READY, NodeState.TYPE_READY):
            _mark_unavailable(outputs)
            node.output_state = NodeState.NOT_READY
            node.success = False if node.input_error else None
        elif meta.kind == NodeKind.COMPOUND:
            _evaluate_compound(ctx, run, node, meta, outputs)
        elif meta.category == INPUT_CATEGORY:
            _evaluate_source(ctx, scope, node, meta, outputs)
        else:
            _evaluate_base(ctx, node, meta, inputs, outputs)
        logger.debug("Node %s: inputs %s, outputs %s", node.id, node.input_state, node.output_state)
        completed = True
    finally:
        run.leave(node, completed=completed)


def prepare_node(ctx: EngineContext, flow: FlowState, node: NodeData | str, *, force: bool = False) -> NodeResult:
    """Prepare one node, pulling whatever upstream state it needs.

    Upstream outputs that are already known are reused; upstream nodes whose outputs are
    still ``init`` are prepared first. With ``force`` every upstream node is prepared
    again, once per call.

    Args:
        ctx: Engine configuration.
        flow: The flow containing the node.
        node: The node, or its id.
        force: Re-evaluate upstream nodes even if their outputs are known.

    Returns:
        A snapshot of the node after preparation.

    Raises:
        ConfigurationError: If the flow or the registries are inconsistent (unknown
            definitions or implementations, malformed results, cycles).

    """
    if isinstance(node, str):
        node = flow.get_node(node)
    _prepare(ctx, EvaluationPass(force=force), Scope(flow), node)
    return NodeResult.of(node)


def _collect_errors(result: NodeResult) -> list[tuple[str, str]]:
    errors = [(result.node_id, v.message) for v in result.input_error.validates]
    errors.extend((result.node_id, v.message) for v in result.output_error.validates)
    for error in (result.input_error, result.output_error):
        if error.exception is not None:
            errors.append((result.node_id, error.exception.message))
    return errors


def prepare_flow(ctx: EngineContext, flow: FlowState, *, force: bool = False) -> FlowResult:
    """Prepare every node of a flow in declaration order.

    A failing node does not stop the preparation of unrelated nodes.

    Example:
        >>> ctx = EngineContext(builtin_registry(), builtin_capabilities())
        >>> result = prepare_flow(ctx, flow)
        >>> result.get_entry("add", "output").data
        3

    """
    run = EvaluationPass(force=force)
    logger.debug("Preparing flow with %d nodes", len(flow.nodes))
    for node in flow.nodes:
        if run.is_done(node):
            continue
        if force or node.output_state is None or any(
            entry.runtime.state == EntryState.INIT for entry in node.entries()
        ):
            _prepare(ctx, run, Scope(flow), node)

    node_results: dict[str, NodeResult] = {}
    errors: list[tuple[str, str]] = []
    for node in flow.nodes:
        result = NodeResult.of(node)
        node_results[node.id] = result
        errors.extend(_collect_errors(result))
    return FlowResult(node_results=node_results, errors=errors)


def execute_sub_flow(
    ctx: EngineContext,
    flow: FlowState,
    inputs: Mapping[str, Any] | None = None,
    *,
    force: bool = False,
) -> dict[str, EntryRuntime]:
    """Run a flow as if it were embedded in a compound node.

    Input nodes read ``inputs`` by their ``inputName`` attribute and the results of the
    output nodes are returned by their ``outputName`` attribute.

    Args:
        ctx: Engine configuration.
        flow: The flow to run.
        inputs: Values published to the input nodes.
        force: Re-evaluate nodes even if their outputs are known.

    Returns:
        Entry states of the published outputs.

    """
    host = NodeData(id="<sub-flow>", meta=NodeMetaRef("<sub-flow>"))
    for name, value in (inputs or {}).items():
        entry = NodeEntryData(EntryConfig(name, EntryMode.INPUT, value))
        entry.runtime.set_data(value, type_of_value(value))
        host.inputs.append(entry)

    run = EvaluationPass(force=force)
    scope = Scope(flow, host)
    results: dict[str, EntryRuntime] = {}
    for node in flow.nodes:
        if ctx.meta_of(node).category != OUTPUT_CATEGORY:
            continue
        _prepare(ctx, run, scope, node)
        name = node.attributes.get(OUTPUT_NAME_ATTRIBUTE)
        if name is None:
            continue
        results[name] = copy.copy(node.input(SINK_ENTRY).runtime)
    return results
