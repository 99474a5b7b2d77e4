"""Explicit configuration and per-pass bookkeeping of the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nodeflow._code import Capabilities, CodeEvaluator, evaluate_python
from nodeflow._errors import CycleError, MissingNodeMetaError

if TYPE_CHECKING:
    from collections.abc import Callable

    from nodeflow._flow import FlowState, NodeData, NodeMeta, NodeMetaRef


@dataclass(frozen=True, slots=True)
class EngineContext:
    """Everything the engine needs besides the flow itself.

    Attributes:
        resolve_meta: Looks up node definitions; a :class:`nodeflow.NodeRegistry`
            can be passed directly.
        capabilities: Named implementations for code references.
        evaluator: Evaluator for inline code.

    """

    resolve_meta: Callable[[NodeMetaRef], NodeMeta | None]
    capabilities: Capabilities = field(default_factory=Capabilities)
    evaluator: CodeEvaluator = evaluate_python

    def meta_of(self, node: NodeData) -> NodeMeta:
        """Resolve the definition of a node instance.

        Raises:
            MissingNodeMetaError: If the definition cannot be resolved.

        """
        meta = self.resolve_meta(node.meta)
        if meta is None:
            msg = f"Node '{node.id}' refers to unknown node definition '{node.meta}'"
            raise MissingNodeMetaError(msg)
        return meta


@dataclass(frozen=True, slots=True)
class Scope:
    """The flow a node lives in, and the compound node embedding that flow."""

    flow: FlowState
    parent: NodeData | None = None


@dataclass(slots=True)
class EvaluationPass:
    """Bookkeeping of a single preparation call.

    Nodes are keyed by identity because ids are only unique within one flow.
    """

    force: bool = False
    path: list[str] = field(default_factory=list)
    _in_progress: set[int] = field(default_factory=set)
    _done: set[int] = field(default_factory=set)

    def is_done(self, node: NodeData) -> bool:
        return id(node) in self._done

    def enter(self, node: NodeData) -> None:
        """Mark a node as being prepared.

        Raises:
            CycleError: If the node is already being prepared further up the stack.

        """
        if id(node) in self._in_progress:
            start = self.path.index(node.id) if node.id in self.path else 0
            raise CycleError([*self.path[start:], node.id])
        self._in_progress.add(id(node))
        self.path.append(node.id)

    def leave(self, node: NodeData, *, completed: bool) -> None:
        self._in_progress.discard(id(node))
        self.path.pop()
        if completed:
            self._done.add(id(node))
