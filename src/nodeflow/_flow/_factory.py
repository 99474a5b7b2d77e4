"""Instantiate node definitions inside a flow."""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from nodeflow._default import default_value
from nodeflow._enums import EntryMode, NodeKind
from nodeflow._types import BoolType, NumberType, StringType

from ._model import EntryConfig, NodeData, NodeEntryData

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._model import NodeEntry, NodeMeta

logger = logging.getLogger(__name__)


def _input_config(entry: NodeEntry) -> EntryConfig:
    # Scalars can be typed in directly, so they start as literals.
    if isinstance(entry.type, NumberType | StringType | BoolType):
        try:
            return EntryConfig(entry.name, EntryMode.INPUT, default_value(entry.type))
        except ValueError:
            logger.debug("No default literal for input %s, using handle mode", entry.name)
    return EntryConfig(entry.name, EntryMode.HANDLE)


def create_node(
    meta: NodeMeta,
    node_id: str,
    *,
    attributes: Mapping[str, Any] | None = None,
) -> NodeData:
    """Create a fresh instance of a node definition.

    Scalar inputs (number, string, bool) start in ``input`` mode holding a default
    literal; every other input starts in ``handle`` mode. Compound definitions get a
    private copy of their sub-flow. All entries start in ``init``.

    Args:
        meta: The node definition.
        node_id: Identifier of the instance within its flow.
        attributes: Initial attributes (e.g. ``outputName`` for sub-flow sinks).

    Returns:
        The new node instance.

    """
    node = NodeData(
        id=node_id,
        meta=meta.ref,
        inputs=[NodeEntryData(_input_config(entry)) for entry in meta.inputs],
        outputs=[NodeEntryData(EntryConfig(entry.name)) for entry in meta.outputs],
        attributes=dict(attributes or {}),
    )
    if meta.kind == NodeKind.COMPOUND and meta.flow is not None:
        node.flow = copy.deepcopy(meta.flow)
    return node
