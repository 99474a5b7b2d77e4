"""Moving entry states along edges and across sub-flow boundaries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nodeflow._assignable import may_assign, must_assign
from nodeflow._enums import EntryState
from nodeflow._errors import ValidationFailed
from nodeflow._validate import check_entry_value

if TYPE_CHECKING:
    from typing import Any

    from nodeflow._flow import EntryRuntime, NodeEntry, NodeError
    from nodeflow._types import NodeEntryType

    from ._context import EngineContext


def settle_value(
    ctx: EngineContext,
    target: EntryRuntime,
    decl: NodeEntry,
    value: Any,
    value_type: NodeEntryType | None,
    errors: NodeError,
) -> bool:
    """Validate a value against an entry and store it as ``data-ready`` or ``validate-failed``.

    Returns:
        True if the value was accepted.

    """
    try:
        check_entry_value(
            value,
            decl.type,
            entry=decl.name,
            check_code=decl.check_code,
            capabilities=ctx.capabilities,
            evaluator=ctx.evaluator,
        )
    except ValidationFailed as e:
        target.set_failed(e.message, value)
        errors.add(e.message, e.entries or [decl.name])
        return False
    target.set_data(value, value_type)
    return True


def settle_type(
    target: EntryRuntime,
    decl: NodeEntry,
    inferred: NodeEntryType,
    errors: NodeError,
    *,
    strict: bool,
) -> bool:
    """Store an inferred type as ``type-ready`` if it fits the declared type.

    ``strict`` requires the inferred type to be fully contained in the declared one
    (must-assign); otherwise an overlap (may-assign) is enough.
    """
    accepted = must_assign(decl.type, inferred) if strict else may_assign(decl.type, inferred)
    if not accepted:
        msg = f"Type of '{decl.name}' is not assignable to its declared type"
        target.set_failed(msg)
        errors.add(msg, [decl.name])
        return False
    target.set_type(inferred)
    return True


def copy_entry(
    ctx: EngineContext,
    target: EntryRuntime,
    decl: NodeEntry,
    source: EntryRuntime,
    errors: NodeError,
    *,
    strict: bool,
) -> None:
    """Copy an upstream entry state into ``target``, validating it against ``decl``.

    Failed, unavailable and errored sources make the target ``unavailable``.
    """
    match source.state:
        case EntryState.DATA_READY:
            settle_value(ctx, target, decl, source.data, source.type, errors)
        case EntryState.TYPE_READY if source.type is not None:
            settle_type(target, decl, source.type, errors, strict=strict)
        case _:
            target.set_unavailable()
