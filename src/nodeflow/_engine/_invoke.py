"""Calling data-producing and type-inferring implementations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from nodeflow import _types
from nodeflow._code import Code, CodeRef, Outcome, Produced, Skip, Unsupported, as_outcome
from nodeflow._combine import combine
from nodeflow._normalize import normalize

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from nodeflow._flow import NodeMeta

    from ._context import EngineContext

logger = logging.getLogger(__name__)

_OUTCOMES: dict[str, Any] = {"Produced": Produced, "Skip": Skip, "Unsupported": Unsupported}

_TYPE_HELPERS: dict[str, Any] = {
    "AnyType": _types.AnyType,
    "NeverType": _types.NeverType,
    "NumberType": _types.NumberType,
    "StringType": _types.StringType,
    "StringConstraint": _types.StringConstraint,
    "BoolType": _types.BoolType,
    "ArrayType": _types.ArrayType,
    "UniformShape": _types.UniformShape,
    "DictType": _types.DictType,
    "DictField": _types.DictField,
    "NDArrayType": _types.NDArrayType,
    "TensorType": _types.TensorType,
    "PythonObjectType": _types.PythonObjectType,
    "UnionType": _types.UnionType,
    "combine": combine,
    "normalize": normalize,
}


def _call(
    impl: Code | CodeRef,
    lookup: Callable[[str], Callable[[Mapping[str, Any]], object]],
    ctx: EngineContext,
    bindings: dict[str, Any],
    description: str,
) -> Outcome:
    try:
        match impl:
            case CodeRef(ref):
                result = lookup(ref)(bindings["args"])
            case Code(source):
                result = ctx.evaluator(source, bindings)
    except NotImplementedError:
        logger.debug("%s is not implemented", description)
        return Unsupported()
    return as_outcome(result, source=description)


def invoke_data(ctx: EngineContext, meta: NodeMeta, args: Mapping[str, Any]) -> Outcome:
    """Run the data-producing implementation of a node with concrete input values.

    Inline code sees ``args``, ``meta`` and the outcome classes. Raising
    ``NotImplementedError`` is the same as returning ``Unsupported()``.

    Raises:
        UnknownCapabilityError: If the implementation reference is not registered.
        MalformedResultError: If the result is not a mapping or an outcome.

    """
    if meta.impl is None:
        return Unsupported()
    logger.debug("Invoking data implementation of %s", meta.id)
    return _call(
        meta.impl,
        ctx.capabilities.data_api,
        ctx,
        {"args": dict(args), "meta": meta, **_OUTCOMES},
        f"Data implementation of '{meta.id}'",
    )


def invoke_type(ctx: EngineContext, meta: NodeMeta, arg_types: Mapping[str, Any]) -> Outcome:
    """Run the type-inferring implementation of a node with input types bound."""
    if meta.type_code is None:
        return Unsupported()
    logger.debug("Invoking type implementation of %s", meta.id)
    return _call(
        meta.type_code,
        ctx.capabilities.type_api,
        ctx,
        {"args": dict(arg_types), "meta": meta, **_OUTCOMES, **_TYPE_HELPERS},
        f"Type implementation of '{meta.id}'",
    )
