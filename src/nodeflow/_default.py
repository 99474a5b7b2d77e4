"""Implement `default_value` to get a default value of a given entry type.

The default value of a normalized type is determined as follows:
1. Enumerated types use their first allowed value.
2. Numbers use 0, or the nearest bound when 0 is out of range.
3. Strings use the shortest string satisfying a constraint.
4. Arrays and dicts are built recursively from their element and required key types;
   a required dict key of type `any` gets an empty dict, since `None` reads as missing.
5. Unions use the first member that has a default.

The result is always validated against the type; types without an obvious inhabitant
raise ``ValueError``.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Final

from ._types import (
    AnyType,
    ArrayType,
    BoolType,
    DictType,
    NDArrayType,
    NeverType,
    NodeEntryType,
    NumberType,
    PythonObjectType,
    StringType,
    TensorType,
    UniformShape,
    UnionType,
)
from ._validate import validate_value
from ._values import NDArray, PythonObject, Tensor

if TYPE_CHECKING:
    from collections.abc import Callable


def _no_default(t: NodeEntryType) -> Any:
    msg = f"Type {t!r} has no values to provide a default value."
    raise ValueError(msg)


def _default_number(t: NumberType) -> float:
    enum = t.effective_enum()
    if enum is not None:
        if not enum:
            return _no_default(t)
        return enum[0]
    if t.accepts(0):
        return 0
    if t.min is not None and t.min > 0:
        return math.ceil(t.min) if t.integer else t.min
    if t.max is not None:
        return math.floor(t.max) if t.integer else t.max
    return _no_default(t)


def _default_string(t: StringType) -> str:
    enum = t.effective_enum()
    if enum is not None:
        if not enum:
            return _no_default(t)
        return enum[0]
    if t.constraints is None:
        return ""
    for constraint in t.constraints:
        candidate = "a" * (constraint.len_min or 0)
        if constraint.matches(candidate):
            return candidate
    return _no_default(t)


def _default_array(t: ArrayType) -> list[Any]:
    match t.shape:
        case UniformShape(_, -1):
            return []
        case UniformShape(element, length):
            return [default_value(element) for _ in range(length)]
        case items:
            return [default_value(item) for item in items]


def _default_field(t: NodeEntryType) -> Any:
    # A None value reads as a missing key.
    value = default_value(t)
    return {} if value is None else value


def _default_dict(t: DictType) -> dict[str, Any]:
    if t.keys is None:
        return {}
    return {name: _default_field(field.type) for name, field in t.keys.items() if not field.optional}


def _default_shape(shape: tuple[int, ...] | None) -> tuple[int, ...]:
    return tuple(max(d, 0) for d in shape or ())


def _default_union(t: UnionType) -> Any:
    for member in t.members:
        try:
            return default_value(member)
        except ValueError:
            continue
    return _no_default(t)


DEFAULT_IMPL: Final[dict[type, Callable[[Any], object]]] = {
    AnyType: lambda _: None,
    NeverType: _no_default,
    NumberType: _default_number,
    StringType: _default_string,
    BoolType: lambda t: bool(t.literal),
    ArrayType: _default_array,
    DictType: _default_dict,
    NDArrayType: lambda t: NDArray(t.dtype or "float64", _default_shape(t.shape)),
    TensorType: lambda t: Tensor(t.dtype or "float32", _default_shape(t.shape)),
    PythonObjectType: lambda t: PythonObject(t.type),
    UnionType: _default_union,
}


def default_value(t: NodeEntryType) -> Any:
    """Synthesize a value accepted by the normalized type ``t``.

    Raises:
        ValueError: If no valid value can be synthesized.

    Example:
        >>> default_value(NumberType(integer=True, min=2.5))
        3

    """
    value = DEFAULT_IMPL[type(t)](t)
    if not validate_value(value, t):
        msg = f"Could not synthesize a default value for {t!r}"
        raise ValueError(msg)
    return value
