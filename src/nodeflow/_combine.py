"""Type algebra: the smallest type covering two normalized types."""

import logging
from collections.abc import Iterable

from ._compare import canonical_constraints, compare, sort_types
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
    SimpleType,
    StringType,
    TensorType,
    UnionType,
    string_satisfies,
)

logger = logging.getLogger(__name__)


def _sorted_values[V: (float, str)](*groups: Iterable[V]) -> tuple[V, ...]:
    merged: list[V] = []
    for group in groups:
        for value in group:
            if value not in merged:
                merged.append(value)
    return tuple(sorted(merged))


def _range_includes(outer: NumberType, inner: NumberType) -> bool:
    if outer.min is not None and (inner.min is None or inner.min < outer.min):
        return False
    return outer.max is None or (inner.max is not None and inner.max <= outer.max)


def _combine_number(a: NumberType, b: NumberType) -> NumberType | None:
    ea, eb = a.effective_enum(), b.effective_enum()
    if ea is not None and eb is not None:
        return NumberType(enum=_sorted_values(ea, eb))
    if ea is not None or eb is not None:
        enumerated, other = (ea, b) if ea is not None else (eb, a)
        return other if all(other.accepts(v) for v in enumerated or ()) else None
    if a.integer == b.integer:
        return NumberType(
            min=None if a.min is None or b.min is None else min(a.min, b.min),
            max=None if a.max is None or b.max is None else max(a.max, b.max),
            integer=a.integer,
        )
    integral, real = (a, b) if a.integer else (b, a)
    return real if _range_includes(real, integral) else None


def _combine_string(a: StringType, b: StringType) -> StringType | None:
    ea, eb = a.effective_enum(), b.effective_enum()
    if ea is not None and eb is not None:
        return StringType(enum=_sorted_values(ea, eb))
    if ea is not None or eb is not None:
        enumerated, other = (ea, b) if ea is not None else (eb, a)
        if all(string_satisfies(v, other.constraints) for v in enumerated or ()):
            return other
        return None
    if a.constraints is None or b.constraints is None:
        return StringType()
    return StringType(constraints=canonical_constraints((*a.constraints, *b.constraints)))


def _combine_dict(a: DictType, b: DictType) -> DictType:
    if a.keys is None or b.keys is None:
        return DictType()
    keys: dict[str, DictField] = {}
    for name, field in a.keys.items():
        other = b.keys.get(name)
        if other is None:
            keys[name] = field
        else:
            keys[name] = DictField(combine(field.type, other.type), optional=field.optional or other.optional)
    for name, field in b.keys.items():
        keys.setdefault(name, field)
    return DictType(keys)


def _combine_shape(a: tuple[int, ...] | None, b: tuple[int, ...] | None) -> tuple[int, ...] | None | bool:
    """Merge two shapes; ``False`` means the shapes are incompatible."""
    if a is None or b is None:
        return None
    if len(a) != len(b):
        return False
    dims: list[int] = []
    for x, y in zip(a, b, strict=True):
        if x == -1 or y == -1:
            dims.append(-1)
        elif x == y:
            dims.append(x)
        else:
            return False
    return tuple(dims)


def _combine_shaped[S: (NDArrayType, TensorType)](a: S, b: S) -> S | None:
    if a.dtype != b.dtype:
        return None
    shape = _combine_shape(a.shape, b.shape)
    if shape is False:
        return None
    return type(a)(dtype=a.dtype, shape=shape)


def try_combine(a: NodeEntryType, b: NodeEntryType) -> NodeEntryType | None:  # noqa: PLR0911
    """Merge two normalized types into a single type covering both.

    Args:
        a: A normalized type.
        b: A normalized type.

    Returns:
        The merged type, or ``None`` when the two types cannot be described by one
        simple type and must stay separate union members.

    Example:
        >>> try_combine(NumberType(min=0, max=10, integer=True), NumberType(min=5, max=20, integer=True))
        NumberType(enum=None, min=0, max=20, integer=True)

    """
    match a, b:
        case (AnyType(), _) | (_, AnyType()):
            return ANY
        case NeverType(), _:
            return b
        case _, NeverType():
            return a
        case (UnionType(), _) | (_, UnionType()):
            return None
        case NumberType(), NumberType():
            return _combine_number(a, b)
        case StringType(), StringType():
            return _combine_string(a, b)
        case BoolType(), BoolType():
            return a if a.literal is not None and a.literal == b.literal else BoolType()
        case ArrayType(), ArrayType():
            return a if compare(a, b) == 0 else None
        case DictType(), DictType():
            return _combine_dict(a, b)
        case (NDArrayType(), NDArrayType()) | (TensorType(), TensorType()):
            return _combine_shaped(a, b)
        case PythonObjectType(), PythonObjectType():
            return a if a.type == b.type else None
    return None


def _members(t: NodeEntryType) -> tuple[SimpleType, ...]:
    return t.members if isinstance(t, UnionType) else (t,)


def _insert(accumulator: list[SimpleType], member: SimpleType) -> None:
    # Re-merge until the new member is unmergeable with every accumulated one.
    pending: NodeEntryType = member
    while True:
        for index, existing in enumerate(accumulator):
            merged = try_combine(existing, pending)
            if merged is not None:
                del accumulator[index]
                pending = merged
                break
        else:
            accumulator.append(pending)  # ty: ignore[invalid-argument-type]
            return


def combine_union(types: Iterable[NodeEntryType]) -> NodeEntryType:
    """Fold normalized types into one canonical type.

    ``Any`` absorbs everything, ``Never`` is skipped, mergeable members are merged and
    the remaining members are sorted. An empty result is ``Never`` and a single
    member is returned as is.
    """
    accumulator: list[SimpleType] = []
    for t in types:
        for member in _members(t):
            match member:
                case AnyType():
                    return ANY
                case NeverType():
                    continue
                case _:
                    _insert(accumulator, member)
    match accumulator:
        case []:
            return NEVER
        case [single]:
            return single
        case _:
            return UnionType(tuple(sort_types(accumulator)))


def combine(a: NodeEntryType, b: NodeEntryType) -> NodeEntryType:
    """Smallest normalized type covering ``a`` and ``b``.

    Falls back to a union when no single simple type covers both.
    """
    merged = try_combine(a, b)
    if merged is not None:
        return merged
    logger.debug("Types %r and %r are not mergeable, building a union", a, b)
    return combine_union((a, b))
