"""Total order over normalized types.

The order only serves canonicalization: union members are sorted by it and two
normalized types are structurally equal exactly when they compare equal.
"""

from collections.abc import Iterable, Sequence
from functools import cmp_to_key
from typing import Any

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
    StringConstraint,
    StringType,
    TensorType,
    UniformShape,
    UnionType,
)


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _cmp_optional(a: Any, b: Any) -> int:
    """Present values sort before absent ones."""
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    return _cmp(a, b)


def _cmp_sequences(a: Sequence[Any], b: Sequence[Any], item_cmp: Any = _cmp) -> int:
    if len(a) != len(b):
        return _cmp(len(a), len(b))
    for x, y in zip(a, b, strict=True):
        if (result := item_cmp(x, y)) != 0:
            return result
    return 0


def compare_constraint(a: StringConstraint, b: StringConstraint) -> int:
    """Order string constraints by pattern, then ``len_min``, then ``len_max``."""
    return (
        _cmp_optional(a.pattern, b.pattern)
        or _cmp_optional(a.len_min, b.len_min)
        or _cmp_optional(a.len_max, b.len_max)
    )


def _enum_first(a: tuple[Any, ...] | None, b: tuple[Any, ...] | None) -> int:
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    return _cmp_sequences(sorted(a), sorted(b))


def _compare_number(a: NumberType, b: NumberType) -> int:
    return (
        _enum_first(a.enum, b.enum)
        or _cmp(not a.integer, not b.integer)
        or _cmp_optional(a.min, b.min)
        or _cmp_optional(a.max, b.max)
    )


def _compare_string(a: StringType, b: StringType) -> int:
    if result := _enum_first(a.enum, b.enum):
        return result
    return _cmp_sequences(a.constraints or (), b.constraints or (), compare_constraint)


def _bool_rank(t: BoolType) -> int:
    match t.literal:
        case True:
            return 0
        case False:
            return 1
        case _:
            return 2


def _compare_array(a: ArrayType, b: ArrayType) -> int:
    if result := _cmp(a.length, b.length):
        return result
    match a.shape, b.shape:
        case UniformShape(x), UniformShape(y):
            return compare(x, y)
        case UniformShape(x), tuple(items):
            for item in items:
                if result := compare(x, item):
                    return result
            return -1
        case tuple(items), UniformShape(y):
            for item in items:
                if result := compare(item, y):
                    return result
            return 1
        case _:
            return _cmp_sequences(a.shape, b.shape, compare)


def _compare_dict(a: DictType, b: DictType) -> int:
    if a.keys is None or b.keys is None:
        return _cmp(a.keys is not None, b.keys is not None)
    if result := _cmp(len(a.keys), len(b.keys)):
        return result
    names_a, names_b = sorted(a.keys), sorted(b.keys)
    if result := _cmp_sequences(names_a, names_b):
        return result
    for name in names_a:
        fa, fb = a.keys[name], b.keys[name]
        if result := compare(fa.type, fb.type) or _cmp(fa.optional, fb.optional):
            return result
    return 0


def _compare_shaped(a: NDArrayType | TensorType, b: NDArrayType | TensorType) -> int:
    if result := _cmp_optional(a.dtype, b.dtype):
        return result
    if a.shape is None or b.shape is None:
        return _cmp(a.shape is None, b.shape is None)
    return _cmp_sequences(a.shape, b.shape)


def compare(a: NodeEntryType, b: NodeEntryType) -> int:  # noqa: PLR0911
    """Compare two normalized types.

    Returns:
        A negative number, zero or a positive number when ``a`` sorts before, equal to,
        or after ``b``.

    """
    if a.kind != b.kind:
        return _cmp(a.kind, b.kind)
    match a, b:
        case AnyType(), AnyType():
            return 0
        case NeverType(), NeverType():
            return 0
        case NumberType(), NumberType():
            return _compare_number(a, b)
        case StringType(), StringType():
            return _compare_string(a, b)
        case BoolType(), BoolType():
            return _cmp(_bool_rank(a), _bool_rank(b))
        case ArrayType(), ArrayType():
            return _compare_array(a, b)
        case DictType(), DictType():
            return _compare_dict(a, b)
        case (NDArrayType(), NDArrayType()) | (TensorType(), TensorType()):
            return _compare_shaped(a, b)
        case PythonObjectType(), PythonObjectType():
            return _cmp(a.type, b.type)
        case UnionType(), UnionType():
            return _cmp_sequences(a.members, b.members, compare)
    msg = f"Cannot compare {a!r} and {b!r}"
    raise TypeError(msg)


sort_key = cmp_to_key(compare)


def sort_types[T: NodeEntryType](types: Iterable[T]) -> list[T]:
    """Sort types by :func:`compare`."""
    return sorted(types, key=sort_key)


def types_equal(a: NodeEntryType, b: NodeEntryType) -> bool:
    """Structural equality of two normalized types."""
    return compare(a, b) == 0


def canonical_constraints(
    constraints: Iterable[StringConstraint] | None,
) -> tuple[StringConstraint, ...] | None:
    """Trim, de-duplicate and sort an OR-list of string constraints.

    ``None`` means "unconstrained": it is returned for an empty list and for any list
    holding a constraint that accepts every string.
    """
    if constraints is None:
        return None
    cleaned: list[StringConstraint] = []
    for c in constraints:
        pattern = c.pattern.strip() if c.pattern is not None else None
        c = StringConstraint(pattern or None, c.len_min, c.len_max)  # noqa: PLW2901
        if c.is_trivial:
            return None
        if not any(compare_constraint(c, seen) == 0 for seen in cleaned):
            cleaned.append(c)
    if not cleaned:
        return None
    return tuple(sorted(cleaned, key=cmp_to_key(compare_constraint)))
