"""May-assign and must-assign relations between normalized types.

``left`` is always the receiving (declared) type and ``right`` the offered one.

* ``must_assign(left, right)`` holds when every value described by ``right`` is also
  described by ``left``.
* ``may_assign(left, right)`` holds when the two descriptions overlap.

An uninhabited ``right`` (``Never``, an empty enumeration, an empty range) is
vacuously assignable under both relations, which keeps ``must_assign`` implying
``may_assign``.
"""

import math

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
    string_satisfies,
)


def _bounds(t: NumberType) -> tuple[float, float]:
    low = -math.inf if t.min is None else t.min
    high = math.inf if t.max is None else t.max
    return low, high


def _has_value_in(low: float, high: float, *, integer: bool) -> bool:
    if low > high:
        return False
    if not integer or math.isinf(low) or math.isinf(high):
        return True
    return math.ceil(low) <= math.floor(high)


def _number_is_empty(t: NumberType) -> bool:
    enum = t.effective_enum()
    if enum is not None:
        return len(enum) == 0
    return not _has_value_in(*_bounds(t), integer=t.integer)


def _string_is_empty(t: StringType) -> bool:
    enum = t.effective_enum()
    if enum is not None:
        return len(enum) == 0
    if t.constraints is None:
        return False
    return all(
        c.len_min is not None and c.len_max is not None and c.len_min > c.len_max for c in t.constraints
    )


def is_uninhabited(t: NodeEntryType) -> bool:
    """Whether no value can satisfy ``t`` (checked for scalar kinds only)."""
    match t:
        case NeverType():
            return True
        case NumberType():
            return _number_is_empty(t)
        case StringType():
            return _string_is_empty(t)
        case _:
            return False


def _number_value_allowed(t: NumberType, value: float) -> bool:
    enum = t.effective_enum()
    return (enum is None or value in enum) and t.accepts(value)


def _string_value_allowed(t: StringType, value: str) -> bool:
    enum = t.effective_enum()
    return (enum is None or value in enum) and string_satisfies(value, t.constraints)


def _shapes_overlap(left: tuple[int, ...] | None, right: tuple[int, ...] | None) -> bool:
    if left is None or right is None:
        return True
    if len(left) != len(right):
        return False
    return all(ld in (-1, rd) or rd == -1 for ld, rd in zip(left, right, strict=True))


def _shape_contains(left: tuple[int, ...] | None, right: tuple[int, ...] | None) -> bool:
    if left is None:
        return True
    if right is None or len(left) != len(right):
        return False
    return all(ld in (-1, rd) for ld, rd in zip(left, right, strict=True))


# may-assign


def _may_number(left: NumberType, right: NumberType) -> bool:
    left_enum, right_enum = left.effective_enum(), right.effective_enum()
    if right_enum is not None:
        return any(_number_value_allowed(left, v) for v in right_enum)
    if left_enum is not None:
        return any(right.accepts(v) for v in left_enum)
    left_low, left_high = _bounds(left)
    right_low, right_high = _bounds(right)
    return _has_value_in(
        max(left_low, right_low),
        min(left_high, right_high),
        integer=left.integer or right.integer,
    )


def _constraints_overlap(left: StringConstraint, right: StringConstraint) -> bool:
    # Two different regular expressions are assumed to possibly match a common string.
    low = max(left.len_min or 0, right.len_min or 0)
    high = min(
        math.inf if left.len_max is None else left.len_max,
        math.inf if right.len_max is None else right.len_max,
    )
    return low <= high


def _may_string(left: StringType, right: StringType) -> bool:
    left_enum, right_enum = left.effective_enum(), right.effective_enum()
    if right_enum is not None:
        return any(_string_value_allowed(left, v) for v in right_enum)
    if left_enum is not None:
        return any(string_satisfies(v, right.constraints) for v in left_enum)
    if left.constraints is None or right.constraints is None:
        return True
    return any(_constraints_overlap(lc, rc) for lc in left.constraints for rc in right.constraints)


def _may_array(left: ArrayType, right: ArrayType) -> bool:
    if -1 not in (left.length, right.length) and left.length != right.length:
        return False
    if isinstance(left.shape, UniformShape) and isinstance(right.shape, UniformShape):
        return right.length == 0 or may_assign(left.shape.element, right.shape.element)
    length = right.length if right.length != -1 else left.length
    return all(may_assign(left.element_at(i), right.element_at(i)) for i in range(length))


def _may_dict(left: DictType, right: DictType) -> bool:
    if left.keys is None or right.keys is None:
        return True
    for name, left_field in left.keys.items():
        right_field = right.keys.get(name)
        if right_field is None or left_field.optional or right_field.optional:
            continue
        if not may_assign(left_field.type, right_field.type):
            return False
    return True


def may_assign(left: NodeEntryType, right: NodeEntryType) -> bool:  # noqa: PLR0911
    """Whether some value described by ``right`` may be accepted by ``left``.

    Used to decide whether an edge may connect two entries.
    """
    if is_uninhabited(right):
        return True
    match left, right:
        case NeverType(), _:
            return False
        case (AnyType(), _) | (_, AnyType()):
            return True
        case UnionType(), _:
            return any(may_assign(member, right) for member in left.members)
        case _, UnionType():
            return any(may_assign(left, member) for member in right.members)
        case NumberType(), NumberType():
            return _may_number(left, right)
        case StringType(), StringType():
            return _may_string(left, right)
        case BoolType(), BoolType():
            return left.literal is None or right.literal is None or left.literal == right.literal
        case ArrayType(), ArrayType():
            return _may_array(left, right)
        case DictType(), DictType():
            return _may_dict(left, right)
        case (NDArrayType(), NDArrayType()) | (TensorType(), TensorType()):
            if left.dtype is not None and right.dtype is not None and left.dtype != right.dtype:
                return False
            return _shapes_overlap(left.shape, right.shape)
        case PythonObjectType(), PythonObjectType():
            return left.type == right.type
    return False


# must-assign


def _must_number(left: NumberType, right: NumberType) -> bool:
    right_enum = right.effective_enum()
    if right_enum is not None:
        return all(_number_value_allowed(left, v) for v in right_enum)
    if left.effective_enum() is not None:
        return False
    if left.integer and not right.integer:
        return False
    left_low, left_high = _bounds(left)
    right_low, right_high = _bounds(right)
    return left_low <= right_low and right_high <= left_high


def _constraint_contains(left: StringConstraint, right: StringConstraint) -> bool:
    if left.pattern is not None and left.pattern != right.pattern:
        return False
    if left.len_min is not None and (right.len_min is None or right.len_min < left.len_min):
        return False
    return left.len_max is None or (right.len_max is not None and right.len_max <= left.len_max)


def _must_string(left: StringType, right: StringType) -> bool:
    right_enum = right.effective_enum()
    if right_enum is not None:
        return all(_string_value_allowed(left, v) for v in right_enum)
    if left.effective_enum() is not None:
        return False
    if left.constraints is None:
        return True
    if right.constraints is None:
        return False
    return all(any(_constraint_contains(lc, rc) for lc in left.constraints) for rc in right.constraints)


def _must_array(left: ArrayType, right: ArrayType) -> bool:
    if left.length != -1 and left.length != right.length:
        return False
    if isinstance(left.shape, UniformShape) and isinstance(right.shape, UniformShape):
        return right.length == 0 or must_assign(left.shape.element, right.shape.element)
    return all(must_assign(left.element_at(i), right.element_at(i)) for i in range(right.length))


def _must_dict(left: DictType, right: DictType) -> bool:
    if left.keys is None:
        return True
    if right.keys is None:
        return all(field.optional for field in left.keys.values())
    for name, left_field in left.keys.items():
        right_field = right.keys.get(name)
        if right_field is None:
            if not left_field.optional:
                return False
            continue
        if right_field.optional and not left_field.optional:
            return False
        if not must_assign(left_field.type, right_field.type):
            return False
    return True


def must_assign(left: NodeEntryType, right: NodeEntryType) -> bool:  # noqa: PLR0911
    """Whether every value described by ``right`` is accepted by ``left``.

    Used to check inferred output types against declared output types.

    Example:
        >>> must_assign(NumberType(), NumberType(integer=True, min=0))
        True
        >>> must_assign(NumberType(integer=True), NumberType())
        False

    """
    if is_uninhabited(right):
        return True
    match left, right:
        case NeverType(), _:
            return False
        case AnyType(), _:
            return True
        case _, AnyType():
            return False
        case _, UnionType():
            return all(must_assign(left, member) for member in right.members)
        case UnionType(), _:
            return any(must_assign(member, right) for member in left.members)
        case NumberType(), NumberType():
            return _must_number(left, right)
        case StringType(), StringType():
            return _must_string(left, right)
        case BoolType(), BoolType():
            return left.literal is None or left.literal == right.literal
        case ArrayType(), ArrayType():
            return _must_array(left, right)
        case DictType(), DictType():
            return _must_dict(left, right)
        case (NDArrayType(), NDArrayType()) | (TensorType(), TensorType()):
            if left.dtype is not None and left.dtype != right.dtype:
                return False
            return _shape_contains(left.shape, right.shape)
        case PythonObjectType(), PythonObjectType():
            return left.type == right.type
    return False
