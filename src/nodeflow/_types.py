"""Structural type model of node entries.

A type is either a simple type or a union of simple types. All types are immutable
dataclasses; raw types (as read from documents) may be redundant, and
:func:`nodeflow.normalize` rewrites them into canonical form.

The wire form used in documents is a mapping with a ``name`` tag, or a list for a union::

    {"name": "number", "integer": true, "min": 0, "max": 10}
    [{"name": "string"}, {"name": "bool", "literal": true}]
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from ._errors import TypeModelError


@dataclass(frozen=True, slots=True)
class AnyType:
    """Accepts every value."""

    kind: ClassVar[str] = "any"


@dataclass(frozen=True, slots=True)
class NeverType:
    """Accepts no value."""

    kind: ClassVar[str] = "never"


@dataclass(frozen=True, slots=True)
class NumberType:
    """A number, optionally restricted to an enumeration, a range or integers.

    Attributes:
        enum: Allowed values. Values outside the range or non-integral values of an
            integer type are ignored (see :meth:`effective_enum`).
        min: Inclusive lower bound, ``None`` for unbounded.
        max: Inclusive upper bound, ``None`` for unbounded.
        integer: Only integral values are allowed.

    """

    enum: tuple[float, ...] | None = None
    min: float | None = None
    max: float | None = None
    integer: bool = False

    kind: ClassVar[str] = "number"

    def accepts(self, value: float) -> bool:
        """Whether ``value`` satisfies the range and integer constraints."""
        if self.integer and not (isinstance(value, int) or float(value).is_integer()):
            return False
        if self.min is not None and value < self.min:
            return False
        return self.max is None or value <= self.max

    def effective_enum(self) -> tuple[float, ...] | None:
        """Enumerated values that satisfy the range and integer constraints."""
        if self.enum is None:
            return None
        return tuple(v for v in self.enum if self.accepts(v))

    @property
    def has_range(self) -> bool:
        return self.min is not None or self.max is not None


@dataclass(frozen=True, slots=True)
class StringConstraint:
    """One alternative of an OR-list of string constraints."""

    pattern: str | None = None
    len_min: int | None = None
    len_max: int | None = None

    @property
    def is_trivial(self) -> bool:
        """A constraint without pattern and bounds accepts every string."""
        return self.pattern is None and self.len_min is None and self.len_max is None

    def matches(self, value: str) -> bool:
        if self.len_min is not None and len(value) < self.len_min:
            return False
        if self.len_max is not None and len(value) > self.len_max:
            return False
        return self.pattern is None or re.search(self.pattern, value) is not None


def string_satisfies(value: str, constraints: Sequence[StringConstraint] | None) -> bool:
    """Whether ``value`` satisfies at least one of the OR-combined constraints."""
    if constraints is None:
        return True
    return any(c.matches(value) for c in constraints)


@dataclass(frozen=True, slots=True)
class StringType:
    """A string, optionally restricted to an enumeration and/or OR-combined constraints."""

    enum: tuple[str, ...] | None = None
    constraints: tuple[StringConstraint, ...] | None = None

    kind: ClassVar[str] = "string"

    def effective_enum(self) -> tuple[str, ...] | None:
        if self.enum is None:
            return None
        return tuple(v for v in self.enum if string_satisfies(v, self.constraints))


@dataclass(frozen=True, slots=True)
class BoolType:
    """A boolean, optionally fixed to a literal value."""

    literal: bool | None = None

    kind: ClassVar[str] = "bool"


@dataclass(frozen=True, slots=True)
class UniformShape:
    """Array shape where every element has the same type; ``length == -1`` is any length."""

    element: NodeEntryType
    length: int = -1


@dataclass(frozen=True, slots=True)
class ArrayType:
    """A list, either uniform or with one type per position."""

    shape: UniformShape | tuple[NodeEntryType, ...]

    kind: ClassVar[str] = "array"

    @property
    def length(self) -> int:
        if isinstance(self.shape, UniformShape):
            return self.shape.length
        return len(self.shape)

    def element_at(self, index: int) -> NodeEntryType:
        if isinstance(self.shape, UniformShape):
            return self.shape.element
        return self.shape[index]


@dataclass(frozen=True, slots=True)
class DictField:
    type: NodeEntryType
    optional: bool = False


@dataclass(frozen=True, slots=True)
class DictType:
    """A mapping with declared keys, or any mapping when ``keys`` is ``None``."""

    keys: Mapping[str, DictField] | None = None

    kind: ClassVar[str] = "dict"


@dataclass(frozen=True, slots=True)
class NDArrayType:
    """An n-dimensional array; ``-1`` in the shape is a dynamic dimension."""

    dtype: str | None = None
    shape: tuple[int, ...] | None = None

    kind: ClassVar[str] = "ndarray"


@dataclass(frozen=True, slots=True)
class TensorType:
    """A tensor; ``-1`` in the shape is a dynamic dimension."""

    dtype: str | None = None
    shape: tuple[int, ...] | None = None

    kind: ClassVar[str] = "tensor"


@dataclass(frozen=True, slots=True)
class PythonObjectType:
    """An opaque object identified by its type name."""

    type: str

    kind: ClassVar[str] = "python-object"


@dataclass(frozen=True, slots=True)
class UnionType:
    """One of several simple types.

    A normalized union has at least two members, sorted and pairwise unmergeable.
    """

    members: tuple[SimpleType, ...] = field(default_factory=tuple)

    kind: ClassVar[str] = "union"

    def __len__(self) -> int:
        return len(self.members)


SimpleType = (
    AnyType
    | NeverType
    | NumberType
    | StringType
    | BoolType
    | ArrayType
    | DictType
    | NDArrayType
    | TensorType
    | PythonObjectType
)
NodeEntryType = SimpleType | UnionType

ANY = AnyType()
NEVER = NeverType()


def _optional_number(raw: Mapping[str, Any], key: str) -> float | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"Expected a number for '{key}', got {value!r}"
        raise TypeModelError(msg)
    return value


def _shape(raw: Mapping[str, Any]) -> tuple[int, ...] | None:
    value = raw.get("shape")
    if value is None:
        return None
    if not isinstance(value, Sequence) or not all(isinstance(d, int) and not isinstance(d, bool) for d in value):
        msg = f"Expected a list of integers for 'shape', got {value!r}"
        raise TypeModelError(msg)
    return tuple(value)


def _parse_array_shape(value: object) -> UniformShape | tuple[NodeEntryType, ...]:
    # [elementType, length] is a uniform shape, a list of types is heterogeneous.
    match value:
        case [element, int(length)] if not isinstance(element, int):
            return UniformShape(parse_entry_type(element), length)
        case list() | tuple():
            return tuple(parse_entry_type(item) for item in value)
        case _:
            msg = f"Invalid array shape: {value!r}"
            raise TypeModelError(msg)


def _parse_constraints(value: object) -> tuple[StringConstraint, ...] | None:
    if value is None:
        return None
    if not isinstance(value, Sequence) or isinstance(value, str):
        msg = f"Expected a list for 'constraints', got {value!r}"
        raise TypeModelError(msg)
    constraints = []
    for item in value:
        if isinstance(item, StringConstraint):
            constraints.append(item)
            continue
        if not isinstance(item, Mapping):
            msg = f"Invalid string constraint: {item!r}"
            raise TypeModelError(msg)
        constraints.append(
            StringConstraint(
                pattern=item.get("pattern"),
                len_min=item.get("lenMin"),
                len_max=item.get("lenMax"),
            ),
        )
    return tuple(constraints)


def _parse_dict_keys(value: object) -> dict[str, DictField] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        msg = f"Expected a table for 'keys', got {value!r}"
        raise TypeModelError(msg)
    keys: dict[str, DictField] = {}
    for name, item in value.items():
        if isinstance(item, DictField):
            keys[name] = item
        elif isinstance(item, Mapping) and "type" in item and "name" not in item:
            keys[name] = DictField(parse_entry_type(item["type"]), optional=bool(item.get("optional", False)))
        else:
            keys[name] = DictField(parse_entry_type(item))
    return keys


def parse_entry_type(raw: object) -> NodeEntryType:  # noqa: C901, PLR0911
    """Parse the wire form of a type.

    Already-built types are returned unchanged. The result is not normalized.

    Args:
        raw: A mapping with a ``name`` tag, a list (a union) or a type instance.

    Returns:
        The parsed type.

    Raises:
        TypeModelError: If ``raw`` is not a valid type.

    Example:
        >>> parse_entry_type({"name": "number", "integer": True, "min": 0})
        NumberType(enum=None, min=0, max=None, integer=True)

    """
    if isinstance(raw, SimpleType | UnionType):
        return raw
    if isinstance(raw, list | tuple):
        members = [parse_entry_type(item) for item in raw]
        flat: list[SimpleType] = []
        for member in members:
            if isinstance(member, UnionType):
                flat.extend(member.members)
            else:
                flat.append(member)
        return UnionType(tuple(flat))
    if not isinstance(raw, Mapping):
        msg = f"Invalid entry type: {raw!r}"
        raise TypeModelError(msg)

    match raw.get("name"):
        case "any":
            return ANY
        case "never":
            return NEVER
        case "number":
            enum = raw.get("enum")
            return NumberType(
                enum=tuple(enum) if enum is not None else None,
                min=_optional_number(raw, "min"),
                max=_optional_number(raw, "max"),
                integer=bool(raw.get("integer", False)),
            )
        case "string":
            enum = raw.get("enum")
            return StringType(
                enum=tuple(enum) if enum is not None else None,
                constraints=_parse_constraints(raw.get("constraints")),
            )
        case "bool":
            return BoolType(literal=raw.get("literal"))
        case "array":
            if "shape" not in raw:
                return ArrayType(UniformShape(ANY, -1))
            return ArrayType(_parse_array_shape(raw["shape"]))
        case "dict":
            return DictType(keys=_parse_dict_keys(raw.get("keys")))
        case "ndarray":
            return NDArrayType(dtype=raw.get("dtype"), shape=_shape(raw))
        case "tensor":
            return TensorType(dtype=raw.get("dtype"), shape=_shape(raw))
        case "python-object":
            type_name = raw.get("type")
            if not isinstance(type_name, str):
                msg = f"python-object requires a string 'type', got {type_name!r}"
                raise TypeModelError(msg)
            return PythonObjectType(type_name)
        case name:
            msg = f"Unknown entry type name: {name!r}"
            raise TypeModelError(msg)


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def dump_entry_type(type_: NodeEntryType) -> dict[str, Any] | list[Any]:  # noqa: PLR0911
    """Convert a type to its wire form (inverse of :func:`parse_entry_type`)."""
    match type_:
        case UnionType(members):
            return [dump_entry_type(m) for m in members]
        case AnyType() | NeverType():
            return {"name": type_.kind}
        case NumberType(enum, min_, max_, integer):
            return _drop_none(
                {
                    "name": "number",
                    "enum": list(enum) if enum is not None else None,
                    "min": min_,
                    "max": max_,
                    "integer": True if integer else None,
                },
            )
        case StringType(enum, constraints):
            return _drop_none(
                {
                    "name": "string",
                    "enum": list(enum) if enum is not None else None,
                    "constraints": [
                        _drop_none({"pattern": c.pattern, "lenMin": c.len_min, "lenMax": c.len_max})
                        for c in constraints
                    ]
                    if constraints is not None
                    else None,
                },
            )
        case BoolType(literal):
            return _drop_none({"name": "bool", "literal": literal})
        case ArrayType(UniformShape(element, length)):
            return {"name": "array", "shape": [dump_entry_type(element), length]}
        case ArrayType(shape):
            return {"name": "array", "shape": [dump_entry_type(t) for t in shape]}
        case DictType(keys):
            if keys is None:
                return {"name": "dict"}
            return {
                "name": "dict",
                "keys": {
                    name: {"type": dump_entry_type(f.type), "optional": f.optional} if f.optional
                    else dump_entry_type(f.type)
                    for name, f in keys.items()
                },
            }
        case NDArrayType(dtype, shape) | TensorType(dtype, shape):
            return _drop_none({"name": type_.kind, "dtype": dtype, "shape": list(shape) if shape is not None else None})
        case PythonObjectType(type_name):
            return {"name": "python-object", "type": type_name}
    msg = f"Not an entry type: {type_!r}"
    raise TypeError(msg)
