"""Rewrite raw entry types into canonical form."""

from ._combine import combine_union
from ._compare import canonical_constraints, compare
from ._types import (
    ArrayType,
    DictField,
    DictType,
    NeverType,
    NodeEntryType,
    NumberType,
    StringType,
    UniformShape,
    UnionType,
    parse_entry_type,
)


def _canonical_enum[V: (float, str)](enum: tuple[V, ...] | None) -> tuple[V, ...] | None:
    if enum is None:
        return None
    return tuple(sorted(set(enum)))


def normalize_number(t: NumberType) -> NumberType:
    return NumberType(enum=_canonical_enum(t.enum), min=t.min, max=t.max, integer=t.integer)


def normalize_string(t: StringType) -> StringType:
    return StringType(enum=_canonical_enum(t.enum), constraints=canonical_constraints(t.constraints))


def normalize_array(t: ArrayType) -> ArrayType:
    """Normalize element types and collapse homogeneous position lists.

    A per-position list whose items all normalize to the same type becomes a uniform
    shape of that length.
    """
    if isinstance(t.shape, UniformShape):
        return ArrayType(UniformShape(normalize(t.shape.element), t.shape.length))
    items = tuple(normalize(item) for item in t.shape)
    if items and all(compare(items[0], item) == 0 for item in items[1:]):
        return ArrayType(UniformShape(items[0], len(items)))
    return ArrayType(items)


def normalize_dict(t: DictType) -> DictType:
    if t.keys is None:
        return t
    keys = {}
    for name, field in t.keys.items():
        field_type = normalize(field.type)
        # A never-typed field can hold no value, which is the same as being absent.
        if isinstance(field_type, NeverType):
            continue
        keys[name] = DictField(field_type, optional=field.optional)
    return DictType(keys or None)


def normalize_union(t: UnionType) -> NodeEntryType:
    return combine_union(normalize(member) for member in t.members)


def normalize(t: NodeEntryType | object) -> NodeEntryType:
    """Rewrite a raw type into its canonical form.

    Args:
        t: A type, or its wire form.

    Returns:
        ``Any``, ``Never``, a normalized simple type, or a sorted union of at least two
        pairwise unmergeable simple types.

    Example:
        >>> normalize([{"name": "number", "enum": [1, 2]}, {"name": "number", "min": 0, "max": 5}])
        NumberType(enum=None, min=0, max=5, integer=False)

    """
    t = parse_entry_type(t)
    match t:
        case UnionType():
            return normalize_union(t)
        case NumberType():
            return normalize_number(t)
        case StringType():
            return normalize_string(t)
        case ArrayType():
            return normalize_array(t)
        case DictType():
            return normalize_dict(t)
        case _:
            return t
