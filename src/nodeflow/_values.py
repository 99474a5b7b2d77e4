"""Runtime value handles and type derivation from concrete values."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ._normalize import normalize
from ._types import (
    NEVER,
    ArrayType,
    BoolType,
    DictField,
    DictType,
    NDArrayType,
    NodeEntryType,
    NumberType,
    PythonObjectType,
    StringType,
    TensorType,
)


@dataclass(frozen=True, slots=True)
class NDArray:
    """Handle to an n-dimensional array held outside the engine."""

    dtype: str
    shape: tuple[int, ...]
    id: str = ""


@dataclass(frozen=True, slots=True)
class Tensor:
    """Handle to a tensor held outside the engine."""

    dtype: str
    shape: tuple[int, ...]
    id: str = ""


@dataclass(frozen=True, slots=True)
class PythonObject:
    """Handle to an opaque object, identified by its type name."""

    type: str
    id: str = ""


def python_type_name(value: object) -> str:
    """Qualified class name of ``value``; builtins are not prefixed with their module.

    Example:
        >>> python_type_name(3j)
        'complex'
        >>> python_type_name(NDArray("f4", (2,)))
        'nodeflow._values.NDArray'

    """
    cls = type(value)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _raw_type_of(value: object) -> NodeEntryType:  # noqa: PLR0911
    match value:
        case None:
            return NEVER
        case bool():
            return BoolType(literal=value)
        case int() | float():
            return NumberType(enum=(value,))
        case str():
            return StringType(enum=(value,))
        case NDArray(dtype, shape):
            return NDArrayType(dtype=dtype, shape=shape)
        case Tensor(dtype, shape):
            return TensorType(dtype=dtype, shape=shape)
        case PythonObject(type_name):
            return PythonObjectType(type_name)
        case Mapping():
            return DictType({str(k): DictField(_raw_type_of(v)) for k, v in value.items()})
        case Sequence():
            return ArrayType(tuple(_raw_type_of(item) for item in value))
        case _:
            return PythonObjectType(python_type_name(value))


def type_of_value(value: object) -> NodeEntryType:
    """Derive the canonical type describing exactly ``value``.

    Scalars map to single-value enumerations (or a bool literal), sequences to arrays
    with one type per position and mappings to dicts with required keys.
    """
    return normalize(_raw_type_of(value))
