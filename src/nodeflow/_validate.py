"""Runtime validation of concrete values against normalized types."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ._code import Capabilities, Code, CodeEvaluator, CodeRef, evaluate_python
from ._errors import ValidationFailed
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
    UnionType,
    string_satisfies,
)
from ._values import NDArray, PythonObject, Tensor, python_type_name

logger = logging.getLogger(__name__)


def _shape_matches(expected: tuple[int, ...] | None, actual: tuple[int, ...]) -> bool:
    if expected is None:
        return True
    if len(expected) != len(actual):
        return False
    return all(e in (-1, a) for e, a in zip(expected, actual, strict=True))


def _validate_number(value: object, t: NumberType) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    enum = t.effective_enum()
    if enum is not None and value not in enum:
        return False
    return t.accepts(value)


def _validate_string(value: object, t: StringType) -> bool:
    if not isinstance(value, str):
        return False
    if t.enum is not None and value not in t.enum:
        return False
    return string_satisfies(value, t.constraints)


def _validate_array(value: object, t: ArrayType) -> bool:
    if not isinstance(value, list | tuple):
        return False
    if t.length != -1 and len(value) != t.length:
        return False
    return all(validate_value(item, t.element_at(i)) for i, item in enumerate(value))


def _validate_dict(value: object, t: DictType) -> bool:
    if not isinstance(value, Mapping):
        return False
    if t.keys is None:
        return True
    for name, field in t.keys.items():
        item = value.get(name)
        if item is None:
            if field.optional or isinstance(field.type, NeverType):
                continue
            return False
        if not validate_value(item, field.type):
            return False
    return True


def _validate_python_object(value: object, t: PythonObjectType) -> bool:
    if isinstance(value, PythonObject):
        return value.type == t.type
    return python_type_name(value) == t.type


def validate_value(value: object, t: NodeEntryType) -> bool:  # noqa: PLR0911
    """Check that ``value`` conforms to the normalized type ``t``.

    Example:
        >>> validate_value(3, NumberType(integer=True, min=0))
        True
        >>> validate_value(3.5, NumberType(integer=True))
        False

    """
    match t:
        case AnyType():
            return True
        case NeverType():
            return False
        case UnionType(members):
            return any(validate_value(value, member) for member in members)
        case NumberType():
            return _validate_number(value, t)
        case StringType():
            return _validate_string(value, t)
        case BoolType(literal):
            return isinstance(value, bool) and (literal is None or value == literal)
        case ArrayType():
            return _validate_array(value, t)
        case DictType():
            return _validate_dict(value, t)
        case NDArrayType(dtype, shape):
            return (
                isinstance(value, NDArray)
                and (dtype is None or value.dtype == dtype)
                and _shape_matches(shape, value.shape)
            )
        case TensorType(dtype, shape):
            return (
                isinstance(value, Tensor)
                and (dtype is None or value.dtype == dtype)
                and _shape_matches(shape, value.shape)
            )
        case PythonObjectType():
            return _validate_python_object(value, t)
    msg = f"Not an entry type: {t!r}"
    raise TypeError(msg)


def run_check_code(
    code: Code | CodeRef,
    *,
    data: Any,
    entry: str | None,
    capabilities: Capabilities,
    evaluator: CodeEvaluator = evaluate_python,
    entries: Sequence[str] = (),
) -> None:
    """Run verification code over a value.

    Inline code sees ``data``, ``entry`` and ``ensure(condition, message, entries=())``.
    A falsy ``ensure`` condition, an ``AssertionError`` or a ``False`` result count as a
    validation failure. Other exceptions propagate.

    Args:
        code: Inline code or a reference into ``capabilities.check_apis``.
        data: The value under validation (a mapping of inputs for node-level checks).
        entry: Name of the entry under validation, ``None`` for node-level checks.
        capabilities: Registry used to resolve code references.
        evaluator: Evaluator for inline code.
        entries: Entry names reported when the check fails without naming any.

    Raises:
        ValidationFailed: If the check fails.
        UnknownCapabilityError: If a code reference cannot be resolved.

    """
    default_entries = list(entries) if entries else ([entry] if entry is not None else [])

    def ensure(condition: object, message: str = "Check failed", entries: Sequence[str] = ()) -> None:
        if not condition:
            raise ValidationFailed(message, list(entries) or default_entries)

    try:
        match code:
            case CodeRef(ref):
                result = capabilities.check_api(ref)(data, entry)
            case Code(source):
                result = evaluator(source, {"data": data, "entry": entry, "ensure": ensure})
    except ValidationFailed as e:
        if not e.entries:
            e.entries = default_entries
        raise
    except AssertionError as e:
        raise ValidationFailed(str(e) or "Check failed", default_entries) from e

    if result is False:
        target = f"'{entry}'" if entry is not None else "node inputs"
        msg = f"Check code rejected {target}"
        raise ValidationFailed(msg, default_entries)


def check_entry_value(
    value: Any,
    t: NodeEntryType,
    *,
    entry: str,
    check_code: Code | CodeRef | None = None,
    capabilities: Capabilities | None = None,
    evaluator: CodeEvaluator = evaluate_python,
) -> None:
    """Validate a value against an entry's declared type and verification code.

    Raises:
        ValidationFailed: If the value does not conform.

    """
    if not validate_value(value, t):
        msg = f"Value {value!r} does not match the type of '{entry}'"
        raise ValidationFailed(msg, [entry])
    if check_code is not None:
        logger.debug("Running check code of entry %s", entry)
        run_check_code(
            check_code,
            data=value,
            entry=entry,
            capabilities=capabilities or Capabilities(),
            evaluator=evaluator,
        )
