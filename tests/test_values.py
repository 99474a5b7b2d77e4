"""Tests for value handles and type derivation."""

import pytest

from nodeflow import (
    NEVER,
    ArrayType,
    BoolType,
    DictField,
    DictType,
    NDArray,
    NDArrayType,
    NumberType,
    PythonObject,
    PythonObjectType,
    StringType,
    Tensor,
    TensorType,
    UniformShape,
    type_of_value,
    validate_value,
)
from nodeflow._values import python_type_name


class TestTypeOfValue:
    """Tests for type_of_value."""

    def test_scalars(self) -> None:
        assert type_of_value(3) == NumberType(enum=(3,))
        assert type_of_value("x") == StringType(enum=("x",))
        assert type_of_value(True) == BoolType(literal=True)

    def test_none_is_never(self) -> None:
        assert type_of_value(None) == NEVER

    def test_homogeneous_list_is_uniform(self) -> None:
        assert type_of_value([1, 1]) == ArrayType(UniformShape(NumberType(enum=(1,)), 2))

    def test_mixed_list_is_positional(self) -> None:
        assert type_of_value([1, "a"]) == ArrayType((NumberType(enum=(1,)), StringType(enum=("a",))))

    def test_mapping_drops_none_values(self) -> None:
        assert type_of_value({"a": 1, "b": None}) == DictType({"a": DictField(NumberType(enum=(1,)))})

    def test_handles(self) -> None:
        assert type_of_value(NDArray("f4", (2, 3))) == NDArrayType(dtype="f4", shape=(2, 3))
        assert type_of_value(Tensor("f4", (1,))) == TensorType(dtype="f4", shape=(1,))
        assert type_of_value(PythonObject("my.Thing")) == PythonObjectType("my.Thing")

    def test_other_objects(self) -> None:
        assert type_of_value(3j) == PythonObjectType("complex")

    @pytest.mark.parametrize(
        "value",
        [0, -2.5, "", "text", False, [], [1, [2, "x"]], {"a": {"b": [True]}}, NDArray("f8", (1,)), object()],
    )
    def test_value_satisfies_its_own_type(self, value: object) -> None:
        assert validate_value(value, type_of_value(value))


class TestPythonTypeName:
    """Tests for python_type_name."""

    def test_builtins_are_unqualified(self) -> None:
        assert python_type_name(3j) == "complex"
        assert python_type_name(object()) == "object"

    def test_other_types_are_qualified(self) -> None:
        assert python_type_name(NDArray("f4", (2,))) == "nodeflow._values.NDArray"
