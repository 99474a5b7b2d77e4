"""Tests for type normalization."""

from nodeflow import (
    ANY,
    NEVER,
    ArrayType,
    BoolType,
    DictField,
    DictType,
    NumberType,
    StringConstraint,
    StringType,
    UniformShape,
    UnionType,
    combine,
    normalize,
)


class TestNormalizeUnion:
    """Tests for normalizing unions."""

    def test_mergeable_members_collapse(self) -> None:
        t = normalize([{"name": "number", "enum": [1, 2]}, {"name": "number", "min": 0, "max": 5}])

        assert t == NumberType(min=0, max=5)

    def test_members_are_sorted_by_kind(self) -> None:
        t = normalize([{"name": "string"}, {"name": "bool"}, {"name": "number"}])

        assert t == UnionType((BoolType(), NumberType(), StringType()))

    def test_any_absorbs_everything(self) -> None:
        assert normalize([{"name": "number"}, {"name": "any"}]) == ANY

    def test_never_members_are_dropped(self) -> None:
        assert normalize([{"name": "never"}, {"name": "string"}]) == StringType()

    def test_empty_union_is_never(self) -> None:
        assert normalize([]) == NEVER

    def test_nested_singleton_union_unwraps(self) -> None:
        assert normalize([[{"name": "bool"}], {"name": "never"}]) == BoolType()

    def test_bool_literals_merge_into_plain_bool(self) -> None:
        t = normalize([{"name": "bool", "literal": True}, {"name": "bool", "literal": False}])

        assert t == BoolType()

    def test_union_combined_with_covering_range(self) -> None:
        """An enumerated number is absorbed by a range containing all its values."""
        union = normalize([{"name": "number", "enum": [1, 2]}, {"name": "string"}])

        result = combine(union, NumberType(min=0, max=5))

        assert union == UnionType((NumberType(enum=(1, 2)), StringType()))
        assert result == UnionType((NumberType(min=0, max=5), StringType()))


class TestNormalizeString:
    """Tests for normalizing string constraints."""

    def test_blank_pattern_is_unconstrained(self) -> None:
        t = normalize(StringType(constraints=(StringConstraint(pattern="  "),)))

        assert t == StringType()

    def test_empty_constraint_list_is_unconstrained(self) -> None:
        assert normalize(StringType(constraints=())) == StringType()

    def test_constraints_are_deduplicated_and_sorted(self) -> None:
        t = normalize(
            StringType(
                constraints=(
                    StringConstraint(pattern="^b"),
                    StringConstraint(pattern=" ^a "),
                    StringConstraint(pattern="^b"),
                ),
            ),
        )

        assert t == StringType(constraints=(StringConstraint(pattern="^a"), StringConstraint(pattern="^b")))


class TestNormalizeArray:
    """Tests for normalizing arrays."""

    def test_homogeneous_positions_collapse_to_uniform(self) -> None:
        t = normalize(ArrayType((NumberType(), NumberType())))

        assert t == ArrayType(UniformShape(NumberType(), 2))

    def test_heterogeneous_positions_are_kept(self) -> None:
        t = normalize(ArrayType((NumberType(), StringType())))

        assert t == ArrayType((NumberType(), StringType()))

    def test_element_types_are_normalized(self) -> None:
        t = normalize(ArrayType(UniformShape(UnionType((NEVER, BoolType())))))

        assert t == ArrayType(UniformShape(BoolType()))


class TestNormalizeDict:
    """Tests for normalizing dicts."""

    def test_never_fields_are_dropped(self) -> None:
        t = normalize(DictType({"a": DictField(NumberType()), "b": DictField(NEVER)}))

        assert t == DictType({"a": DictField(NumberType())})

    def test_no_fields_left_means_any_mapping(self) -> None:
        assert normalize(DictType({"b": DictField(NEVER)})) == DictType()


class TestIdempotence:
    """Normalizing a normalized type changes nothing."""

    def test_union(self) -> None:
        once = normalize([{"name": "string", "enum": ["b", "a"]}, {"name": "number", "integer": True}, []])

        assert normalize(once) == once

    def test_nested(self) -> None:
        once = normalize(
            {
                "name": "dict",
                "keys": {"xs": {"name": "array", "shape": [[{"name": "number"}, {"name": "never"}], 2]}},
            },
        )

        assert normalize(once) == once
