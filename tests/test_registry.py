"""Tests for the node definition registry."""

import pytest

from nodeflow import NodeMeta, NodeMetaRef, NodeRegistry, builtin_registry
from nodeflow._flow import compare_versions


class TestCompareVersions:
    """Tests for compare_versions."""

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("1.2", "1.10", -1),
            ("2.0", "1.9.9", 1),
            ("1.0.0", "1", 0),
            ("1.beta", "1.0", 0),
        ],
    )
    def test_compare(self, a: str, b: str, expected: int) -> None:
        assert compare_versions(a, b) == expected


class TestNodeRegistry:
    """Tests for NodeRegistry."""

    def test_latest_version_by_default(self) -> None:
        registry = NodeRegistry(
            [NodeMeta(id="demo/node", version="1.10.0"), NodeMeta(id="demo/node", version="1.9.0")],
        )

        meta = registry.resolve(NodeMetaRef("demo/node"))

        assert meta is not None
        assert meta.version == "1.10.0"

    def test_explicit_version(self) -> None:
        registry = NodeRegistry([NodeMeta(id="demo/node", version="1.0.0"), NodeMeta(id="demo/node", version="2.0.0")])

        meta = registry.resolve(NodeMetaRef("demo/node", "1.0.0"))

        assert meta is not None
        assert meta.version == "1.0.0"

    def test_missing_reference(self) -> None:
        registry = NodeRegistry([NodeMeta(id="demo/node", version="1.0.0")])

        assert registry.resolve(NodeMetaRef("demo/other")) is None
        assert registry.resolve(NodeMetaRef("demo/node", "3.0.0")) is None
        assert NodeMetaRef("demo/other") not in registry

    def test_registry_is_a_resolver(self) -> None:
        registry = builtin_registry()

        assert registry(NodeMetaRef("math/plus")) is registry.resolve(NodeMetaRef("math/plus"))

    def test_register_replaces_same_version(self) -> None:
        registry = NodeRegistry([NodeMeta(id="demo/node", title="Old")])
        registry.register(NodeMeta(id="demo/node", title="New"))

        meta = registry.resolve(NodeMetaRef("demo/node"))

        assert len(registry) == 1
        assert meta is not None
        assert meta.title == "New"

    def test_merged_prefers_other(self) -> None:
        merged = builtin_registry().merged(NodeRegistry([NodeMeta(id="math/plus", version="1.0.0", title="Mine")]))

        meta = merged.resolve(NodeMetaRef("math/plus"))

        assert meta is not None
        assert meta.title == "Mine"
        assert len(merged) == len(builtin_registry())

    def test_ref_string(self) -> None:
        assert str(NodeMetaRef("demo/node")) == "demo/node"
        assert str(NodeMetaRef("demo/node", "1.0.0")) == "demo/node@1.0.0"
