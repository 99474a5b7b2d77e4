"""Registry of node definitions keyed by id and version."""

from __future__ import annotations

import logging
from itertools import zip_longest
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from ._model import NodeMeta, NodeMetaRef

logger = logging.getLogger(__name__)


def _version_part(part: str) -> int:
    try:
        return int(part)
    except ValueError:
        return 0


def compare_versions(a: str, b: str) -> int:
    """Compare dotted numeric versions; missing or non-numeric parts count as zero.

    Example:
        >>> compare_versions("1.2", "1.10")
        -1
        >>> compare_versions("1.0.0", "1")
        0

    """
    for x, y in zip_longest(a.split("."), b.split("."), fillvalue="0"):
        px, py = _version_part(x), _version_part(y)
        if px != py:
            return -1 if px < py else 1
    return 0


class NodeRegistry:
    """Node definitions available to a flow.

    The registry is an explicit object handed to the engine (through
    :class:`nodeflow.EngineContext`); it is also callable as a meta resolver.
    """

    def __init__(self, metas: Iterable[NodeMeta] = ()) -> None:
        self._metas: dict[str, dict[str, NodeMeta]] = {}
        for meta in metas:
            self.register(meta)

    def register(self, meta: NodeMeta) -> None:
        versions = self._metas.setdefault(meta.id, {})
        if meta.version in versions:
            logger.debug("Replacing node definition %s@%s", meta.id, meta.version)
        versions[meta.version] = meta

    def resolve(self, ref: NodeMetaRef) -> NodeMeta | None:
        """Look up a definition; a reference without version resolves to the latest one."""
        versions = self._metas.get(ref.id)
        if not versions:
            return None
        if ref.version is not None:
            return versions.get(ref.version)
        latest = next(iter(versions))
        for version in versions:
            if compare_versions(version, latest) > 0:
                latest = version
        return versions[latest]

    __call__ = resolve

    def merged(self, other: NodeRegistry) -> NodeRegistry:
        return NodeRegistry([*self, *other])

    def __iter__(self) -> Iterator[NodeMeta]:
        for versions in self._metas.values():
            yield from versions.values()

    def __len__(self) -> int:
        return sum(len(v) for v in self._metas.values())

    def __contains__(self, ref: NodeMetaRef) -> bool:
        return self.resolve(ref) is not None
