"""Immutable filesystem tree nodes.

Nodes are never mutated after construction. A write produces a new node for
the target and for every directory on the way up to the root, while sibling
subtrees keep being shared by reference. Snapshots therefore cost one root
pointer, and two snapshots that share a node share everything beneath it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class FileNode:
    name: str
    content: bytes
    mtime: int

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True, slots=True)
class DirectoryNode:
    name: str
    mtime: int
    children: Mapping[str, Node] = field(default_factory=lambda: MappingProxyType({}))

    def child(self, key: str) -> Node | None:
        return self.children.get(key)

    def with_child(self, key: str, node: Node, *, mtime: int) -> DirectoryNode:
        children = dict(self.children)
        children[key] = node
        return replace(self, children=MappingProxyType(children), mtime=mtime)

    def without_child(self, key: str, *, mtime: int) -> DirectoryNode:
        children = dict(self.children)
        del children[key]
        return replace(self, children=MappingProxyType(children), mtime=mtime)

    def sorted_children(self) -> Iterator[Node]:
        """Children ordered by display name, which keeps traversals stable."""
        return iter(sorted(self.children.values(), key=lambda node: node.name))


Node = FileNode | DirectoryNode
