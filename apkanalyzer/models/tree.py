"""
Package tree models.

A PackageTree mirrors the namespace nesting of every class found in the DEX
files of an APK. Package nodes carry roll-up statistics computed from their
children; class nodes carry the counts read from the bytecode.

Ownership flows from the root down through ``children``. The parent link is a
weak reference used only for upward traversal (e.g. building a qualified name).
"""

from __future__ import annotations

import weakref
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from itertools import islice

from pydantic import BaseModel, Field

ROOT_NAME = "root"


class NodeKind(str, Enum):
    """Kind of a tree node."""

    PACKAGE = "package"
    CLASS = "class"


class Metric(str, Enum):
    """Aggregate counters a node can be ranked by."""

    METHOD_COUNT = "method_count"
    FIELD_COUNT = "field_count"
    REFERENCED_METHOD_COUNT = "referenced_method_count"
    REFERENCED_FIELD_COUNT = "referenced_field_count"
    CLASS_COUNT = "class_count"


@dataclass
class NodeTotals:
    method_count: int = 0
    field_count: int = 0
    referenced_method_count: int = 0
    referenced_field_count: int = 0
    class_count: int = 0

    def add(self, other: NodeTotals) -> None:
        self.method_count += other.method_count
        self.field_count += other.field_count
        self.referenced_method_count += other.referenced_method_count
        self.referenced_field_count += other.referenced_field_count
        self.class_count += other.class_count


@dataclass(eq=False)
class PackageNode:
    """One segment of the package tree (a package component or a class)."""

    name: str
    kind: NodeKind = NodeKind.PACKAGE
    children: dict[str, PackageNode] = field(default_factory=dict)

    # Class nodes only
    declared_method_count: int = 0
    declared_field_count: int = 0
    own_referenced_method_count: int = 0
    own_referenced_field_count: int = 0
    dex_file: str | None = None
    source_file: str | None = None

    _parent: weakref.ref[PackageNode] | None = field(default=None, repr=False)
    _totals: NodeTotals = field(default_factory=NodeTotals, repr=False)

    @property
    def parent(self) -> PackageNode | None:
        return self._parent() if self._parent is not None else None

    @property
    def is_class(self) -> bool:
        return self.kind is NodeKind.CLASS

    @property
    def path(self) -> list[str]:
        """Segments from the root (excluded) down to this node."""
        segments = []
        node: PackageNode | None = self
        while node is not None and node.parent is not None:
            segments.append(node.name)
            node = node.parent
        return segments[::-1]

    @property
    def qualified_name(self) -> str:
        return ".".join(self.path)

    # Aggregates are derived by PackageTree.roll_up() and read-only here.

    @property
    def method_count(self) -> int:
        return self._totals.method_count

    @property
    def field_count(self) -> int:
        return self._totals.field_count

    @property
    def referenced_method_count(self) -> int:
        return self._totals.referenced_method_count

    @property
    def referenced_field_count(self) -> int:
        return self._totals.referenced_field_count

    @property
    def class_count(self) -> int:
        return self._totals.class_count

    def metric(self, by: Metric) -> int:
        return getattr(self._totals, Metric(by).value)

    def child(self, name: str) -> PackageNode | None:
        return self.children.get(name)

    def add_child(self, node: PackageNode) -> PackageNode:
        """Attach ``node`` under this node. Existing children are never replaced."""
        if node.name in self.children:
            raise KeyError(f"{self.qualified_name or ROOT_NAME} already has a child named {node.name!r}")
        node._parent = weakref.ref(self)
        self.children[node.name] = node
        return node

    def walk(self) -> Iterator[PackageNode]:
        """Depth-first, pre-order traversal in insertion order."""
        yield self
        for child in self.children.values():
            yield from child.walk()

    def _roll_up(self) -> NodeTotals:
        totals = NodeTotals()
        if self.is_class:
            totals.method_count = self.declared_method_count
            totals.field_count = self.declared_field_count
            totals.referenced_method_count = self.own_referenced_method_count
            totals.referenced_field_count = self.own_referenced_field_count
            totals.class_count = 1
        for child in self.children.values():
            totals.add(child._roll_up())
        self._totals = totals
        return totals


class PackageSummary(BaseModel):
    """Serializable view of a node and (optionally) its descendants."""

    name: str
    kind: NodeKind
    method_count: int = 0
    field_count: int = 0
    referenced_method_count: int = 0
    referenced_field_count: int = 0
    class_count: int = 0
    dex_file: str | None = None
    children: list[PackageSummary] = Field(default_factory=list)


PackageSummary.model_rebuild()


class PackageTree:
    """The aggregated package/class tree of one analysis request."""

    def __init__(self, root: PackageNode | None = None) -> None:
        self.root = root or PackageNode(ROOT_NAME, NodeKind.PACKAGE)

    def roll_up(self) -> None:
        """Recompute every aggregate counter bottom-up."""
        self.root._roll_up()

    def total_method_count(self) -> int:
        return self.root.method_count

    def total_field_count(self) -> int:
        return self.root.field_count

    def total_class_count(self) -> int:
        return self.root.class_count

    def find(self, path: Sequence[str] | str) -> PackageNode | None:
        """Descend from the root by path segments (a list or a dotted name)."""
        segments = path.split(".") if isinstance(path, str) else list(path)
        node = self.root
        for segment in segments:
            node = node.child(segment)
            if node is None:
                return None
        return node

    def largest_children(
        self,
        node: PackageNode | None = None,
        by: Metric = Metric.METHOD_COUNT,
        limit: int | None = None,
    ) -> Iterator[PackageNode]:
        """Children of ``node`` (default: root) ordered by ``by`` descending, ties by name.

        Nothing is computed until the iterator is consumed; every call ranks
        the children afresh.
        """
        parent = node if node is not None else self.root
        metric = Metric(by)
        ranked = sorted(parent.children.values(), key=lambda child: (-child.metric(metric), child.name))
        yield from islice(ranked, limit)

    def walk(self) -> Iterator[PackageNode]:
        return self.root.walk()

    def classes(self) -> Iterator[PackageNode]:
        return (node for node in self.walk() if node.is_class)

    def to_summary(self, node: PackageNode | None = None, max_depth: int | None = None) -> PackageSummary:
        """Render ``node`` (default: root) as a pydantic model, ``max_depth`` levels deep."""
        node = node if node is not None else self.root
        children = []
        if max_depth is None or max_depth > 0:
            next_depth = None if max_depth is None else max_depth - 1
            children = [self.to_summary(child, next_depth) for child in node.children.values()]
        return PackageSummary(
            name=node.name,
            kind=node.kind,
            method_count=node.method_count,
            field_count=node.field_count,
            referenced_method_count=node.referenced_method_count,
            referenced_field_count=node.referenced_field_count,
            class_count=node.class_count,
            dex_file=node.dex_file,
            children=children,
        )
