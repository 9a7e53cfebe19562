"""
Hierarchy domain types (``coa_kernel.domain.hierarchy``).

Responsibility
--------------
Pure value objects for trees that group segment codes for rollups and
subtree-based rule criteria.  A ``Hierarchy`` is scoped to exactly one
segment; a ``HierarchySet`` bundles one hierarchy per segment under a
name, a status and a validity window (e.g. "GASB Reporting").

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants
----------
* The parent/child graph is expected to be acyclic.  It is NOT enforced
  here: hierarchies arrive from external stores and the traversal in
  ``snapshots.HierarchyIndex`` defends against cycles instead.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from coa_kernel.domain.segments import check_validity_window, window_contains


class HierarchySetStatus(str, Enum):
    """Lifecycle status of a hierarchy set."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DEPRECATED = "Deprecated"


@dataclass(frozen=True)
class HierarchyNode:
    """One node of a segment hierarchy.

    ``segment_code`` is the code value this node represents, or None for a
    pure grouping node.  ``children`` holds child node ids in authored order.
    """

    node_id: str
    hierarchy_id: str
    segment_code: str | None = None
    parent_id: str | None = None
    children: tuple[str, ...] = ()
    description: str | None = None

    @property
    def is_grouping(self) -> bool:
        return self.segment_code is None


@dataclass(frozen=True)
class Hierarchy:
    """A forest of nodes over a single segment's codes."""

    hierarchy_id: str
    segment_id: str
    nodes: tuple[HierarchyNode, ...] = ()
    description: str | None = None

    def root_nodes(self) -> tuple[HierarchyNode, ...]:
        return tuple(n for n in self.nodes if n.parent_id is None)


@dataclass(frozen=True)
class HierarchySet:
    """Named bundle of per-segment hierarchies with its own validity window."""

    set_id: str
    name: str
    status: HierarchySetStatus = HierarchySetStatus.ACTIVE
    valid_from: date | None = None
    valid_to: date | None = None
    hierarchies: tuple[Hierarchy, ...] = ()
    description: str | None = None
    last_modified_date: datetime | None = None
    last_modified_by: str | None = None

    def __post_init__(self) -> None:
        check_validity_window(f"hierarchy set {self.set_id}", self.valid_from, self.valid_to)

    def is_effective_on(self, on_date: date | datetime) -> bool:
        return self.status == HierarchySetStatus.ACTIVE and window_contains(
            self.valid_from, self.valid_to, on_date
        )

    def hierarchy_for(self, segment_id: str) -> Hierarchy | None:
        for hierarchy in self.hierarchies:
            if hierarchy.segment_id == segment_id:
                return hierarchy
        return None


def select_effective_hierarchy_set(
    sets: Sequence[HierarchySet],
    on_date: date | datetime,
) -> HierarchySet | None:
    """First Active set (in given order) whose window covers ``on_date``."""
    for hierarchy_set in sets:
        if hierarchy_set.is_effective_on(on_date):
            return hierarchy_set
    return None


def build_nodes(
    hierarchy_id: str,
    tree: Iterable[dict],
    parent_id: str | None = None,
) -> tuple[HierarchyNode, ...]:
    """Flatten an authored nested tree into ``HierarchyNode`` records.

    Each item is ``{"id": ..., "code": ... | None, "children": [...]}``.
    Nodes are emitted depth-first in authored order.
    """
    nodes: list[HierarchyNode] = []
    for item in tree:
        children = item.get("children") or []
        nodes.append(
            HierarchyNode(
                node_id=item["id"],
                hierarchy_id=hierarchy_id,
                segment_code=item.get("code"),
                parent_id=parent_id,
                children=tuple(child["id"] for child in children),
                description=item.get("description"),
            )
        )
        nodes.extend(build_nodes(hierarchy_id, children, parent_id=item["id"]))
    return tuple(nodes)
