"""
Read-only snapshots and collaborator interfaces (``coa_kernel.domain.snapshots``).

Responsibility
--------------
Define the interfaces the evaluation engines require from external stores
(``SegmentCatalog``, ``HierarchyLookup``, ``RuleSource``) and provide
immutable in-memory implementations built from domain value objects.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Snapshots are built once (by the config
loader, a selector, or a test) and passed into pure evaluation functions.
Engines never own or mutate them.

Invariants enforced
-------------------
* Snapshots are immutable after construction: indexes are built in
  ``__init__`` and exposed read-only.  Publishing a change means building
  a new snapshot (copy-on-write), so no evaluation can observe a
  partially-updated rule set.
* ``HierarchyIndex.walk_descendants`` terminates on any graph, including
  malformed cyclic ones, and reports the cycle instead of looping.
* ``RuleSetSnapshot`` preserves authored rule order.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from coa_kernel.domain.combination_rules import (
    CombinationRule,
    ConfigurationWarning,
    criterion_to_dict,
)
from coa_kernel.domain.hierarchy import Hierarchy, HierarchyNode
from coa_kernel.domain.segments import Segment, SegmentCode
from coa_kernel.exceptions import DuplicateRuleError, RuleNotFoundError
from coa_kernel.utils.hashing import canonicalize_json


# =========================================================================
# Collaborator interfaces
# =========================================================================


@runtime_checkable
class SegmentCatalog(Protocol):
    def get_segment(self, segment_id: str) -> Segment | None: ...

    def get_segment_code(self, segment_id: str, code_value: str) -> SegmentCode | None: ...


@runtime_checkable
class HierarchyLookup(Protocol):
    def get_hierarchy_node(self, segment_id: str, code: str) -> HierarchyNode | None: ...

    def get_node(self, node_id: str) -> HierarchyNode | None: ...

    def get_descendants(self, node_id: str) -> frozenset[str]: ...

    def walk_descendants(self, node_id: str) -> DescendantWalk: ...


@runtime_checkable
class RuleSource(Protocol):
    def list_active_rules_for(
        self, segment_a_id: str, segment_b_id: str
    ) -> tuple[CombinationRule, ...]: ...


# =========================================================================
# Segment catalog
# =========================================================================


class CatalogSnapshot:
    """Immutable segment/code catalog keyed by id and ``(segment_id, code)``.

    When a code value is duplicated within a segment the first authored
    code wins.
    """

    def __init__(
        self,
        segments: Iterable[Segment] = (),
        codes: Iterable[SegmentCode] = (),
    ):
        self._segments: tuple[Segment, ...] = tuple(segments)
        self._codes: tuple[SegmentCode, ...] = tuple(codes)

        segment_index: dict[str, Segment] = {}
        for segment in self._segments:
            segment_index.setdefault(segment.segment_id, segment)
        code_index: dict[tuple[str, str], SegmentCode] = {}
        for code in self._codes:
            code_index.setdefault(code.key, code)

        self._segment_index: Mapping[str, Segment] = MappingProxyType(segment_index)
        self._code_index: Mapping[tuple[str, str], SegmentCode] = MappingProxyType(code_index)

    @property
    def segments(self) -> tuple[Segment, ...]:
        return self._segments

    @property
    def codes(self) -> tuple[SegmentCode, ...]:
        return self._codes

    def get_segment(self, segment_id: str) -> Segment | None:
        return self._segment_index.get(segment_id)

    def get_segment_code(self, segment_id: str, code_value: str) -> SegmentCode | None:
        return self._code_index.get((segment_id, code_value))

    def codes_for(self, segment_id: str) -> tuple[SegmentCode, ...]:
        return tuple(c for c in self._codes if c.segment_id == segment_id)

    def active_segments(self) -> tuple[Segment, ...]:
        """Active segments, core first, then by display name."""
        return tuple(
            sorted(
                (s for s in self._segments if s.is_active),
                key=lambda s: (not s.is_core, s.display_name),
            )
        )

    def __repr__(self) -> str:
        return f"<CatalogSnapshot segments={len(self._segments)} codes={len(self._codes)}>"


# =========================================================================
# Hierarchy index
# =========================================================================


@dataclass(frozen=True)
class DescendantWalk:
    """Result of a downward traversal from one node.

    ``node_ids`` excludes the start node.  ``cycle_node_ids`` lists nodes
    whose child edge pointed back onto the current traversal path; a
    non-empty value means the hierarchy is malformed.
    """

    start_node_id: str
    node_ids: frozenset[str]
    cycle_node_ids: tuple[str, ...] = ()

    @property
    def cycle_detected(self) -> bool:
        return bool(self.cycle_node_ids)


class HierarchyIndex:
    """Immutable lookup over one or more segment hierarchies.

    Child edges are taken from each node's ``children`` plus any node that
    names it as ``parent_id``, so either authoring style resolves.
    """

    def __init__(self, hierarchies: Iterable[Hierarchy] = ()):
        self._hierarchies: tuple[Hierarchy, ...] = tuple(hierarchies)

        nodes: dict[str, HierarchyNode] = {}
        by_code: dict[tuple[str, str], HierarchyNode] = {}
        children: dict[str, list[str]] = {}

        for hierarchy in self._hierarchies:
            for node in hierarchy.nodes:
                nodes.setdefault(node.node_id, node)
                if node.segment_code is not None:
                    by_code.setdefault((hierarchy.segment_id, node.segment_code), node)
                edges = children.setdefault(node.node_id, [])
                for child_id in node.children:
                    if child_id not in edges:
                        edges.append(child_id)
        for node in nodes.values():
            if node.parent_id is not None:
                edges = children.setdefault(node.parent_id, [])
                if node.node_id not in edges:
                    edges.append(node.node_id)

        self._nodes: Mapping[str, HierarchyNode] = MappingProxyType(nodes)
        self._by_code: Mapping[tuple[str, str], HierarchyNode] = MappingProxyType(by_code)
        self._children: Mapping[str, tuple[str, ...]] = MappingProxyType(
            {k: tuple(v) for k, v in children.items()}
        )

    @property
    def hierarchies(self) -> tuple[Hierarchy, ...]:
        return self._hierarchies

    def get_node(self, node_id: str) -> HierarchyNode | None:
        return self._nodes.get(node_id)

    def get_hierarchy_node(self, segment_id: str, code: str) -> HierarchyNode | None:
        return self._by_code.get((segment_id, code))

    def children_of(self, node_id: str) -> tuple[str, ...]:
        return self._children.get(node_id, ())

    def walk_descendants(self, node_id: str) -> DescendantWalk:
        """Iterative depth-first walk that tracks the active path.

        A child already on the active path closes a cycle and is recorded in
        ``cycle_node_ids``.  A child already reached through another path
        (a diamond) is skipped.  Either way every node is expanded at most
        once, so the walk is bounded by the number of edges.
        """
        visited: set[str] = {node_id}
        on_path: set[str] = {node_id}
        found: set[str] = set()
        cycles: list[str] = []
        stack: list[tuple[str, Iterator[str]]] = [(node_id, iter(self.children_of(node_id)))]

        while stack:
            current, pending = stack[-1]
            child = next(pending, None)
            if child is None:
                stack.pop()
                on_path.discard(current)
                continue
            if child in on_path:
                cycles.append(child)
                continue
            if child in visited:
                continue
            visited.add(child)
            found.add(child)
            on_path.add(child)
            stack.append((child, iter(self.children_of(child))))

        return DescendantWalk(
            start_node_id=node_id,
            node_ids=frozenset(found),
            cycle_node_ids=tuple(cycles),
        )

    def get_descendants(self, node_id: str) -> frozenset[str]:
        return self.walk_descendants(node_id).node_ids

    def find_cycles(self) -> tuple[str, ...]:
        """Node ids that close a cycle anywhere in the index, in walk order."""
        cycles: list[str] = []
        for node_id in self._nodes:
            for cycle_node in self.walk_descendants(node_id).cycle_node_ids:
                if cycle_node not in cycles:
                    cycles.append(cycle_node)
        return tuple(cycles)

    def __repr__(self) -> str:
        return f"<HierarchyIndex hierarchies={len(self._hierarchies)} nodes={len(self._nodes)}>"


# =========================================================================
# Rule set
# =========================================================================


def rule_to_dict(rule: CombinationRule) -> dict:
    """Canonical dict form of a rule (for hashing and persistence)."""
    return {
        "id": rule.rule_id,
        "name": rule.name,
        "status": rule.status.value,
        "segmentAId": rule.segment_a_id,
        "segmentBId": rule.segment_b_id,
        "description": rule.description,
        "mappingEntries": [
            {
                "id": entry.entry_id,
                "behavior": entry.behavior.value,
                "segmentACriterion": criterion_to_dict(entry.segment_a_criterion),
                "segmentBCriterion": criterion_to_dict(entry.segment_b_criterion),
            }
            for entry in rule.mapping_entries
        ],
    }


def compute_rule_set_checksum(rules: Sequence[CombinationRule]) -> str:
    """SHA-256 over the canonical JSON of the ordered rules."""
    canonical = canonicalize_json([rule_to_dict(r) for r in rules])
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class RuleSetSnapshot:
    """Immutable, ordered, versioned list of combination rules.

    The ``with_*`` methods never mutate; each returns a new snapshot with
    ``version + 1``.
    """

    def __init__(
        self,
        rules: Iterable[CombinationRule] = (),
        version: int = 1,
        load_warnings: Iterable[ConfigurationWarning] = (),
    ):
        self._rules: tuple[CombinationRule, ...] = tuple(rules)
        self._version = version
        self._load_warnings: tuple[ConfigurationWarning, ...] = tuple(load_warnings)
        self._checksum = compute_rule_set_checksum(self._rules)

    @property
    def rules(self) -> tuple[CombinationRule, ...]:
        return self._rules

    @property
    def version(self) -> int:
        return self._version

    @property
    def checksum(self) -> str:
        return self._checksum

    @property
    def load_warnings(self) -> tuple[ConfigurationWarning, ...]:
        return self._load_warnings

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def get_rule(self, rule_id: str) -> CombinationRule | None:
        for rule in self._rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def active_rules(self) -> tuple[CombinationRule, ...]:
        return tuple(r for r in self._rules if r.is_active)

    def list_active_rules_for(
        self, segment_a_id: str, segment_b_id: str
    ) -> tuple[CombinationRule, ...]:
        return tuple(
            r for r in self._rules if r.is_active and r.governs(segment_a_id, segment_b_id)
        )

    def _next(self, rules: Iterable[CombinationRule]) -> RuleSetSnapshot:
        return RuleSetSnapshot(rules, version=self._version + 1)

    def with_rule_added(self, rule: CombinationRule) -> RuleSetSnapshot:
        if self.get_rule(rule.rule_id) is not None:
            raise DuplicateRuleError(rule.rule_id)
        return self._next((*self._rules, rule))

    def with_rule_replaced(self, rule: CombinationRule) -> RuleSetSnapshot:
        if self.get_rule(rule.rule_id) is None:
            raise RuleNotFoundError(rule.rule_id)
        return self._next(rule if r.rule_id == rule.rule_id else r for r in self._rules)

    def with_rule_removed(self, rule_id: str) -> RuleSetSnapshot:
        if self.get_rule(rule_id) is None:
            raise RuleNotFoundError(rule_id)
        return self._next(r for r in self._rules if r.rule_id != rule_id)

    def with_rule_moved(self, rule_id: str, new_index: int) -> RuleSetSnapshot:
        rule = self.get_rule(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        remaining = [r for r in self._rules if r.rule_id != rule_id]
        new_index = max(0, min(new_index, len(remaining)))
        remaining.insert(new_index, rule)
        return self._next(remaining)

    def __repr__(self) -> str:
        return f"<RuleSetSnapshot v{self._version} rules={len(self._rules)}>"
