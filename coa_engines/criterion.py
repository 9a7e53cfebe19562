"""
coa_engines.criterion -- Does one code satisfy one criterion?

Responsibility:
    Match a candidate code value against a CODE, RANGE or HIERARCHY_NODE
    criterion, resolving hierarchy membership through a ``HierarchyLookup``
    and (optionally) code validity through a ``SegmentCatalog``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    ``coa_engines.evaluator``; calls ``coa_engines.temporal`` and the
    hierarchy lookup as needed.

Invariants enforced:
    - CODE is exact and case-sensitive.
    - RANGE is inclusive on both bounds under the project ordering
      (``coa_kernel.domain.ordering``).
    - HIERARCHY_NODE with ``include_children`` walks DOWN from the target
      node; a walk that detects a cycle is a non-match plus a
      HIERARCHY_CYCLE warning, never an infinite loop.
    - Never raises.  Unknown codes and unresolvable nodes are
      distinguishable non-match outcomes, not exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from coa_engines.temporal import CodeStatus, code_status
from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    ConfigurationWarning,
    Criterion,
    HierarchyNodeCriterion,
    RangeCriterion,
    WarningCode,
)
from coa_kernel.domain.ordering import value_in_range
from coa_kernel.domain.snapshots import HierarchyLookup, SegmentCatalog


class MatchOutcome(str, Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    UNKNOWN_CODE = "unknown_code"
    UNKNOWN_NODE = "unknown_node"
    INACTIVE_CODE = "inactive_code"
    CYCLE = "cycle"

    @property
    def is_match(self) -> bool:
        return self is MatchOutcome.MATCH

    @property
    def is_unknown(self) -> bool:
        return self in (MatchOutcome.UNKNOWN_CODE, MatchOutcome.UNKNOWN_NODE)


@dataclass(frozen=True)
class CriterionMatch:
    outcome: MatchOutcome
    warnings: tuple[ConfigurationWarning, ...] = ()

    @property
    def matched(self) -> bool:
        return self.outcome.is_match


_MATCH = CriterionMatch(MatchOutcome.MATCH)
_NO_MATCH = CriterionMatch(MatchOutcome.NO_MATCH)


def match_criterion(
    criterion: Criterion,
    code: str,
    *,
    segment_id: str | None = None,
    hierarchy: HierarchyLookup | None = None,
    catalog: SegmentCatalog | None = None,
    on_date: date | datetime | None = None,
) -> CriterionMatch:
    """Match ``code`` (a value of ``segment_id``) against ``criterion``.

    When ``catalog`` is given, a code missing from the catalog yields
    UNKNOWN_CODE; when ``on_date`` is also given, a code not valid on that
    date yields INACTIVE_CODE.  Both are non-matches.
    """
    if catalog is not None and segment_id is not None:
        if on_date is not None:
            status = code_status(catalog, segment_id, code, on_date)
        elif catalog.get_segment_code(segment_id, code) is None:
            status = CodeStatus.UNKNOWN
        else:
            status = CodeStatus.VALID
        if status == CodeStatus.UNKNOWN:
            return CriterionMatch(MatchOutcome.UNKNOWN_CODE)
        if status == CodeStatus.INACTIVE:
            return CriterionMatch(MatchOutcome.INACTIVE_CODE)

    if isinstance(criterion, CodeCriterion):
        return _MATCH if code == criterion.code_value else _NO_MATCH

    if isinstance(criterion, RangeCriterion):
        if value_in_range(code, criterion.range_start_value, criterion.range_end_value):
            return _MATCH
        return _NO_MATCH

    if isinstance(criterion, HierarchyNodeCriterion):
        return _match_hierarchy_node(criterion, code, segment_id, hierarchy)

    return CriterionMatch(
        MatchOutcome.NO_MATCH,
        warnings=(
            ConfigurationWarning(
                code=WarningCode.MALFORMED_CRITERION,
                message=f"Unsupported criterion {type(criterion).__name__}",
                segment_id=segment_id,
            ),
        ),
    )


def _match_hierarchy_node(
    criterion: HierarchyNodeCriterion,
    code: str,
    segment_id: str | None,
    hierarchy: HierarchyLookup | None,
) -> CriterionMatch:
    if hierarchy is None or segment_id is None:
        return CriterionMatch(MatchOutcome.UNKNOWN_NODE)

    target_id = criterion.hierarchy_node_id
    if hierarchy.get_node(target_id) is None:
        return CriterionMatch(
            MatchOutcome.UNKNOWN_NODE,
            warnings=(
                ConfigurationWarning(
                    code=WarningCode.MALFORMED_CRITERION,
                    message=f"Hierarchy node {target_id!r} does not exist",
                    node_id=target_id,
                    segment_id=segment_id,
                ),
            ),
        )

    node = hierarchy.get_hierarchy_node(segment_id, code)
    if node is None:
        return CriterionMatch(MatchOutcome.UNKNOWN_NODE)

    if node.node_id == target_id:
        return _MATCH
    if not criterion.include_children:
        return _NO_MATCH

    walk = hierarchy.walk_descendants(target_id)
    if walk.cycle_detected:
        return CriterionMatch(
            MatchOutcome.CYCLE,
            warnings=(
                ConfigurationWarning(
                    code=WarningCode.HIERARCHY_CYCLE,
                    message=(
                        f"Cycle below hierarchy node {target_id!r} "
                        f"(revisited {', '.join(walk.cycle_node_ids)})"
                    ),
                    node_id=target_id,
                    segment_id=segment_id,
                ),
            ),
        )
    return _MATCH if node.node_id in walk.node_ids else _NO_MATCH


def matches(
    criterion: Criterion,
    code: str,
    hierarchy: HierarchyLookup | None = None,
    *,
    segment_id: str | None = None,
    catalog: SegmentCatalog | None = None,
    on_date: date | datetime | None = None,
) -> bool:
    """Boolean form of ``match_criterion``."""
    return match_criterion(
        criterion,
        code,
        segment_id=segment_id,
        hierarchy=hierarchy,
        catalog=catalog,
        on_date=on_date,
    ).matched
