"""
Kernel domain layer -- pure value objects and read-only snapshots.

ZERO I/O.  Nothing in this package imports from ``db/``, ``models/``,
``selectors/`` or outer layers.
"""

from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    CombinationDecision,
    CombinationRule,
    ConfigurationWarning,
    Criterion,
    CriterionType,
    Decision,
    DefaultBehavior,
    EffectiveStatus,
    EntryBehavior,
    EntryEffectiveness,
    HierarchyNodeCriterion,
    MappingEntry,
    RangeCriterion,
    RuleStatus,
    WarningCode,
    criterion_from_dict,
    criterion_to_dict,
)
from coa_kernel.domain.hierarchy import (
    Hierarchy,
    HierarchyNode,
    HierarchySet,
    HierarchySetStatus,
    build_nodes,
    select_effective_hierarchy_set,
)
from coa_kernel.domain.ordering import compare_code_values, value_in_range
from coa_kernel.domain.segments import Segment, SegmentCode, SegmentDataType
from coa_kernel.domain.snapshots import (
    CatalogSnapshot,
    DescendantWalk,
    HierarchyIndex,
    HierarchyLookup,
    RuleSetSnapshot,
    RuleSource,
    SegmentCatalog,
    compute_rule_set_checksum,
)

__all__ = [
    "CatalogSnapshot",
    "CodeCriterion",
    "CombinationDecision",
    "CombinationRule",
    "ConfigurationWarning",
    "Criterion",
    "CriterionType",
    "Decision",
    "DefaultBehavior",
    "DescendantWalk",
    "EffectiveStatus",
    "EntryBehavior",
    "EntryEffectiveness",
    "Hierarchy",
    "HierarchyIndex",
    "HierarchyLookup",
    "HierarchyNode",
    "HierarchyNodeCriterion",
    "HierarchySet",
    "HierarchySetStatus",
    "MappingEntry",
    "RangeCriterion",
    "RuleSetSnapshot",
    "RuleSource",
    "RuleStatus",
    "Segment",
    "SegmentCatalog",
    "SegmentCode",
    "SegmentDataType",
    "WarningCode",
    "build_nodes",
    "compare_code_values",
    "compute_rule_set_checksum",
    "criterion_from_dict",
    "criterion_to_dict",
    "select_effective_hierarchy_set",
    "value_in_range",
]
