"""ORM models for the chart-of-accounts store."""

from coa_kernel.models.combination_rules import CombinationRuleModel, MappingEntryModel
from coa_kernel.models.hierarchies import HierarchyModel, HierarchyNodeModel, HierarchySetModel
from coa_kernel.models.segments import SegmentCodeModel, SegmentModel
from coa_kernel.models.settings import (
    DEFAULT_BEHAVIOR_KEY,
    RULE_SET_VERSION_KEY,
    CoaSettingModel,
)

__all__ = [
    "CoaSettingModel",
    "CombinationRuleModel",
    "DEFAULT_BEHAVIOR_KEY",
    "HierarchyModel",
    "HierarchyNodeModel",
    "HierarchySetModel",
    "MappingEntryModel",
    "RULE_SET_VERSION_KEY",
    "SegmentCodeModel",
    "SegmentModel",
]
