"""
Configuration schema (``coa_config.schema``).

Responsibility
--------------
Frozen dataclasses for an assembled chart-of-accounts configuration set
(``ConfigurationSet``) and for the runtime artifact handed to callers
(``CoaConfiguration``), plus the configuration set lifecycle status.

Architecture position
---------------------
**Config layer** -- pure data.  Built by ``coa_config.assembler``;
consumed by ``coa_config.validator`` and ``coa_config.get_active_configuration``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, unique

from coa_kernel.domain.combination_rules import CombinationRule, DefaultBehavior
from coa_kernel.domain.hierarchy import HierarchySet, select_effective_hierarchy_set
from coa_kernel.domain.segments import Segment, SegmentCode
from coa_kernel.domain.snapshots import CatalogSnapshot, HierarchyIndex, RuleSetSnapshot


@unique
class ConfigStatus(str, Enum):
    """Lifecycle status for a configuration set."""

    DRAFT = "draft"
    APPROVED = "approved"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class ConfigurationSet:
    """Everything parsed from one configuration set directory."""

    config_id: str
    name: str
    version: int
    status: ConfigStatus
    default_behavior: DefaultBehavior
    checksum: str
    segments: tuple[Segment, ...] = ()
    segment_codes: tuple[SegmentCode, ...] = ()
    hierarchy_sets: tuple[HierarchySet, ...] = ()
    rules: tuple[CombinationRule, ...] = ()
    description: str | None = None


@dataclass(frozen=True)
class CoaConfiguration:
    """Runtime artifact returned by ``get_active_configuration``.

    Holds immutable snapshots only; evaluation code takes them as explicit
    parameters.
    """

    config_id: str
    version: int
    default_behavior: DefaultBehavior
    catalog: CatalogSnapshot
    hierarchy_sets: tuple[HierarchySet, ...]
    rule_set: RuleSetSnapshot
    checksum: str
    _index_cache: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def hierarchy_set_on(self, on_date: date | datetime) -> HierarchySet | None:
        return select_effective_hierarchy_set(self.hierarchy_sets, on_date)

    def hierarchy_index(self, on_date: date | datetime) -> HierarchyIndex:
        """Index over the hierarchy set effective on ``on_date`` (empty if none)."""
        hierarchy_set = self.hierarchy_set_on(on_date)
        key = hierarchy_set.set_id if hierarchy_set else None
        index = self._index_cache.get(key)
        if index is None:
            index = HierarchyIndex(hierarchy_set.hierarchies if hierarchy_set else ())
            self._index_cache[key] = index
        return index
