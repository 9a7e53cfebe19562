"""
CombinationService -- the portal-facing entry point for combination checks.

Responsibility:
    Evaluate, explain and list segment code combinations against the
    currently published rule set, the segment catalog and the hierarchy in
    force, memoizing pair decisions.

Architecture position:
    Services -- imperative shell.  Calls the pure engines in
    ``coa_engines``; holds no database session.

Invariants enforced:
    - One snapshot per call: every operation reads the registry once and
      evaluates entirely against that snapshot.
    - Memo keys include the rule set version, the reference data
      generation and the default behavior, so neither a publish nor a
      reference swap can serve a decision computed under older state.
    - Evaluation never raises for well-typed inputs; listing and coding
      validation require a catalog.

Failure modes:
    - CatalogError when a catalog-dependent operation runs without one.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime

from coa_engines.account_coding import CodingValidation, validate_account_coding
from coa_engines.evaluator import evaluate
from coa_engines.explainer import (
    CombinationExplanation,
    ValidCombinationRow,
    explain_decision,
    list_valid_combinations,
    project_effective_entries,
)
from coa_kernel.domain.combination_rules import (
    CombinationDecision,
    DefaultBehavior,
    EntryEffectiveness,
)
from coa_kernel.domain.segments import Segment, as_day
from coa_kernel.domain.snapshots import (
    CatalogSnapshot,
    HierarchyLookup,
    RuleSetSnapshot,
    SegmentCatalog,
)
from coa_kernel.exceptions import CatalogError
from coa_kernel.logging_config import LogContext, get_logger
from coa_services.rule_set_registry import RuleSetRegistry

logger = get_logger("services.combination")

HierarchyResolver = Callable[[date], HierarchyLookup | None]


@dataclass(frozen=True)
class CacheInfo:
    hits: int
    misses: int
    size: int
    max_size: int


@dataclass(frozen=True)
class _ReferenceData:
    """Catalog, hierarchy and default behavior as one swappable unit.

    ``generation`` increases on every swap and is part of each memo key.
    """

    generation: int
    default_behavior: DefaultBehavior
    catalog: SegmentCatalog | None
    hierarchy: HierarchyLookup | None
    hierarchy_for: HierarchyResolver | None

    def hierarchy_on(self, day: date) -> HierarchyLookup | None:
        if self.hierarchy_for is not None:
            return self.hierarchy_for(day)
        return self.hierarchy


class _DecisionCache:
    """Bounded LRU memo of pair decisions."""

    def __init__(self, max_size: int):
        self._max_size = max(0, max_size)
        self._items: OrderedDict[tuple, CombinationDecision] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: tuple) -> CombinationDecision | None:
        with self._lock:
            decision = self._items.get(key)
            if decision is None:
                self._misses += 1
                return None
            self._items.move_to_end(key)
            self._hits += 1
            return decision

    def put(self, key: tuple, decision: CombinationDecision) -> None:
        if self._max_size == 0:
            return
        with self._lock:
            self._items[key] = decision
            self._items.move_to_end(key)
            while len(self._items) > self._max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._hits = 0
            self._misses = 0

    def info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(self._hits, self._misses, len(self._items), self._max_size)


class CombinationService:
    """
    Combination checks for the chart-of-accounts portal.

    Contract:
        ``hierarchy`` is either a fixed lookup or, via ``hierarchy_for``, a
        resolver from the evaluation date to the lookup in force on it.
        ``catalog`` and the hierarchy are treated as immutable; call
        ``replace_reference_data`` to swap them.  Each operation reads the
        rule set snapshot and the reference data once, so a concurrent swap
        never mixes old and new state within a call.
    """

    def __init__(
        self,
        registry: RuleSetRegistry,
        catalog: SegmentCatalog | None = None,
        hierarchy: HierarchyLookup | None = None,
        default_behavior: DefaultBehavior = DefaultBehavior.NOT_ALLOWED,
        cache_size: int = 1024,
        hierarchy_for: HierarchyResolver | None = None,
    ):
        self._registry = registry
        self._reference = _ReferenceData(0, default_behavior, catalog, hierarchy, hierarchy_for)
        self._reference_lock = threading.Lock()
        self._cache = _DecisionCache(cache_size)

    @classmethod
    def from_configuration(cls, config, cache_size: int = 1024) -> CombinationService:
        """Build a service over a ``coa_config.CoaConfiguration``.

        The hierarchy is resolved per evaluation date from the
        configuration's hierarchy sets.
        """
        return cls(
            registry=RuleSetRegistry(config.rule_set),
            catalog=config.catalog,
            default_behavior=config.default_behavior,
            cache_size=cache_size,
            hierarchy_for=config.hierarchy_index,
        )

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    @property
    def registry(self) -> RuleSetRegistry:
        return self._registry

    @property
    def catalog(self) -> SegmentCatalog | None:
        return self._reference.catalog

    @property
    def default_behavior(self) -> DefaultBehavior:
        return self._reference.default_behavior

    def set_default_behavior(self, default_behavior: DefaultBehavior) -> None:
        with self._reference_lock:
            current = self._reference
            if default_behavior == current.default_behavior:
                return
            self._reference = replace(
                current,
                generation=current.generation + 1,
                default_behavior=default_behavior,
            )
        self._cache.clear()
        logger.info(
            "default_behavior_changed",
            extra={
                "previous": current.default_behavior.value,
                "current": default_behavior.value,
            },
        )

    def replace_reference_data(
        self,
        catalog: SegmentCatalog | None,
        hierarchy: HierarchyLookup | None = None,
        hierarchy_for: HierarchyResolver | None = None,
    ) -> None:
        with self._reference_lock:
            current = self._reference
            self._reference = replace(
                current,
                generation=current.generation + 1,
                catalog=catalog,
                hierarchy=hierarchy,
                hierarchy_for=hierarchy_for,
            )
        self._cache.clear()
        logger.info("reference_data_replaced", extra={"generation": current.generation + 1})

    def hierarchy_on(self, on_date: date | datetime) -> HierarchyLookup | None:
        return self._reference.hierarchy_on(as_day(on_date))

    def cache_info(self) -> CacheInfo:
        return self._cache.info()

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def evaluate(
        self,
        on_date: date | datetime,
        segment_a_id: str,
        code_a: str,
        segment_b_id: str,
        code_b: str,
    ) -> CombinationDecision:
        snapshot = self._registry.snapshot
        reference = self._reference
        return self._decide(
            snapshot, reference, on_date, segment_a_id, code_a, segment_b_id, code_b
        )

    def explain(
        self,
        on_date: date | datetime,
        segment_a_id: str,
        code_a: str,
        segment_b_id: str,
        code_b: str,
    ) -> CombinationExplanation:
        snapshot = self._registry.snapshot
        reference = self._reference
        decision = self._decide(
            snapshot, reference, on_date, segment_a_id, code_a, segment_b_id, code_b
        )
        return explain_decision(
            on_date=on_date,
            segment_a_id=segment_a_id,
            code_a=code_a,
            segment_b_id=segment_b_id,
            code_b=code_b,
            rules=snapshot,
            default_behavior=reference.default_behavior,
            catalog=reference.catalog,
            hierarchy=reference.hierarchy_on(as_day(on_date)),
            decision=decision,
        )

    def project(self, on_date: date | datetime) -> tuple[EntryEffectiveness, ...]:
        """Effective status of every Include entry on ``on_date``."""
        catalog = self._require_catalog(self._reference, "project")
        snapshot = self._registry.snapshot
        with LogContext.bind(rule_set_version=str(snapshot.version)):
            return project_effective_entries(
                on_date=on_date, rules=snapshot.rules, catalog=catalog
            )

    def list_valid_combinations(
        self,
        on_date: date | datetime,
        segments: Sequence[Segment] | None = None,
    ) -> tuple[ValidCombinationRow, ...]:
        catalog = self._require_catalog(self._reference, "list_valid_combinations")
        snapshot = self._registry.snapshot
        with LogContext.bind(rule_set_version=str(snapshot.version)):
            return list_valid_combinations(on_date, snapshot.rules, catalog, segments)

    def validate_coding(
        self,
        on_date: date | datetime,
        selections: Mapping[str, str],
        segments: Sequence[Segment] | None = None,
    ) -> CodingValidation:
        """Validate one account coding (segment_id -> code value).

        ``segments`` defaults to the catalog's segments in authored order.
        """
        reference = self._reference
        catalog = self._require_catalog(reference, "validate_coding")
        if segments is None:
            segments = catalog.segments if isinstance(catalog, CatalogSnapshot) else ()
        snapshot = self._registry.snapshot
        with LogContext.bind(rule_set_version=str(snapshot.version)):
            return validate_account_coding(
                on_date=on_date,
                segments=segments,
                selections=selections,
                rules=snapshot.rules,
                default_behavior=reference.default_behavior,
                catalog=catalog,
                hierarchy=reference.hierarchy_on(as_day(on_date)),
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _decide(
        self,
        snapshot: RuleSetSnapshot,
        reference: _ReferenceData,
        on_date: date | datetime,
        segment_a_id: str,
        code_a: str,
        segment_b_id: str,
        code_b: str,
    ) -> CombinationDecision:
        day = as_day(on_date)
        key = (
            day,
            snapshot.version,
            reference.generation,
            reference.default_behavior,
            segment_a_id,
            code_a,
            segment_b_id,
            code_b,
        )
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with LogContext.bind(rule_set_version=str(snapshot.version)):
            decision = evaluate(
                on_date=day,
                segment_a_id=segment_a_id,
                code_a=code_a,
                segment_b_id=segment_b_id,
                code_b=code_b,
                rules=snapshot,
                default_behavior=reference.default_behavior,
                catalog=reference.catalog,
                hierarchy=reference.hierarchy_on(day),
            )
        self._cache.put(key, decision)
        return decision

    @staticmethod
    def _require_catalog(reference: _ReferenceData, operation: str) -> SegmentCatalog:
        if reference.catalog is None:
            raise CatalogError(f"{operation} requires a segment catalog")
        return reference.catalog
