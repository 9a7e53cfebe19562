"""
coa_engines.evaluator -- Ordered combination rule evaluation.

Responsibility:
    Decide whether a (segment A code, segment B code) pair is Allowed or
    Denied by applying the active rules governing that segment pair, in
    stored order, and falling back to the global default behavior.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Calls ``coa_engines.criterion``; called by ``coa_engines.explainer``,
    ``coa_engines.account_coding`` and ``coa_services``.

Invariants enforced:
    - Positional orientation: a rule authored for (A, B) tests segment A's
      code against ``segment_a_criterion`` only.  No implicit swapping.
    - First-match-wins across BOTH entries and rules: the first entry whose
      two criteria match is decisive (Include -> Allowed, Exclude ->
      Denied) and evaluation stops there.
    - A rule with no matching entry passes control to the next applicable
      rule; the default applies only when no rule decided.
    - Determinism: the result depends only on the declared inputs.

Failure modes:
    - Never raises for well-typed inputs.  Configuration defects (hierarchy
      cycles, rules referencing missing or inactive segments, dangling
      hierarchy node ids) become ``ConfigurationWarning`` records on the
      decision and are logged; the affected rule or criterion is excluded
      from matching for this call.

Audit relevance:
    The decision carries ``matched_rule_id`` / ``matched_entry_id`` so that
    every Allowed/Denied answer can be traced to the authored entry (or to
    the default).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime

from coa_engines.criterion import match_criterion
from coa_engines.tracer import traced_engine
from coa_kernel.domain.combination_rules import (
    CombinationDecision,
    CombinationRule,
    ConfigurationWarning,
    Decision,
    DefaultBehavior,
    EntryBehavior,
    MappingEntry,
    WarningCode,
)
from coa_kernel.domain.snapshots import HierarchyLookup, RuleSource, SegmentCatalog
from coa_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.evaluator")


def applicable_rules(
    rules: Iterable[CombinationRule] | RuleSource,
    segment_a_id: str,
    segment_b_id: str,
) -> tuple[CombinationRule, ...]:
    """Active rules governing (segment_a_id, segment_b_id), in stored order."""
    if isinstance(rules, RuleSource):
        candidates = rules.list_active_rules_for(segment_a_id, segment_b_id)
    else:
        candidates = tuple(rules)
    return tuple(
        r for r in candidates if r.is_active and r.governs(segment_a_id, segment_b_id)
    )


def rule_segment_warnings(
    rule: CombinationRule,
    catalog: SegmentCatalog,
    on_date: date | datetime,
) -> tuple[ConfigurationWarning, ...]:
    """Warnings that exclude ``rule`` because one of its segments is unusable."""
    warnings: list[ConfigurationWarning] = []
    for segment_id in (rule.segment_a_id, rule.segment_b_id):
        segment = catalog.get_segment(segment_id)
        if segment is None:
            warnings.append(ConfigurationWarning(
                code=WarningCode.SEGMENT_NOT_FOUND,
                message=f"Rule {rule.rule_id!r} references unknown segment {segment_id!r}",
                rule_id=rule.rule_id,
                segment_id=segment_id,
            ))
        elif not segment.is_effective_on(on_date):
            warnings.append(ConfigurationWarning(
                code=WarningCode.SEGMENT_INACTIVE,
                message=f"Rule {rule.rule_id!r} references inactive segment {segment_id!r}",
                rule_id=rule.rule_id,
                segment_id=segment_id,
            ))
    return tuple(warnings)


def _log_warning(warning: ConfigurationWarning) -> None:
    logger.warning("combination_config_warning", extra={
        "warning_code": warning.code.value,
        "detail": warning.message,
        "rule_id": warning.rule_id,
        "entry_id": warning.entry_id,
        "node_id": warning.node_id,
        "segment_id": warning.segment_id,
    })


class _WarningCollector:
    """Ordered, de-duplicated warnings for one evaluation call."""

    def __init__(self) -> None:
        self._items: list[ConfigurationWarning] = []

    def add(self, warnings: Iterable[ConfigurationWarning]) -> None:
        for warning in warnings:
            if warning not in self._items:
                self._items.append(warning)
                _log_warning(warning)

    def freeze(self) -> tuple[ConfigurationWarning, ...]:
        return tuple(self._items)


def _entry_matches(
    rule: CombinationRule,
    entry: MappingEntry,
    code_a: str,
    code_b: str,
    on_date: date | datetime,
    catalog: SegmentCatalog | None,
    hierarchy: HierarchyLookup | None,
    collector: _WarningCollector,
) -> bool:
    sides = (
        (entry.segment_a_criterion, code_a, rule.segment_a_id),
        (entry.segment_b_criterion, code_b, rule.segment_b_id),
    )
    for criterion, code, segment_id in sides:
        result = match_criterion(
            criterion,
            code,
            segment_id=segment_id,
            hierarchy=hierarchy,
            catalog=catalog,
            on_date=on_date,
        )
        if result.warnings:
            collector.add(
                replace(w, rule_id=rule.rule_id, entry_id=entry.entry_id)
                for w in result.warnings
            )
        if not result.matched:
            return False
    return True


@traced_engine(
    "rule_evaluator",
    "1.0",
    fingerprint_fields=(
        "on_date", "segment_a_id", "code_a", "segment_b_id", "code_b",
        "rules", "default_behavior",
    ),
)
def evaluate(
    on_date: date | datetime,
    segment_a_id: str,
    code_a: str,
    segment_b_id: str,
    code_b: str,
    rules: Iterable[CombinationRule] | RuleSource,
    default_behavior: DefaultBehavior,
    catalog: SegmentCatalog | None = None,
    hierarchy: HierarchyLookup | None = None,
) -> CombinationDecision:
    """Evaluate one candidate pair against the ordered active rules.

    Args:
        on_date: Evaluation date (time-of-day is ignored).
        segment_a_id / code_a: Candidate code for the rule's segment A.
        segment_b_id / code_b: Candidate code for the rule's segment B.
        rules: Ordered rules, or a ``RuleSource`` such as ``RuleSetSnapshot``.
        default_behavior: Fallback when no rule decides.
        catalog: Optional; enables unknown/inactive code handling and
            segment checks.
        hierarchy: Optional; required for HIERARCHY_NODE criteria to match.

    Returns:
        CombinationDecision.  ``used_default`` is True when no entry decided.
    """
    collector = _WarningCollector()

    for rule in applicable_rules(rules, segment_a_id, segment_b_id):
        if catalog is not None:
            segment_warnings = rule_segment_warnings(rule, catalog, on_date)
            if segment_warnings:
                collector.add(segment_warnings)
                continue

        for entry in rule.mapping_entries:
            if not _entry_matches(
                rule, entry, code_a, code_b, on_date, catalog, hierarchy, collector
            ):
                continue

            decision = (
                Decision.ALLOWED
                if entry.behavior == EntryBehavior.INCLUDE
                else Decision.DENIED
            )
            with LogContext.bind(rule_id=rule.rule_id, entry_id=entry.entry_id):
                logger.debug("combination_decided_by_entry", extra={
                    "segment_a_id": segment_a_id,
                    "segment_b_id": segment_b_id,
                    "decision": decision.value,
                })
            return CombinationDecision(
                decision=decision,
                matched_rule_id=rule.rule_id,
                matched_entry_id=entry.entry_id,
                warnings=collector.freeze(),
            )

    decision = default_behavior.to_decision()
    logger.debug("combination_decided_by_default", extra={
        "segment_a_id": segment_a_id,
        "segment_b_id": segment_b_id,
        "default_behavior": default_behavior.value,
        "decision": decision.value,
    })
    return CombinationDecision(
        decision=decision,
        used_default=True,
        warnings=collector.freeze(),
    )
