"""
coa_engines.explainer -- Auditable explanations and date-effectiveness projection.

Responsibility:
    (a) Wrap the rule evaluator's decision with what an auditor needs to see:
        the matched rule and entry, the criteria that fired, and the status
        of each candidate code on the evaluation date.
    (b) Project every Include entry of every active rule to an
        ``EffectiveStatus`` on a date, independent of any candidate pair.
        This backs the "valid combinations" listing.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Calls ``coa_engines.evaluator`` and ``coa_engines.temporal``.

Invariants enforced:
    - Exclude entries never appear in the projection.
    - ``Unknown`` wins over every inactive/effective determination: a
      non-CODE criterion on either side, or a CODE criterion whose code is
      not in the catalog, makes the entry ``Unknown``.
    - Projection preserves rule order, then entry order.

Failure modes:
    - Never raises for well-typed inputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType

from coa_engines.evaluator import applicable_rules, evaluate
from coa_engines.temporal import CodeStatus, code_status, is_code_valid_on
from coa_engines.tracer import traced_engine
from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    CombinationDecision,
    CombinationRule,
    DefaultBehavior,
    EffectiveStatus,
    EntryBehavior,
    EntryEffectiveness,
    MappingEntry,
)
from coa_kernel.domain.segments import Segment, as_day
from coa_kernel.domain.snapshots import (
    CatalogSnapshot,
    HierarchyLookup,
    RuleSource,
    SegmentCatalog,
)
from coa_kernel.logging_config import get_logger

logger = get_logger("engines.explainer")

ANY_VALID_CODE = "Any Valid Code"


# =========================================================================
# Per-decision explanation
# =========================================================================


@dataclass(frozen=True)
class CombinationExplanation:
    """A decision plus the context needed to display and audit it."""

    on_date: date
    segment_a_id: str
    code_a: str
    segment_b_id: str
    code_b: str
    decision: CombinationDecision
    default_behavior: DefaultBehavior
    code_a_status: CodeStatus | None = None
    code_b_status: CodeStatus | None = None
    matched_rule_name: str | None = None
    matched_behavior: EntryBehavior | None = None
    segment_a_criterion_text: str | None = None
    segment_b_criterion_text: str | None = None

    @property
    def is_allowed(self) -> bool:
        return self.decision.is_allowed

    def summary(self) -> str:
        """One-line human-readable reason."""
        pair = f"{self.segment_a_id}={self.code_a}, {self.segment_b_id}={self.code_b}"
        verdict = self.decision.decision.value
        if self.decision.used_default:
            return (
                f"{verdict}: no rule entry matched ({pair}); "
                f"default behavior is {self.default_behavior.value}"
            )
        return (
            f"{verdict} by rule {self.matched_rule_name!r} "
            f"({self.decision.matched_rule_id}), entry {self.decision.matched_entry_id} "
            f"[{self.matched_behavior.value if self.matched_behavior else '?'}: "
            f"{self.segment_a_criterion_text} / {self.segment_b_criterion_text}] ({pair})"
        )


def evaluate_combination(
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
    """Library entry point: allow/deny one candidate pair."""
    return evaluate(
        on_date=on_date,
        segment_a_id=segment_a_id,
        code_a=code_a,
        segment_b_id=segment_b_id,
        code_b=code_b,
        rules=rules,
        default_behavior=default_behavior,
        catalog=catalog,
        hierarchy=hierarchy,
    )


def _find_entry(
    rules: tuple[CombinationRule, ...],
    rule_id: str | None,
    entry_id: str | None,
) -> tuple[CombinationRule | None, MappingEntry | None]:
    for rule in rules:
        if rule.rule_id != rule_id:
            continue
        for entry in rule.mapping_entries:
            if entry.entry_id == entry_id:
                return rule, entry
        return rule, None
    return None, None


def explain_decision(
    on_date: date | datetime,
    segment_a_id: str,
    code_a: str,
    segment_b_id: str,
    code_b: str,
    rules: Iterable[CombinationRule] | RuleSource,
    default_behavior: DefaultBehavior,
    catalog: SegmentCatalog | None = None,
    hierarchy: HierarchyLookup | None = None,
    decision: CombinationDecision | None = None,
) -> CombinationExplanation:
    """Evaluate (unless ``decision`` is given) and explain one candidate pair.

    Code statuses are only resolved when a catalog is supplied.
    """
    if not isinstance(rules, RuleSource):
        rules = tuple(rules)
    if decision is None:
        decision = evaluate_combination(
            on_date, segment_a_id, code_a, segment_b_id, code_b,
            rules, default_behavior, catalog, hierarchy,
        )

    rule, entry = _find_entry(
        applicable_rules(rules, segment_a_id, segment_b_id),
        decision.matched_rule_id,
        decision.matched_entry_id,
    )

    code_a_status = code_b_status = None
    if catalog is not None:
        code_a_status = code_status(catalog, segment_a_id, code_a, on_date)
        code_b_status = code_status(catalog, segment_b_id, code_b, on_date)

    return CombinationExplanation(
        on_date=as_day(on_date),
        segment_a_id=segment_a_id,
        code_a=code_a,
        segment_b_id=segment_b_id,
        code_b=code_b,
        decision=decision,
        default_behavior=default_behavior,
        code_a_status=code_a_status,
        code_b_status=code_b_status,
        matched_rule_name=rule.name if rule else None,
        matched_behavior=entry.behavior if entry else None,
        segment_a_criterion_text=entry.segment_a_criterion.describe() if entry else None,
        segment_b_criterion_text=entry.segment_b_criterion.describe() if entry else None,
    )


# =========================================================================
# Date-effectiveness projection
# =========================================================================


def classify_entry(
    rule: CombinationRule,
    entry: MappingEntry,
    catalog: SegmentCatalog,
    on_date: date | datetime,
) -> EffectiveStatus:
    """Effective status of one entry's referenced codes on ``on_date``."""
    a_criterion = entry.segment_a_criterion
    b_criterion = entry.segment_b_criterion
    if not isinstance(a_criterion, CodeCriterion) or not isinstance(b_criterion, CodeCriterion):
        return EffectiveStatus.UNKNOWN

    code_a = catalog.get_segment_code(rule.segment_a_id, a_criterion.code_value)
    code_b = catalog.get_segment_code(rule.segment_b_id, b_criterion.code_value)
    if code_a is None or code_b is None:
        return EffectiveStatus.UNKNOWN

    a_valid = is_code_valid_on(code_a, on_date)
    b_valid = is_code_valid_on(code_b, on_date)
    if not a_valid and not b_valid:
        return EffectiveStatus.BOTH_CODES_INACTIVE
    if not a_valid:
        return EffectiveStatus.SEGMENT_A_CODE_INACTIVE
    if not b_valid:
        return EffectiveStatus.SEGMENT_B_CODE_INACTIVE
    return EffectiveStatus.EFFECTIVE


@traced_engine("effectiveness_projection", "1.0", fingerprint_fields=("on_date", "rules"))
def project_effective_entries(
    on_date: date | datetime,
    rules: Iterable[CombinationRule],
    catalog: SegmentCatalog,
) -> tuple[EntryEffectiveness, ...]:
    """Classify every Include entry of every active rule, in authored order."""
    rows: list[EntryEffectiveness] = []
    for rule in rules:
        if not rule.is_active:
            continue
        for entry in rule.mapping_entries:
            if entry.behavior != EntryBehavior.INCLUDE:
                continue
            rows.append(EntryEffectiveness(
                rule_id=rule.rule_id,
                rule_name=rule.name,
                entry_id=entry.entry_id,
                segment_a_id=rule.segment_a_id,
                segment_b_id=rule.segment_b_id,
                segment_a_display=entry.segment_a_criterion.describe(),
                segment_b_display=entry.segment_b_criterion.describe(),
                status=classify_entry(rule, entry, catalog, on_date),
            ))

    logger.info("effective_entries_projected", extra={
        "on_date": as_day(on_date).isoformat(),
        "entry_count": len(rows),
        "effective_count": sum(1 for r in rows if r.status == EffectiveStatus.EFFECTIVE),
    })
    return tuple(rows)


@dataclass(frozen=True)
class ValidCombinationRow:
    """One listing row: an entry plus a display cell per active segment."""

    entry: EntryEffectiveness
    cells: Mapping[str, str]

    @property
    def status(self) -> EffectiveStatus:
        return self.entry.status


_LISTED_STATUSES = frozenset({EffectiveStatus.EFFECTIVE, EffectiveStatus.UNKNOWN})


def list_valid_combinations(
    on_date: date | datetime,
    rules: Iterable[CombinationRule],
    catalog: SegmentCatalog,
    segments: Sequence[Segment] | None = None,
) -> tuple[ValidCombinationRow, ...]:
    """Projection rows that are Effective or Unknown, laid out per segment.

    ``segments`` fixes the columns; by default the catalog's active
    segments (core first, then by name).  Segments a rule does not govern
    show ``"Any Valid Code"``.
    """
    if segments is None:
        segments = catalog.active_segments() if isinstance(catalog, CatalogSnapshot) else ()

    rows: list[ValidCombinationRow] = []
    for item in project_effective_entries(on_date=on_date, rules=rules, catalog=catalog):
        if item.status not in _LISTED_STATUSES:
            continue
        cells: dict[str, str] = {}
        for segment in segments:
            if segment.segment_id == item.segment_a_id:
                cells[segment.segment_id] = item.segment_a_display
            elif segment.segment_id == item.segment_b_id:
                cells[segment.segment_id] = item.segment_b_display
            else:
                cells[segment.segment_id] = ANY_VALID_CODE
        rows.append(ValidCombinationRow(entry=item, cells=MappingProxyType(cells)))
    return tuple(rows)
