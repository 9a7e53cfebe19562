"""
coa_engines.account_coding -- Compose and validate a full account string.

Responsibility:
    Turn per-segment code selections into the display account string
    (``101-6050-FIN``) and validate the selection as a whole: mandatory
    segments present, codes known, well-formed, valid on the date and
    postable, and every segment pair governed by an active combination rule
    decided Allowed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Calls ``coa_engines.evaluator`` once per governed segment pair.

Invariants enforced:
    - Only active segments take part, in the order supplied.
    - Pairwise checks run only for (A, B) pairs that some active rule
      governs positionally and for which both codes were selected.
    - ``is_valid`` iff there are no issues and every pairwise decision is
      Allowed.

Failure modes:
    - Never raises for well-typed inputs; problems are reported as
      ``CodingIssue`` records.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from coa_engines.evaluator import evaluate
from coa_engines.temporal import is_code_valid_on
from coa_kernel.domain.combination_rules import (
    CombinationDecision,
    CombinationRule,
    DefaultBehavior,
)
from coa_kernel.domain.segments import Segment
from coa_kernel.domain.snapshots import HierarchyLookup, SegmentCatalog
from coa_kernel.logging_config import get_logger

logger = get_logger("engines.account_coding")

DEFAULT_PLACEHOLDER_LENGTH = 4


class CodingIssueKind(str, Enum):
    MISSING_MANDATORY = "missing_mandatory"
    UNKNOWN_SEGMENT = "unknown_segment"
    UNKNOWN_CODE = "unknown_code"
    INVALID_FORMAT = "invalid_format"
    CODE_INACTIVE = "code_inactive"
    NOT_POSTABLE = "not_postable"


@dataclass(frozen=True)
class CodingIssue:
    kind: CodingIssueKind
    segment_id: str
    message: str
    code_value: str | None = None


@dataclass(frozen=True)
class PairDecision:
    segment_a_id: str
    code_a: str
    segment_b_id: str
    code_b: str
    decision: CombinationDecision


@dataclass(frozen=True)
class CodingValidation:
    account_string: str
    issues: tuple[CodingIssue, ...]
    decisions: tuple[PairDecision, ...]

    @property
    def denied(self) -> tuple[PairDecision, ...]:
        return tuple(d for d in self.decisions if not d.decision.is_allowed)

    @property
    def is_valid(self) -> bool:
        return not self.issues and not self.denied


def _placeholder(segment: Segment) -> str:
    return "_" * (segment.max_length or DEFAULT_PLACEHOLDER_LENGTH)


def compose_account_string(
    segments: Sequence[Segment],
    selections: Mapping[str, str],
) -> str:
    """Join the selected code of each active segment with its separator.

    A segment without a selection renders as underscores (``max_length``
    of them, 4 when unset).  No separator follows the last segment.
    """
    active = [s for s in segments if s.is_active]
    parts: list[str] = []
    for index, segment in enumerate(active):
        parts.append(selections.get(segment.segment_id) or _placeholder(segment))
        if index < len(active) - 1:
            parts.append(segment.separator)
    return "".join(parts)


def _code_issues(
    segment: Segment,
    code_value: str,
    catalog: SegmentCatalog,
    on_date: date | datetime,
) -> list[CodingIssue]:
    problem = segment.format_problem(code_value)
    if problem is not None:
        return [CodingIssue(
            CodingIssueKind.INVALID_FORMAT, segment.segment_id,
            f"{segment.display_name} code {code_value!r} {problem}", code_value,
        )]

    code = catalog.get_segment_code(segment.segment_id, code_value)
    if code is None:
        return [CodingIssue(
            CodingIssueKind.UNKNOWN_CODE, segment.segment_id,
            f"{segment.display_name} code {code_value!r} does not exist", code_value,
        )]

    issues: list[CodingIssue] = []
    if not is_code_valid_on(code, on_date):
        issues.append(CodingIssue(
            CodingIssueKind.CODE_INACTIVE, segment.segment_id,
            f"{segment.display_name} code {code_value!r} is not valid on the date", code_value,
        ))
    if code.summary_indicator or not code.available_for_transaction_coding:
        issues.append(CodingIssue(
            CodingIssueKind.NOT_POSTABLE, segment.segment_id,
            f"{segment.display_name} code {code_value!r} is not available for "
            f"transaction coding", code_value,
        ))
    return issues


def _governed_pairs(
    rules: Sequence[CombinationRule],
    selected: Mapping[str, str],
) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for rule in rules:
        if not rule.is_active:
            continue
        pair = (rule.segment_a_id, rule.segment_b_id)
        if pair in pairs:
            continue
        if pair[0] in selected and pair[1] in selected:
            pairs.append(pair)
    return pairs


def validate_account_coding(
    on_date: date | datetime,
    segments: Sequence[Segment],
    selections: Mapping[str, str],
    rules: Iterable[CombinationRule],
    default_behavior: DefaultBehavior,
    catalog: SegmentCatalog,
    hierarchy: HierarchyLookup | None = None,
) -> CodingValidation:
    """Validate one account coding on ``on_date``.

    Args:
        segments: Ordered segments of the chart; inactive ones are ignored.
        selections: segment_id -> selected code value.
        rules: Ordered combination rules.
    """
    rules = tuple(rules)
    active = [s for s in segments if s.is_active]
    active_ids = {s.segment_id for s in active}
    issues: list[CodingIssue] = []
    selected: dict[str, str] = {}

    for segment in active:
        code_value = selections.get(segment.segment_id)
        if not code_value:
            if segment.is_mandatory_for_coding:
                issues.append(CodingIssue(
                    CodingIssueKind.MISSING_MANDATORY, segment.segment_id,
                    f"{segment.display_name} is required",
                ))
            continue
        selected[segment.segment_id] = code_value
        issues.extend(_code_issues(segment, code_value, catalog, on_date))

    for segment_id, code_value in selections.items():
        if segment_id not in active_ids and code_value:
            issues.append(CodingIssue(
                CodingIssueKind.UNKNOWN_SEGMENT, segment_id,
                f"Segment {segment_id!r} is not an active segment", code_value,
            ))

    decisions: list[PairDecision] = []
    for segment_a_id, segment_b_id in _governed_pairs(rules, selected):
        code_a = selected[segment_a_id]
        code_b = selected[segment_b_id]
        decision = evaluate(
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
        decisions.append(PairDecision(segment_a_id, code_a, segment_b_id, code_b, decision))

    result = CodingValidation(
        account_string=compose_account_string(segments, selections),
        issues=tuple(issues),
        decisions=tuple(decisions),
    )
    logger.info("account_coding_validated", extra={
        "account_string": result.account_string,
        "issue_count": len(result.issues),
        "pair_count": len(result.decisions),
        "denied_count": len(result.denied),
        "is_valid": result.is_valid,
    })
    return result
