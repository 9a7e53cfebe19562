"""
Combination rule domain types (``coa_kernel.domain.combination_rules``).

Responsibility
--------------
Pure value objects for rules restricting which segment-code pairs may
co-occur in an account string: the criterion variant, mapping entries,
rules, the global default behavior, and the result types produced by the
evaluation and projection engines.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``domain/`` siblings and ``exceptions``.

Invariants enforced
-------------------
* Criterion is a closed variant of three shapes (CODE, RANGE,
  HIERARCHY_NODE).  Each shape carries only its own fields and validates
  them at construction (``InvalidCriterionError``), never at match time.
* RANGE bounds satisfy ``start <= end`` under the project ordering
  (``domain.ordering``).
* A rule never pairs a segment with itself (``InvalidRuleError``).
* Entry order within a rule, and rule order within a rule set, are
  preserved exactly as authored: both are semantically load-bearing.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Union

from coa_kernel.domain.ordering import compare_code_values
from coa_kernel.exceptions import InvalidCriterionError, InvalidRuleError


# =========================================================================
# Enumerations
# =========================================================================


class CriterionType(str, Enum):
    CODE = "CODE"
    RANGE = "RANGE"
    HIERARCHY_NODE = "HIERARCHY_NODE"


class EntryBehavior(str, Enum):
    """What a decisive mapping entry does to the candidate pair."""

    INCLUDE = "Include"
    EXCLUDE = "Exclude"


class RuleStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class Decision(str, Enum):
    ALLOWED = "Allowed"
    DENIED = "Denied"


class DefaultBehavior(str, Enum):
    """Global fallback applied when no active rule decides a pair."""

    ALLOWED = "Allowed"
    NOT_ALLOWED = "Not Allowed"

    def to_decision(self) -> Decision:
        return Decision.ALLOWED if self is DefaultBehavior.ALLOWED else Decision.DENIED


class EffectiveStatus(str, Enum):
    """Date-qualified status of an Include entry's referenced codes."""

    EFFECTIVE = "Effective"
    SEGMENT_A_CODE_INACTIVE = "Segment A Code Inactive"
    SEGMENT_B_CODE_INACTIVE = "Segment B Code Inactive"
    BOTH_CODES_INACTIVE = "Both Codes Inactive"
    UNKNOWN = "Unknown"


class WarningCode(str, Enum):
    HIERARCHY_CYCLE = "HIERARCHY_CYCLE"
    SEGMENT_NOT_FOUND = "SEGMENT_NOT_FOUND"
    SEGMENT_INACTIVE = "SEGMENT_INACTIVE"
    MALFORMED_CRITERION = "MALFORMED_CRITERION"
    MALFORMED_RULE = "MALFORMED_RULE"


# =========================================================================
# Criterion variant
# =========================================================================


def _require(criterion_type: CriterionType, name: str, value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidCriterionError(
            criterion_type.value, f"{name} must be a non-empty string, got {value!r}"
        )


@dataclass(frozen=True)
class CodeCriterion:
    """Exact, case-sensitive match on one code value."""

    code_value: str
    criterion_type: ClassVar[CriterionType] = CriterionType.CODE

    def __post_init__(self) -> None:
        _require(self.criterion_type, "code_value", self.code_value)

    def describe(self) -> str:
        return f"Code: {self.code_value}"


@dataclass(frozen=True)
class RangeCriterion:
    """Inclusive range of code values under the project ordering."""

    range_start_value: str
    range_end_value: str
    criterion_type: ClassVar[CriterionType] = CriterionType.RANGE

    def __post_init__(self) -> None:
        _require(self.criterion_type, "range_start_value", self.range_start_value)
        _require(self.criterion_type, "range_end_value", self.range_end_value)
        if compare_code_values(self.range_start_value, self.range_end_value) > 0:
            raise InvalidCriterionError(
                self.criterion_type.value,
                f"range start {self.range_start_value!r} is after "
                f"range end {self.range_end_value!r}",
            )

    def describe(self) -> str:
        return f"Range: {self.range_start_value} - {self.range_end_value}"


@dataclass(frozen=True)
class HierarchyNodeCriterion:
    """Membership in a hierarchy node, optionally including its subtree."""

    hierarchy_node_id: str
    include_children: bool = False
    criterion_type: ClassVar[CriterionType] = CriterionType.HIERARCHY_NODE

    def __post_init__(self) -> None:
        _require(self.criterion_type, "hierarchy_node_id", self.hierarchy_node_id)
        if not isinstance(self.include_children, bool):
            raise InvalidCriterionError(
                self.criterion_type.value,
                f"include_children must be a bool, got {self.include_children!r}",
            )

    def describe(self) -> str:
        suffix = " (+children)" if self.include_children else ""
        return f"Node: {self.hierarchy_node_id}{suffix}"


Criterion = Union[CodeCriterion, RangeCriterion, HierarchyNodeCriterion]


def criterion_from_dict(data: Mapping[str, Any]) -> Criterion:
    """Build the criterion variant from an authored record.

    Accepts the portal's loosely-typed shape (``type``, ``codeValue``,
    ``rangeStartValue``, ``rangeEndValue``, ``hierarchyNodeId``,
    ``includeChildren``) as well as snake_case keys.  Fields that do not
    belong to the declared type are ignored.

    Raises:
        InvalidCriterionError: unknown type or missing required field.
    """

    def pick(camel: str, snake: str) -> Any:
        return data.get(camel, data.get(snake))

    raw_type = data.get("type", data.get("criterion_type"))
    try:
        criterion_type = CriterionType(raw_type)
    except ValueError:
        raise InvalidCriterionError(str(raw_type), "unknown criterion type") from None

    if criterion_type == CriterionType.CODE:
        return CodeCriterion(code_value=pick("codeValue", "code_value"))
    if criterion_type == CriterionType.RANGE:
        return RangeCriterion(
            range_start_value=pick("rangeStartValue", "range_start_value"),
            range_end_value=pick("rangeEndValue", "range_end_value"),
        )
    include_children = pick("includeChildren", "include_children")
    return HierarchyNodeCriterion(
        hierarchy_node_id=pick("hierarchyNodeId", "hierarchy_node_id"),
        include_children=False if include_children is None else include_children,
    )


def criterion_to_dict(criterion: Criterion) -> dict[str, Any]:
    """Inverse of ``criterion_from_dict`` (camelCase authored shape)."""
    if isinstance(criterion, CodeCriterion):
        return {"type": "CODE", "codeValue": criterion.code_value}
    if isinstance(criterion, RangeCriterion):
        return {
            "type": "RANGE",
            "rangeStartValue": criterion.range_start_value,
            "rangeEndValue": criterion.range_end_value,
        }
    return {
        "type": "HIERARCHY_NODE",
        "hierarchyNodeId": criterion.hierarchy_node_id,
        "includeChildren": criterion.include_children,
    }


# =========================================================================
# Entries and rules
# =========================================================================


@dataclass(frozen=True)
class MappingEntry:
    """One Include/Exclude line pairing a criterion per segment."""

    entry_id: str
    behavior: EntryBehavior
    segment_a_criterion: Criterion
    segment_b_criterion: Criterion


@dataclass(frozen=True)
class CombinationRule:
    """A named, ordered set of entries governing (segment A, segment B) pairs.

    The rule is evaluated positionally: segment A's code is always tested
    against ``segment_a_criterion`` and never swapped.
    """

    rule_id: str
    name: str
    status: RuleStatus
    segment_a_id: str
    segment_b_id: str
    mapping_entries: tuple[MappingEntry, ...] = ()
    description: str | None = None
    last_modified_date: datetime | None = None
    last_modified_by: str | None = None

    def __post_init__(self) -> None:
        if not self.rule_id:
            raise InvalidRuleError(self.rule_id, "rule_id is required")
        if self.segment_a_id == self.segment_b_id:
            raise InvalidRuleError(
                self.rule_id, "Segment A and Segment B must be different"
            )

    @property
    def is_active(self) -> bool:
        return self.status == RuleStatus.ACTIVE

    def governs(self, segment_a_id: str, segment_b_id: str) -> bool:
        """Positional match on the segment pair; no implicit swapping."""
        return self.segment_a_id == segment_a_id and self.segment_b_id == segment_b_id


# =========================================================================
# Evaluation results
# =========================================================================


@dataclass(frozen=True)
class ConfigurationWarning:
    """A configuration defect surfaced during evaluation (never raised)."""

    code: WarningCode
    message: str
    rule_id: str | None = None
    entry_id: str | None = None
    node_id: str | None = None
    segment_id: str | None = None


@dataclass(frozen=True)
class CombinationDecision:
    """Outcome of evaluating one candidate pair."""

    decision: Decision
    matched_rule_id: str | None = None
    matched_entry_id: str | None = None
    used_default: bool = False
    warnings: tuple[ConfigurationWarning, ...] = field(default=())

    @property
    def is_allowed(self) -> bool:
        return self.decision == Decision.ALLOWED


@dataclass(frozen=True)
class EntryEffectiveness:
    """One row of the date-effectiveness projection."""

    rule_id: str
    rule_name: str
    entry_id: str
    segment_a_id: str
    segment_b_id: str
    segment_a_display: str
    segment_b_display: str
    status: EffectiveStatus
