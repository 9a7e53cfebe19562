"""
Segment domain types (``coa_kernel.domain.segments``).

Responsibility
--------------
Pure value objects for the coding dimensions of an account string.
``Segment`` defines one axis (Fund, Object, Department, ...);
``SegmentCode`` defines one selectable value within that axis together
with its own active flag and validity window.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* ``valid_from <= valid_to`` whenever both bounds are present, for both
  segments and codes (``InvalidValidityWindowError``).
* ``Segment.separator`` is one of the four supported separators.
* ``Segment.validation_pattern`` compiles as a regular expression.
* Segment ids are treated as immutable identifiers; rules and
  hierarchies reference segments by id only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from coa_kernel.exceptions import InvalidSegmentError, InvalidValidityWindowError

ALLOWED_SEPARATORS: frozenset[str] = frozenset({"-", "|", ",", "."})


class SegmentDataType(str, Enum):
    """Character class accepted for a segment's code values."""

    ALPHANUMERIC = "Alphanumeric"
    NUMERIC = "Numeric"
    TEXT = "Text"


def as_day(value: date | datetime) -> date:
    """Truncate a datetime to its calendar day; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def window_contains(
    valid_from: date | None,
    valid_to: date | None,
    on_date: date | datetime,
) -> bool:
    """Inclusive day-granularity window check; ``None`` bounds are open."""
    day = as_day(on_date)
    if valid_from is not None and day < as_day(valid_from):
        return False
    if valid_to is not None and day > as_day(valid_to):
        return False
    return True


def check_validity_window(entity: str, valid_from: date | None, valid_to: date | None) -> None:
    if valid_from is not None and valid_to is not None:
        if as_day(valid_from) > as_day(valid_to):
            raise InvalidValidityWindowError(entity, valid_from, valid_to)


@dataclass(frozen=True)
class Segment:
    """One coding dimension of an account string.

    ``separator`` is written after this segment's code when the account
    string is composed.  ``validation_pattern`` (when set) must fully
    match every code value entered for the segment.
    """

    segment_id: str
    display_name: str
    segment_type: str
    is_active: bool = True
    is_core: bool = False
    is_mandatory_for_coding: bool = False
    separator: str = "-"
    validation_pattern: str | None = None
    default_code: str | None = None
    valid_from: date | None = None
    valid_to: date | None = None
    data_type: SegmentDataType = SegmentDataType.ALPHANUMERIC
    max_length: int | None = None
    is_custom: bool = False

    def __post_init__(self) -> None:
        if not self.segment_id:
            raise InvalidSegmentError(self.segment_id, "segment_id is required")
        if self.separator not in ALLOWED_SEPARATORS:
            raise InvalidSegmentError(
                self.segment_id,
                f"separator {self.separator!r} not in {sorted(ALLOWED_SEPARATORS)}",
            )
        if self.max_length is not None and self.max_length < 1:
            raise InvalidSegmentError(
                self.segment_id, f"max_length must be >= 1, got {self.max_length}"
            )
        if self.validation_pattern is not None:
            try:
                re.compile(self.validation_pattern)
            except re.error as exc:
                raise InvalidSegmentError(
                    self.segment_id, f"validation_pattern does not compile: {exc}"
                ) from exc
        check_validity_window(f"segment {self.segment_id}", self.valid_from, self.valid_to)

    def is_effective_on(self, on_date: date | datetime) -> bool:
        """Active and inside the (optional) validity window."""
        return self.is_active and window_contains(self.valid_from, self.valid_to, on_date)

    def format_problem(self, code_value: str) -> str | None:
        """Return why ``code_value`` is not acceptable for this segment, or None."""
        if not code_value:
            return "empty code value"
        if self.max_length is not None and len(code_value) > self.max_length:
            return f"longer than max_length {self.max_length}"
        if self.data_type == SegmentDataType.NUMERIC and not (
            code_value.isascii() and code_value.isdigit()
        ):
            return "not numeric"
        if self.validation_pattern is not None and not re.fullmatch(
            self.validation_pattern, code_value
        ):
            return f"does not match pattern {self.validation_pattern!r}"
        return None

    def accepts_code_value(self, code_value: str) -> bool:
        return self.format_problem(code_value) is None


@dataclass(frozen=True)
class SegmentCode:
    """A concrete value within a segment.

    ``valid_to=None`` means the code is open-ended.  ``code_id`` is the
    authoring-side instance id (e.g. ``"fb-f-101"``); the evaluator keys
    codes by ``(segment_id, code)``.
    """

    segment_id: str
    code: str
    description: str = ""
    is_active: bool = True
    valid_from: date | None = None
    valid_to: date | None = None
    summary_indicator: bool = False
    available_for_transaction_coding: bool = True
    available_for_budgeting: bool = True
    default_parent_code: str | None = None
    code_id: str | None = None

    def __post_init__(self) -> None:
        check_validity_window(
            f"segment code {self.segment_id}:{self.code}",
            self.valid_from,
            self.valid_to,
        )

    @property
    def key(self) -> tuple[str, str]:
        return (self.segment_id, self.code)
