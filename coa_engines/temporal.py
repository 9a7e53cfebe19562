"""
coa_engines.temporal -- Segment code validity on a date.

Responsibility:
    Decide whether a single segment code is usable on a given date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Day granularity: time-of-day is ignored on every input.
    - Both window bounds are inclusive; ``valid_to=None`` is open-ended.
    - Never raises: an absent code is the caller's concern (see
      ``code_status``).
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from coa_kernel.domain.segments import SegmentCode, window_contains
from coa_kernel.domain.snapshots import SegmentCatalog


class CodeStatus(str, Enum):
    """Validity of a candidate code against the catalog on a date."""

    VALID = "Valid"
    INACTIVE = "Inactive"
    UNKNOWN = "Unknown"


def is_code_valid_on(code: SegmentCode, on_date: date | datetime) -> bool:
    """True iff the code is active and ``on_date`` lies inside its window.

    ``valid_from=None`` is treated as open at the start, which only arises
    for codes built outside the authoring flow.
    """
    return code.is_active and window_contains(code.valid_from, code.valid_to, on_date)


def code_status(
    catalog: SegmentCatalog,
    segment_id: str,
    code_value: str,
    on_date: date | datetime,
) -> CodeStatus:
    """Resolve a code through the catalog and classify it on ``on_date``."""
    code = catalog.get_segment_code(segment_id, code_value)
    if code is None:
        return CodeStatus.UNKNOWN
    return CodeStatus.VALID if is_code_valid_on(code, on_date) else CodeStatus.INACTIVE
