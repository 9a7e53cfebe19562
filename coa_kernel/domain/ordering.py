"""
Code value ordering (``coa_kernel.domain.ordering``).

The single project-wide ordering used for RANGE criteria, both when a
range is validated at construction and when a code is matched against it.

Rule
----
* If the code and both bounds are non-empty ASCII digit strings, they are
  compared as integers (``"0610"`` lies inside ``"600".."700"``).
* Otherwise all three are compared as strings, i.e. by Unicode code point,
  which equals byte-wise UTF-8 order.

Mixed triples (for example a numeric code against alphabetic bounds) use
the string comparison.
"""

from __future__ import annotations


def is_numeric_code(value: str) -> bool:
    return bool(value) and value.isascii() and value.isdigit()


def compare_code_values(left: str, right: str) -> int:
    """Three-way compare two code values: -1, 0 or 1."""
    if is_numeric_code(left) and is_numeric_code(right):
        lkey: int | str = int(left)
        rkey: int | str = int(right)
    else:
        lkey, rkey = left, right
    return (lkey > rkey) - (lkey < rkey)


def value_in_range(value: str, start: str, end: str) -> bool:
    """Inclusive ``start <= value <= end`` under the project ordering."""
    if is_numeric_code(value) and is_numeric_code(start) and is_numeric_code(end):
        return int(start) <= int(value) <= int(end)
    return start <= value <= end
