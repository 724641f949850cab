"""
Ranking sort engine.

Pure functions over (records, SortState). Nothing here mutates its inputs, so
every function is safe to call from any number of readers.

Ordering rules:
1. Ratio keys resolve to numerator / denominator, or 0 when the denominator
   is not a positive number
2. None sorts last in both directions
3. Finite numbers (numeric strings included) compare numerically
4. Everything else compares as case-insensitive text. These are pairwise
   rules: a column mixing numbers with non-numeric text has no total order,
   so its result may depend on input order
5. Stable: equal values keep their input order
"""

from __future__ import annotations

import math
from functools import cmp_to_key
from typing import Any, Sequence

from ..types import FieldKey, RatioKey, Record, SortDirection, SortKey, SortState

RATIO_SEPARATOR = "/"

# Tri-state cycle on repeated requests for the active key
_NEXT_DIRECTION = {
    SortDirection.ASCENDING: SortDirection.DESCENDING,
    SortDirection.DESCENDING: SortDirection.NONE,
    SortDirection.NONE: SortDirection.ASCENDING,
}

UNSORTED = SortState(key=None, direction=SortDirection.NONE)


def parse_sort_key(key: SortKey | str) -> SortKey:
    """
    Normalize a sort key.

    Strings containing the ratio separator ("peak_ccu / average_ccu") become a
    RatioKey, any other string a FieldKey. Key objects pass through.
    """
    if isinstance(key, (FieldKey, RatioKey)):
        return key
    if RATIO_SEPARATOR in key:
        numerator, _, denominator = key.partition(RATIO_SEPARATOR)
        return RatioKey(numerator.strip(), denominator.strip())
    return FieldKey(key)


def format_sort_key(key: SortKey) -> str:
    """Inverse of parse_sort_key."""
    if isinstance(key, RatioKey):
        return f"{key.numerator}{RATIO_SEPARATOR}{key.denominator}"
    return key.name


def request_sort(state: SortState, key: SortKey | str) -> SortState:
    """
    Toggle rule for a click on a column header.

    Same key: ascending -> descending -> none -> ascending.
    Different key: becomes active, ascending.
    """
    key = parse_sort_key(key)
    if state.key == key:
        return SortState(key, _NEXT_DIRECTION[state.direction])
    return SortState(key, SortDirection.ASCENDING)


def sort_indicator(state: SortState, key: SortKey | str) -> str:
    """Header arrow for `key`: "▲" / "▼" when active, "" otherwise."""
    if state.key != parse_sort_key(key):
        return ""
    if state.direction is SortDirection.ASCENDING:
        return "▲"
    if state.direction is SortDirection.DESCENDING:
        return "▼"
    return ""


def _as_number(value: Any) -> float | None:
    """Finite float for numbers and numeric strings, else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def resolve_sort_value(record: Record, key: SortKey) -> Any:
    """Value of `record` under `key`. Missing fields resolve to None."""
    if isinstance(key, RatioKey):
        numerator = _as_number(record.get(key.numerator))
        denominator = _as_number(record.get(key.denominator))
        if numerator is None or denominator is None or denominator <= 0:
            return 0
        return numerator / denominator
    return record.get(key.name)


def _compare_values(a: Any, b: Any, sign: int) -> int:
    # None last regardless of direction, so sign is not applied here
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1

    a_num = _as_number(a)
    b_num = _as_number(b)
    if a_num is not None and b_num is not None:
        if a_num == b_num:
            return 0
        return sign if a_num > b_num else -sign

    a_text = str(a).lower()
    b_text = str(b).lower()
    if a_text == b_text:
        return 0
    return sign if a_text > b_text else -sign


def compute_order(records: Sequence[Record], state: SortState) -> Sequence[Record]:
    """
    Order `records` for display.

    Returns `records` itself when the state is unsorted, otherwise a new
    list. O(n log n).
    """
    if state.key is None or state.direction is SortDirection.NONE:
        return records

    key = state.key
    sign = 1 if state.direction is SortDirection.ASCENDING else -1

    # Resolve once per record, not once per comparison
    decorated = [(resolve_sort_value(record, key), record) for record in records]
    decorated = sorted(
        decorated,
        key=cmp_to_key(lambda a, b: _compare_values(a[0], b[0], sign)),
    )
    return [record for _, record in decorated]
