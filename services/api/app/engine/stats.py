from __future__ import annotations

from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

Number = Union[int, float]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _round_half_up(value: float, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def _median(ordered: List[Number]) -> Number:
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def modal_value(ordered: List[Number]) -> Number:
    """Most frequent value; ties go to the smallest value."""
    # Counter keeps first-insertion order for equal counts, and `ordered`
    # is ascending.
    return Counter(ordered).most_common(1)[0][0]


def calculate_statistics(votes: Iterable[Any]) -> Optional[Dict[str, Any]]:
    """Summarize the numeric votes of a round.

    Label votes (t-shirt sizes and the like) and unset votes are skipped.
    Returns None when no numeric vote is left.
    """
    ordered = sorted(v for v in votes if _is_number(v))
    if not ordered:
        return None

    count = len(ordered)
    average = sum(ordered) / count
    top = modal_value(ordered)
    consensus = _round_half_up(ordered.count(top) / count * 100)

    return {
        "average": float(_round_half_up(average, 1)),
        "median": _median(ordered),
        "min": ordered[0],
        "max": ordered[-1],
        "consensus": int(consensus),
    }
