"""Most-restrictive-wins reductions over rule thresholds. Absent thresholds never take part."""

import operator
from decimal import Decimal
from functools import reduce
from typing import Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

Candidate = tuple[T, Optional[Decimal]]


def _fold(
    candidates: Iterable[Candidate],
    tighter: Callable[[Decimal, Decimal], bool],
) -> Optional[Candidate]:
    def step(best: Optional[Candidate], candidate: Candidate) -> Optional[Candidate]:
        _, value = candidate
        if value is None:
            return best
        if best is None or tighter(value, best[1]):
            return candidate
        return best

    return reduce(step, candidates, None)


def tightest_upper_bound(candidates: Iterable[Candidate]) -> Optional[Candidate]:
    """Smallest ceiling wins (max discount, max risk). Ties keep the earliest candidate."""
    return _fold(candidates, operator.lt)


def tightest_lower_bound(candidates: Iterable[Candidate]) -> Optional[Candidate]:
    """Largest floor wins (minimum margin, minimum confidence). Ties keep the earliest candidate."""
    return _fold(candidates, operator.gt)


def value_or_default(candidate: Optional[Candidate], default: Decimal) -> Decimal:
    return default if candidate is None else candidate[1]
