"""Money / rounding helpers.

Centralized so conversion, formatting and tuition display use identical
rounding semantics.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
import math


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round_whole(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_positive_amount(value: object) -> bool:
    """True for finite numbers above zero; rejects NaN, inf, bools and non-numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return math.isfinite(value) and value > 0
