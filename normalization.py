"""
Min-max normalization shared by every category processor.
"""
from __future__ import annotations
import math
from typing import Any, Iterable, Optional

from models import ValueRange


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are finite. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints too large for a float
        return False


def normalize_value(value: Optional[float], lo: float, hi: float) -> float:
    """
    Normalize `value` into [0, 1] against a pre-computed range.

    Missing values (None/NaN) score 0.0: exclusion already happened during
    validation, so a gap here is treated as worst case. A collapsed range
    (lo == hi) scores 0.5 since every observed value was identical.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return 0.0

    if hi == lo:
        return 0.5

    normalized = (value - lo) / (hi - lo)
    return max(0.0, min(1.0, normalized))


def value_range(values: Iterable[Any], default: ValueRange) -> ValueRange:
    """Min/max over the finite numbers in `values`, or `default` if there are none."""
    nums = [float(v) for v in values if is_finite_number(v)]
    if not nums:
        return default.model_copy()
    return ValueRange(min=min(nums), max=max(nums))
