"""
Price pre-filter, applied to the catalog before scoring.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from models import BudgetInfo, SmartPrixRecord

logger = logging.getLogger(__name__)

BUFFER_THRESHOLD = 20000.0
BUFFER_LOW = 500.0
BUFFER_HIGH = 1000.0


@dataclass
class PriceFilterOptions:
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    budget_info: Optional[BudgetInfo] = None
    buffer_threshold: float = BUFFER_THRESHOLD
    buffer_low: float = BUFFER_LOW
    buffer_high: float = BUFFER_HIGH


@dataclass
class PriceFilterResult:
    passed: bool
    reason: Optional[str] = None
    effective_max_price: Optional[float] = None


def calculate_effective_max_price(
    budget: float,
    extension_amount: Optional[float],
    buffer_threshold: float = BUFFER_THRESHOLD,
    buffer_low: float = BUFFER_LOW,
    buffer_high: float = BUFFER_HIGH,
) -> float:
    """Budget plus the stated extension, or a small buffer when none was given."""
    if extension_amount is None:
        return budget + (buffer_high if budget >= buffer_threshold else buffer_low)
    return budget + extension_amount


def filter_by_price(
    device_price: Optional[float], options: PriceFilterOptions
) -> PriceFilterResult:
    if device_price is None:
        return PriceFilterResult(passed=False, reason="Price unavailable")

    if options.min_price is not None and device_price < options.min_price:
        return PriceFilterResult(
            passed=False,
            reason=f"Price {device_price} is below minimum {options.min_price}",
        )

    if not options.max_price:
        return PriceFilterResult(passed=False, reason="Provide the max price")

    effective_max = options.max_price
    if options.budget_info is not None:
        effective_max = calculate_effective_max_price(
            options.budget_info.budget,
            options.budget_info.extension_amount,
            options.buffer_threshold,
            options.buffer_low,
            options.buffer_high,
        )

    limit = max(options.max_price, effective_max)
    if device_price > limit:
        return PriceFilterResult(
            passed=False,
            reason=f"Price {device_price} exceeds maximum limit {limit}",
            effective_max_price=limit,
        )

    return PriceFilterResult(passed=True, effective_max_price=limit)


def apply_product_filters(
    records: Sequence[SmartPrixRecord], options: PriceFilterOptions
) -> list[SmartPrixRecord]:
    kept = [r for r in records if filter_by_price(r.price, options).passed]
    logger.debug("Price filter kept %d of %d products", len(kept), len(records))
    return kept
