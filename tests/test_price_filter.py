"""Tests for the price pre-filter and budget buffer."""

import pytest

from factories import make_record
from models import BudgetInfo
from price_filter import (
    PriceFilterOptions,
    apply_product_filters,
    calculate_effective_max_price,
    filter_by_price,
)


@pytest.mark.parametrize(
    ("budget", "extension", "expected"),
    [
        (15000, None, 15500),
        (19999, None, 20499),
        (20000, None, 21000),
        (45000, None, 46000),
        (15000, 3000, 18000),
        (30000, 0, 30000),
    ],
)
def test_effective_max_price(budget, extension, expected) -> None:
    assert calculate_effective_max_price(budget, extension) == expected


def test_missing_price_fails() -> None:
    result = filter_by_price(None, PriceFilterOptions(max_price=20000))
    assert not result.passed
    assert result.reason == "Price unavailable"


def test_below_minimum_fails() -> None:
    result = filter_by_price(9000, PriceFilterOptions(min_price=10000, max_price=20000))
    assert not result.passed
    assert "below minimum" in result.reason


@pytest.mark.parametrize("max_price", [None, 0])
def test_max_price_is_required(max_price) -> None:
    result = filter_by_price(15000, PriceFilterOptions(max_price=max_price))
    assert not result.passed
    assert result.reason == "Provide the max price"


def test_without_budget_limit_is_max_price() -> None:
    options = PriceFilterOptions(max_price=20000)
    assert filter_by_price(20000, options).passed
    over = filter_by_price(20001, options)
    assert not over.passed
    assert over.effective_max_price == 20000


def test_budget_buffer_extends_limit() -> None:
    options = PriceFilterOptions(max_price=20000, budget_info=BudgetInfo(budget=20000))
    result = filter_by_price(20900, options)
    assert result.passed
    assert result.effective_max_price == 21000
    assert not filter_by_price(21001, options).passed


def test_limit_never_drops_below_max_price() -> None:
    options = PriceFilterOptions(
        max_price=25000,
        budget_info=BudgetInfo(budget=18000, extension_amount=1000),
    )
    result = filter_by_price(24000, options)
    assert result.passed
    assert result.effective_max_price == 25000


def test_custom_buffers() -> None:
    options = PriceFilterOptions(
        max_price=10000,
        budget_info=BudgetInfo(budget=10000),
        buffer_threshold=5000,
        buffer_low=100,
        buffer_high=2500,
    )
    assert filter_by_price(12500, options).passed
    assert not filter_by_price(12501, options).passed


def test_budget_info_accepts_camel_case() -> None:
    info = BudgetInfo.model_validate({"budget": 30000, "extensionAmount": 2000})
    assert info.extension_amount == 2000


def test_apply_product_filters_keeps_order() -> None:
    records = [
        make_record("Cheap", price=8000),
        make_record("Mid", price=15000),
        make_record("Unpriced", price=None),
        make_record("Pricey", price=40000),
        make_record("Upper Mid", price=19500),
    ]
    options = PriceFilterOptions(min_price=10000, max_price=20000)

    kept = apply_product_filters(records, options)

    assert [r.title for r in kept] == ["Mid", "Upper Mid"]
