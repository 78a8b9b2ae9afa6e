from __future__ import annotations

import pytest

from pricewise.models import NotificationCategory, PriceSnapshot, Product
from pricewise.services.notification_policy import RULES, DecisionPolicy, decide


def _product(current: float = 100.0, lowest: float = 100.0, out_of_stock: bool = False) -> Product:
    return Product(
        identifier="https://example.com/item",
        title="Item",
        current_price=current,
        lowest_price=lowest,
        highest_price=max(current, lowest),
        average_price=current,
        is_out_of_stock=out_of_stock,
    )


def _snapshot(price: float, out_of_stock: bool = False) -> PriceSnapshot:
    return PriceSnapshot(url="https://example.com/item", price=price, title="Item", is_out_of_stock=out_of_stock)


def test_stock_change_wins_regardless_of_price() -> None:
    previous = _product(current=100.0, lowest=90.0, out_of_stock=False)

    assert decide(previous, _snapshot(500.0, out_of_stock=True)) is NotificationCategory.STOCK_CHANGE


def test_restock_is_a_stock_change() -> None:
    previous = _product(out_of_stock=True)

    assert decide(previous, _snapshot(100.0, out_of_stock=False)) is NotificationCategory.STOCK_CHANGE


def test_new_low_that_is_also_a_decrease() -> None:
    previous = _product(current=95.0, lowest=100.0)

    assert decide(previous, _snapshot(90.0)) is NotificationCategory.LOWEST_PRICE


def test_threshold_drop_when_not_a_new_low() -> None:
    previous = _product(current=100.0, lowest=50.0)

    category = decide(previous, _snapshot(85.0), DecisionPolicy(threshold_percent=10.0))

    assert category is NotificationCategory.THRESHOLD_DROP


@pytest.mark.parametrize(
    ("current", "price"),
    [(3.0, 2.7), (19.90, 17.91), (9.99, 8.991), (100.0, 90.0)],
)
def test_drop_of_exactly_the_threshold_counts(current: float, price: float) -> None:
    previous = _product(current=current, lowest=1.0)

    category = decide(previous, _snapshot(price), DecisionPolicy(threshold_percent=10.0))

    assert category is NotificationCategory.THRESHOLD_DROP


def test_drop_just_short_of_the_threshold_is_ignored() -> None:
    previous = _product(current=19.90, lowest=1.0)

    category = decide(previous, _snapshot(17.92), DecisionPolicy(threshold_percent=10.0))

    assert category is NotificationCategory.NONE


def test_drop_below_threshold_is_ignored() -> None:
    previous = _product(current=100.0, lowest=50.0)

    category = decide(previous, _snapshot(95.0), DecisionPolicy(threshold_percent=10.0))

    assert category is NotificationCategory.NONE


def test_unchanged_price_is_none() -> None:
    previous = _product(current=100.0, lowest=100.0)

    assert decide(previous, _snapshot(100.0)) is NotificationCategory.NONE


def test_flat_price_at_recorded_low_does_not_refire() -> None:
    previous = _product(current=80.0, lowest=80.0)

    assert decide(previous, _snapshot(80.0)) is NotificationCategory.NONE


def test_stock_change_takes_precedence_over_new_low() -> None:
    previous = _product(current=95.0, lowest=100.0, out_of_stock=True)

    assert decide(previous, _snapshot(90.0, out_of_stock=False)) is NotificationCategory.STOCK_CHANGE


def test_new_low_takes_precedence_over_threshold_drop() -> None:
    previous = _product(current=100.0, lowest=100.0)

    category = decide(previous, _snapshot(50.0), DecisionPolicy(threshold_percent=10.0))

    assert category is NotificationCategory.LOWEST_PRICE


@pytest.mark.parametrize(("strict", "expected"), [(False, NotificationCategory.LOWEST_PRICE), (True, NotificationCategory.NONE)])
def test_tie_with_recorded_low_follows_policy(strict: bool, expected: NotificationCategory) -> None:
    previous = _product(current=95.0, lowest=90.0)

    category = decide(previous, _snapshot(90.0), DecisionPolicy(threshold_percent=40.0, strict_new_low=strict))

    assert category is expected


def test_zero_previous_price_never_counts_as_threshold_drop() -> None:
    previous = _product(current=0.0, lowest=0.0)

    assert decide(previous, _snapshot(0.0), DecisionPolicy(threshold_percent=0.0)) is NotificationCategory.NONE


def test_rules_are_listed_in_precedence_order() -> None:
    assert [category for category, _ in RULES] == [
        NotificationCategory.STOCK_CHANGE,
        NotificationCategory.LOWEST_PRICE,
        NotificationCategory.THRESHOLD_DROP,
    ]
