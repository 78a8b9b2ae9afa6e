"""Decides whether a fresh snapshot is worth telling subscribers about."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from ..models import NotificationCategory, PriceSnapshot, Product


@dataclass(slots=True, frozen=True)
class DecisionPolicy:
    """Tunable knobs of the decision rules."""

    threshold_percent: float = 40.0
    strict_new_low: bool = False


Rule = Callable[[Product, PriceSnapshot, DecisionPolicy], bool]


def stock_changed(previous: Product, snapshot: PriceSnapshot, policy: DecisionPolicy) -> bool:
    return previous.is_out_of_stock != snapshot.is_out_of_stock


def reached_new_low(previous: Product, snapshot: PriceSnapshot, policy: DecisionPolicy) -> bool:
    # Must also be a decrease, otherwise a price sitting at its low would alert every run.
    if policy.strict_new_low:
        at_low = snapshot.price < previous.lowest_price
    else:
        at_low = snapshot.price <= previous.lowest_price
    return at_low and snapshot.price < previous.current_price


def dropped_past_threshold(previous: Product, snapshot: PriceSnapshot, policy: DecisionPolicy) -> bool:
    baseline = previous.current_price
    if baseline <= 0 or snapshot.price >= baseline:
        return False
    # Decimal keeps a drop of exactly the threshold on the inclusive side.
    cutoff = Decimal(str(baseline)) * (1 - Decimal(str(policy.threshold_percent)) / 100)
    return Decimal(str(snapshot.price)) <= cutoff


RULES: tuple[tuple[NotificationCategory, Rule], ...] = (
    (NotificationCategory.STOCK_CHANGE, stock_changed),
    (NotificationCategory.LOWEST_PRICE, reached_new_low),
    (NotificationCategory.THRESHOLD_DROP, dropped_past_threshold),
)
"""Rules in precedence order; the first matching rule decides the category."""


def decide(
    previous: Product,
    snapshot: PriceSnapshot,
    policy: DecisionPolicy | None = None,
) -> NotificationCategory:
    """Classify ``snapshot`` against the record it is about to replace."""

    policy = policy or DecisionPolicy()
    for category, rule in RULES:
        if rule(previous, snapshot, policy):
            return category
    return NotificationCategory.NONE
