"""Aggregate statistics over a product's price history."""
from __future__ import annotations

import math
from collections.abc import Sequence

from ..models import PricePoint, PriceStats


def _prices(history: Sequence[PricePoint]) -> list[float]:
    if not history:
        raise ValueError("price history must contain at least one entry")
    return [point.price for point in history]


def lowest_price(history: Sequence[PricePoint]) -> float:
    return min(_prices(history))


def highest_price(history: Sequence[PricePoint]) -> float:
    return max(_prices(history))


def average_price(history: Sequence[PricePoint]) -> float:
    return aggregate(history).average


def aggregate(history: Sequence[PricePoint]) -> PriceStats:
    """Compute lowest, highest and mean price over the full ``history``.

    The mean is recomputed from scratch on every call, so repeated runs never
    accumulate rounding error. An empty history raises ``ValueError``.
    """

    prices = _prices(history)
    lowest, highest = min(prices), max(prices)
    # Division can round one ulp past the extremes when every price is equal.
    average = min(max(math.fsum(prices) / len(prices), lowest), highest)
    return PriceStats(lowest=lowest, highest=highest, average=average)
