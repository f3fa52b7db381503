"""
VALUATION CALCULATOR

Pure functions over (holdings, prices, buying power).

A holding without a known, finite price contributes 0 until a later poll
supplies one. The total itself may still come out non-finite if an upstream
value is pathological; callers check `is_recordable` before storing it.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Mapping, Optional

from app.domain.models import AllocationSlice, Holding


def _finite_or_zero(value: Optional[float]) -> float:
    if value is None:
        return 0.0
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def holding_value(holding: Holding, prices: Mapping[str, float]) -> float:
    return _finite_or_zero(prices.get(holding.symbol)) * holding.shares


def stock_value(holdings: Iterable[Holding], prices: Mapping[str, float]) -> float:
    return sum((holding_value(h, prices) for h in holdings), 0.0)


def portfolio_value(
    holdings: Iterable[Holding],
    prices: Mapping[str, float],
    buying_power: Optional[float],
) -> float:
    """Σ(price × shares) + buying power (non-finite cash counts as 0)."""
    return stock_value(holdings, prices) + _finite_or_zero(buying_power)


def is_recordable(total: float) -> bool:
    return isinstance(total, (int, float)) and math.isfinite(total)


def round_currency(value: float) -> float:
    return round(value, 2)


def allocation(stocks: float, cash: float) -> List[AllocationSlice]:
    """
    Stocks-vs-cash split. Non-positive slices are dropped; percentages are
    of the remaining total.
    """
    slices = [
        ("Stocks", _finite_or_zero(stocks)),
        ("Cash", _finite_or_zero(cash)),
    ]
    slices = [(name, value) for name, value in slices if value > 0]
    total = sum(value for _, value in slices)
    if total <= 0:
        return []
    return [
        AllocationSlice(
            name=name,
            value=round_currency(value),
            percent=round(value / total * 100.0, 2),
        )
        for name, value in slices
    ]
