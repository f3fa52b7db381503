import math

import pytest

from app.domain.models import Holding
from app.domain.services.valuation_engine import (
    allocation,
    holding_value,
    is_recordable,
    portfolio_value,
    round_currency,
    stock_value,
)


def test_single_holding_plus_cash():
    holdings = [Holding(symbol="AAPL", shares=10)]
    total = portfolio_value(holdings, {"AAPL": 150.0}, 500.0)
    assert round_currency(total) == 2000.00


def test_unknown_price_contributes_zero():
    holdings = [Holding(symbol="AAPL", shares=10), Holding(symbol="MSFT", shares=5)]
    assert portfolio_value(holdings, {"AAPL": 150.0}, 0) == 1500.0
    assert holding_value(holdings[1], {"AAPL": 150.0}) == 0.0


@pytest.mark.parametrize("bad_price", [float("nan"), float("inf"), None])
def test_non_finite_price_contributes_zero(bad_price):
    holdings = [Holding(symbol="AAPL", shares=10), Holding(symbol="MSFT", shares=1)]
    prices = {"AAPL": bad_price, "MSFT": 300.0}
    assert stock_value(holdings, prices) == 300.0


@pytest.mark.parametrize("cash", [float("nan"), float("inf"), None])
def test_non_finite_buying_power_counts_as_zero(cash):
    holdings = [Holding(symbol="AAPL", shares=2)]
    assert portfolio_value(holdings, {"AAPL": 10.0}, cash) == 20.0


def test_overflowing_total_is_not_recordable():
    holdings = [Holding(symbol="BIG", shares=1e308)]
    total = portfolio_value(holdings, {"BIG": 1e308}, 0)
    assert math.isinf(total)
    assert not is_recordable(total)
    assert is_recordable(2000.0)


def test_stale_prices_for_removed_symbols_are_ignored():
    holdings = [Holding(symbol="AAPL", shares=1)]
    assert stock_value(holdings, {"AAPL": 100.0, "GONE": 50.0}) == 100.0


def test_allocation_splits_stocks_and_cash():
    slices = allocation(1500.0, 500.0)
    assert [s.name for s in slices] == ["Stocks", "Cash"]
    assert slices[0].percent == 75.0
    assert slices[1].percent == 25.0


def test_allocation_drops_empty_slices():
    slices = allocation(0.0, 250.0)
    assert len(slices) == 1
    assert slices[0].name == "Cash"
    assert slices[0].percent == 100.0
    assert allocation(0.0, 0.0) == []
