"""
Price cache: last observed price per symbol.

Only the quote poller writes to it. Failed fetches leave the previous value
in place, so readers see stale-but-present prices rather than gaps.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional


def merge(cache: Mapping[str, float], partial: Mapping[str, float]) -> Dict[str, float]:
    """
    Overlay `partial` on `cache` and return a new mapping.

    Symbols absent from `partial` keep their prior value; neither input is
    modified.
    """
    merged = dict(cache)
    merged.update(partial)
    return merged


class PriceCache:
    def __init__(self, initial: Optional[Mapping[str, float]] = None):
        self._prices: Dict[str, float] = dict(initial or {})

    def merge(self, partial: Mapping[str, float]) -> Dict[str, float]:
        self._prices = merge(self._prices, partial)
        return dict(self._prices)

    def reset(self) -> None:
        self._prices = {}

    def get(self, symbol: str) -> Optional[float]:
        return self._prices.get(symbol)

    def snapshot(self) -> Dict[str, float]:
        return dict(self._prices)

    def __len__(self) -> int:
        return len(self._prices)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._prices
