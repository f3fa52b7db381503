"""
Input normalization at the mutation boundary.

Symbols are trimmed and uppercased before they are used as a cache key or a
persistence key. Share counts and cash amounts are coerced to non-negative
finite floats; anything unparseable becomes 0. Cash is kept to the cent.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

_CENT = Decimal("0.01")


def canonical_symbol(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().upper()


def normalize_symbols(symbols: Iterable[object]) -> List[str]:
    """Canonicalize, drop empties and deduplicate, keeping first-seen order."""
    seen: List[str] = []
    for raw in symbols or ():
        symbol = canonical_symbol(raw)
        if symbol and symbol not in seen:
            seen.append(symbol)
    return seen


def parse_number(value: object) -> Optional[float]:
    """Parse a user-supplied number; None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        parsed = float(value)
    elif isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def normalize_amount(value: object) -> float:
    """max(0, parsed-value-or-0)"""
    parsed = parse_number(value)
    if parsed is None:
        return 0.0
    return max(0.0, parsed)


def normalize_cash(value: object) -> float:
    """normalize_amount, rounded half-up to the cent the store keeps"""
    amount = Decimal(str(normalize_amount(value)))
    return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))
