"""
Quote provider protocol for type hints.
"""

from __future__ import annotations

from typing import Dict, List, Protocol, Union

from app.domain.exceptions import QuoteFetchError

# Either a price or the error that prevented fetching it
QuoteResult = Union[float, QuoteFetchError]


class QuoteProvider(Protocol):
    @property
    def is_configured(self) -> bool:
        ...

    async def get_quote(self, symbol: str) -> float:
        ...

    async def get_quotes(self, symbols: List[str]) -> Dict[str, QuoteResult]:
        ...

    async def is_valid_symbol(self, symbol: str) -> bool:
        ...
