"""
Finnhub-style quote provider.

GET {base}/quote?symbol=<SYM>&token=<key> -> {"c": <current price>, ...}
A price of 0, a missing "c" or a negative value means the provider does not
know the instrument.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from app.domain.exceptions import InvalidSymbolError, QuoteFetchError
from app.domain.services.normalization import parse_number
from app.infrastructure.market_data.types import QuoteResult

logger = logging.getLogger(__name__)


class FinnhubQuoteProvider:
    def __init__(
        self,
        api_base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        max_concurrency: int = 8,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.api_key = (api_key or "").strip() or None
        self.timeout_seconds = timeout_seconds
        self.max_concurrency = max(1, int(max_concurrency))

    @property
    def is_configured(self) -> bool:
        return self.api_key is not None

    async def _request_quote(self, client: httpx.AsyncClient, symbol: str) -> dict:
        url = f"{self.api_base_url}/quote"
        params = {"symbol": symbol, "token": self.api_key}
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise QuoteFetchError(symbol, f"request failed: {exc.__class__.__name__}") from exc

        if response.status_code != 200:
            logger.debug("Quote API %s for %s: %s", response.status_code, symbol, response.text[:200])
            raise QuoteFetchError(symbol, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise QuoteFetchError(symbol, "malformed payload") from exc
        if not isinstance(payload, dict):
            raise QuoteFetchError(symbol, "malformed payload")
        return payload

    async def _fetch_price(self, client: httpx.AsyncClient, symbol: str) -> float:
        payload = await self._request_quote(client, symbol)
        price = parse_number(payload.get("c"))
        if price is None or price <= 0:
            raise InvalidSymbolError(symbol)
        return price

    # ------------------------------------------------------------------
    # SINGLE QUOTE
    # ------------------------------------------------------------------

    async def get_quote(self, symbol: str) -> float:
        if not self.is_configured:
            raise QuoteFetchError(symbol, "missing API key")
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await self._fetch_price(client, symbol)

    async def is_valid_symbol(self, symbol: str) -> bool:
        try:
            await self.get_quote(symbol)
        except InvalidSymbolError:
            return False
        return True

    # ------------------------------------------------------------------
    # FAN-OUT
    # ------------------------------------------------------------------

    async def get_quotes(self, symbols: List[str]) -> Dict[str, QuoteResult]:
        """
        Fetch every symbol concurrently. Each symbol maps to its price or to
        the QuoteFetchError that stopped it; one failure never affects another.
        """
        if not symbols:
            return {}
        if not self.is_configured:
            return {s: QuoteFetchError(s, "missing API key") for s in symbols}

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(client: httpx.AsyncClient, symbol: str) -> float:
            async with semaphore:
                return await self._fetch_price(client, symbol)

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            settled = await asyncio.gather(
                *(_bounded(client, symbol) for symbol in symbols),
                return_exceptions=True,
            )

        results: Dict[str, QuoteResult] = {}
        for symbol, outcome in zip(symbols, settled):
            if isinstance(outcome, QuoteFetchError):
                results[symbol] = outcome
            elif isinstance(outcome, Exception):
                logger.warning("Unexpected error fetching %s: %s", symbol, outcome)
                results[symbol] = QuoteFetchError(symbol, str(outcome) or outcome.__class__.__name__)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[symbol] = outcome
        return results
