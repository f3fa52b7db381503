"""
Quote poller: one fan-out fetch per poll cycle, merged into the price cache.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional

from app.domain.exceptions import InvalidSymbolError
from app.domain.models import PollResult, Snapshot
from app.domain.services.normalization import normalize_symbols
from app.domain.services.price_cache import PriceCache
from app.infrastructure.market_data.types import QuoteProvider
from app.utils.time import now_epoch_ms

logger = logging.getLogger(__name__)

ADVISORY_MISSING_KEY = "Missing quote API key"
ADVISORY_PARTIAL = "Some quotes failed to load"
ADVISORY_DEGRADED = "All quotes failed to load; showing cached prices"


class QuotePoller:
    """
    Polls the quote provider for a set of symbols.

    At most one poll is in flight; a call made while another is running
    returns a skipped result immediately. A completed poll whose timestamp
    does not advance past the last accepted one is discarded before it
    touches the cache.
    """

    def __init__(
        self,
        provider: QuoteProvider,
        price_cache: PriceCache,
        clock: Callable[[], int] = now_epoch_ms,
    ):
        self._provider = provider
        self._cache = price_cache
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_timestamp: Optional[int] = None
        self._last_result: Optional[PollResult] = None

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @property
    def last_timestamp(self) -> Optional[int]:
        return self._last_timestamp

    @property
    def last_result(self) -> Optional[PollResult]:
        return self._last_result

    async def poll(self, symbols: Iterable[str]) -> PollResult:
        if self._lock.locked():
            logger.info("Poll already in flight; skipping tick")
            return PollResult(snapshot=None, skipped=True)

        async with self._lock:
            result = await self._poll_locked(normalize_symbols(symbols))
        if not result.skipped:
            self._last_result = result
        return result

    async def _poll_locked(self, symbols: list) -> PollResult:
        if not symbols:
            self._cache.reset()
            return PollResult(snapshot=None)

        if not self._provider.is_configured:
            logger.warning("Quote API key not configured; no quotes fetched")
            return PollResult(
                snapshot=None,
                requested=tuple(symbols),
                degraded=True,
                advisory=ADVISORY_MISSING_KEY,
            )

        outcomes = await self._provider.get_quotes(symbols)

        prices: Dict[str, float] = {}
        failed: Dict[str, str] = {}
        for symbol in symbols:
            outcome = outcomes.get(symbol)
            if isinstance(outcome, (int, float)) and not isinstance(outcome, bool):
                prices[symbol] = float(outcome)
            elif isinstance(outcome, InvalidSymbolError):
                failed[symbol] = "invalid_symbol"
            elif outcome is None:
                failed[symbol] = "no result"
            else:
                failed[symbol] = getattr(outcome, "reason", str(outcome))

        timestamp = self._clock()
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            logger.info(
                "Discarding superseded poll (ts=%s, last accepted=%s)", timestamp, self._last_timestamp
            )
            return PollResult(snapshot=None, requested=tuple(symbols), skipped=True)

        merged = self._cache.merge(prices)
        self._last_timestamp = timestamp

        degraded = not prices
        if degraded:
            advisory = ADVISORY_DEGRADED
            logger.warning("All %d quote requests failed; using cached prices", len(symbols))
        elif failed:
            advisory = ADVISORY_PARTIAL
            logger.info("Quotes failed for %s", ", ".join(sorted(failed)))
        else:
            advisory = None

        return PollResult(
            snapshot=Snapshot(timestamp=timestamp, prices=merged),
            requested=tuple(symbols),
            succeeded=tuple(prices),
            failed=failed,
            degraded=degraded,
            advisory=advisory,
        )
