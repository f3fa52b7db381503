"""
Valuation runtime: shared price cache and poller, plus one portfolio session
per authenticated identity.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from app.domain.models import Identity, PollResult, PortfolioState
from app.domain.services.bulk_transfer import BulkTransfer
from app.domain.services.history_recorder import HistoryRecorder
from app.domain.services.holdings_reconciler import HoldingsReconciler
from app.domain.services.price_cache import PriceCache
from app.domain.services.valuation_engine import (
    allocation,
    holding_value,
    is_recordable,
    portfolio_value,
    round_currency,
    stock_value,
)
from app.infrastructure.db.portfolio_store import PortfolioStore
from app.infrastructure.market_data.quote_poller import QuotePoller
from app.infrastructure.market_data.types import QuoteProvider
from app.utils.time import now_epoch_ms

logger = logging.getLogger(__name__)


class PortfolioSession:
    """Everything owned by one logged-in identity."""

    def __init__(self, identity: Identity, store: PortfolioStore, quote_provider: QuoteProvider):
        self.identity = identity
        self.reconciler = HoldingsReconciler(identity.user_id, store, quote_provider)
        self.history = HistoryRecorder(self.reconciler.state)
        self.transfer = BulkTransfer(self.reconciler, store)

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    def state(self) -> PortfolioState:
        return self.reconciler.state()

    def close(self) -> None:
        self.reconciler.clear()
        self.history.clear()


class ValuationEngine:
    def __init__(
        self,
        quote_provider: QuoteProvider,
        store: PortfolioStore,
        clock: Callable[[], int] = now_epoch_ms,
    ):
        self._quote_provider = quote_provider
        self._store = store
        self._price_cache = PriceCache()
        self._poller = QuotePoller(quote_provider, self._price_cache, clock=clock)
        self._sessions: Dict[str, PortfolioSession] = {}
        self._sessions_lock = asyncio.Lock()

    @property
    def poller(self) -> QuotePoller:
        return self._poller

    @property
    def price_cache(self) -> PriceCache:
        return self._price_cache

    # ------------------------------------------------------------------
    # SESSIONS
    # ------------------------------------------------------------------

    async def open_session(self, identity: Identity) -> PortfolioSession:
        """
        Return the identity's session, creating it with an initial full read
        on first sight. Raises StoreError if that read fails.
        """
        existing = self._sessions.get(identity.user_id)
        if existing is not None:
            return existing

        async with self._sessions_lock:
            existing = self._sessions.get(identity.user_id)
            if existing is not None:
                return existing
            session = PortfolioSession(identity, self._store, self._quote_provider)
            await session.reconciler.load()
            self._sessions[identity.user_id] = session
            logger.info("📂 Opened portfolio session for %s", identity.user_id)
            return session

    def get_session(self, user_id: str) -> Optional[PortfolioSession]:
        return self._sessions.get(user_id)

    def close_session(self, user_id: str) -> bool:
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.close()
        logger.info("🔒 Closed portfolio session for %s", user_id)
        return True

    def session_count(self) -> int:
        return len(self._sessions)

    def symbols(self) -> List[str]:
        seen: List[str] = []
        for session in list(self._sessions.values()):
            for symbol in session.reconciler.symbols():
                if symbol not in seen:
                    seen.append(symbol)
        return seen

    # ------------------------------------------------------------------
    # POLLING
    # ------------------------------------------------------------------

    async def tick(self) -> PollResult:
        """One poll cycle over every open portfolio's symbols."""
        result = await self._poller.poll(self.symbols())
        if result.snapshot is not None:
            for session in list(self._sessions.values()):
                session.history.record(result.snapshot)
        return result

    async def refresh(self) -> PollResult:
        return await self.tick()

    # ------------------------------------------------------------------
    # VIEWS
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, object]:
        last = self._poller.last_result
        return {
            "last_updated": self._poller.last_timestamp,
            "loading": self._poller.in_flight,
            "degraded": bool(last and last.degraded),
            "advisory": last.advisory if last else None,
            "failed_symbols": dict(last.failed) if last else {},
        }

    def portfolio_view(self, session: PortfolioSession) -> Dict[str, object]:
        prices = self._price_cache.snapshot()
        state = session.state()

        rows = []
        for holding in state.holdings:
            price = prices.get(holding.symbol)
            rows.append({
                "id": holding.id,
                "symbol": holding.symbol,
                "shares": holding.shares,
                "price": price,
                "market_value": round_currency(holding_value(holding, prices)),
            })

        stocks = stock_value(state.holdings, prices)
        total = portfolio_value(state.holdings, prices, state.buying_power)
        return {
            "holdings": rows,
            "prices": {s: prices[s] for s in state.symbols if s in prices},
            "buying_power": state.buying_power,
            "stock_value": round_currency(stocks) if is_recordable(stocks) else 0.0,
            "total_value": round_currency(total) if is_recordable(total) else 0.0,
            "allocation": [
                {"name": s.name, "value": s.value, "percent": s.percent}
                for s in allocation(stocks, state.buying_power)
            ],
            **self.status(),
        }
