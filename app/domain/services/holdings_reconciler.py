"""
HOLDINGS RECONCILER

Owns one portfolio's holdings and cash balance and is the only writer of
both. Every mutation walks

    REQUESTED -> VALIDATING -> PERSISTING -> COMMITTED | ROLLED_BACK

and is persist-then-apply: local state changes only after the remote store
has confirmed the write, so a failed write leaves nothing to undo.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Tuple

from app.domain.exceptions import InvalidSymbolError, QuoteFetchError, StoreError
from app.domain.models import (
    Holding,
    MutationFailure,
    MutationKind,
    MutationOutcome,
    MutationState,
    PortfolioState,
)
from app.domain.services.normalization import canonical_symbol, normalize_amount, normalize_cash
from app.infrastructure.db.portfolio_store import PortfolioStore
from app.infrastructure.market_data.types import QuoteProvider

logger = logging.getLogger(__name__)


class HoldingsReconciler:
    def __init__(
        self,
        owner: str,
        store: PortfolioStore,
        quote_provider: Optional[QuoteProvider] = None,
    ):
        self._owner = owner
        self._store = store
        self._quotes = quote_provider
        self._holdings: Dict[str, Holding] = {}
        self._buying_power: float = 0.0
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # READS
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def lock(self) -> asyncio.Lock:
        """Held for the duration of every write to this portfolio."""
        return self._lock

    @property
    def holdings(self) -> Tuple[Holding, ...]:
        return tuple(self._holdings.values())

    @property
    def buying_power(self) -> float:
        return self._buying_power

    def get(self, symbol: str) -> Optional[Holding]:
        return self._holdings.get(canonical_symbol(symbol))

    def symbols(self) -> Tuple[str, ...]:
        return tuple(self._holdings)

    def state(self) -> PortfolioState:
        return PortfolioState(holdings=self.holdings, buying_power=self._buying_power)

    # ------------------------------------------------------------------
    # FULL RECONCILIATION
    # ------------------------------------------------------------------

    async def load(self) -> PortfolioState:
        """
        Replace local state with the store's view of this owner.

        Raises StoreError; local state is untouched when either read fails.
        """
        async with self._lock:
            return await self.load_locked()

    async def load_locked(self) -> PortfolioState:
        """load() for a caller that already holds `lock`."""
        rows = await self._store.select_holdings(self._owner)
        buying_power = await self._store.select_buying_power(self._owner)

        holdings: Dict[str, Holding] = {}
        for row in rows:
            symbol = canonical_symbol(row.symbol)
            if not symbol:
                continue
            holdings[symbol] = Holding(
                id=row.id, symbol=symbol, shares=normalize_amount(row.shares)
            )
        self._holdings = holdings
        self._buying_power = normalize_cash(buying_power)
        logger.info(
            "Loaded portfolio for %s: %d holdings, buying power %.2f",
            self._owner, len(holdings), self._buying_power,
        )
        return self.state()

    def clear(self) -> None:
        self._holdings = {}
        self._buying_power = 0.0

    # ------------------------------------------------------------------
    # MUTATIONS
    # ------------------------------------------------------------------

    async def add(self, symbol: object, shares: object, validate: bool = True) -> MutationOutcome:
        kind = MutationKind.ADD
        canonical = canonical_symbol(symbol)
        amount = normalize_amount(shares)
        self._transition(kind, canonical, MutationState.REQUESTED)

        self._transition(kind, canonical, MutationState.VALIDATING)
        if not canonical:
            return self._reject(kind, canonical, MutationFailure.INVALID_INPUT, "Enter a stock symbol.")
        if amount <= 0:
            return self._reject(kind, canonical, MutationFailure.INVALID_INPUT, "Enter shares greater than 0.")
        if validate and self._quotes is not None:
            rejection = await self._check_symbol(canonical)
            if rejection is not None:
                return rejection

        async with self._lock:
            self._transition(kind, canonical, MutationState.PERSISTING)
            existing = self._holdings.get(canonical)
            try:
                if existing is not None:
                    merged = existing.shares + amount
                    await self._store.update_holding(self._owner, canonical, merged)
                    holding = existing.with_shares(merged)
                else:
                    inserted = await self._store.insert_holding(self._owner, canonical, amount)
                    holding = Holding(id=inserted.id, symbol=canonical, shares=amount)
            except StoreError as exc:
                return self._persistence_failed(kind, canonical, exc)

            self._holdings[canonical] = holding
            return self._commit(kind, canonical, holding=holding)

    async def update(self, symbol: object, shares: object) -> MutationOutcome:
        kind = MutationKind.UPDATE
        canonical = canonical_symbol(symbol)
        amount = normalize_amount(shares)
        self._transition(kind, canonical, MutationState.REQUESTED)

        async with self._lock:
            self._transition(kind, canonical, MutationState.VALIDATING)
            existing = self._holdings.get(canonical)
            if existing is None:
                return self._reject(kind, canonical, MutationFailure.NOT_FOUND, f"{canonical or symbol} is not held")

            self._transition(kind, canonical, MutationState.PERSISTING)
            try:
                await self._store.update_holding(self._owner, canonical, amount)
            except StoreError as exc:
                return self._persistence_failed(kind, canonical, exc)

            holding = existing.with_shares(amount)
            self._holdings[canonical] = holding
            return self._commit(kind, canonical, holding=holding)

    async def remove(self, symbol: object) -> MutationOutcome:
        kind = MutationKind.REMOVE
        canonical = canonical_symbol(symbol)
        self._transition(kind, canonical, MutationState.REQUESTED)

        async with self._lock:
            self._transition(kind, canonical, MutationState.VALIDATING)
            existing = self._holdings.get(canonical)
            if existing is None:
                return self._reject(kind, canonical, MutationFailure.NOT_FOUND, f"{canonical or symbol} is not held")

            self._transition(kind, canonical, MutationState.PERSISTING)
            try:
                await self._store.delete_holding(self._owner, canonical)
            except StoreError as exc:
                return self._persistence_failed(kind, canonical, exc)

            del self._holdings[canonical]
            return self._commit(kind, canonical, holding=existing)

    async def set_buying_power(self, value: object) -> MutationOutcome:
        kind = MutationKind.BUYING_POWER
        amount = normalize_cash(value)
        self._transition(kind, None, MutationState.REQUESTED)

        async with self._lock:
            self._transition(kind, None, MutationState.VALIDATING)
            self._transition(kind, None, MutationState.PERSISTING)
            try:
                await self._store.upsert_buying_power(self._owner, amount)
            except StoreError as exc:
                return self._persistence_failed(kind, None, exc)

            self._buying_power = amount
            return self._commit(kind, None, buying_power=amount)

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------

    async def _check_symbol(self, symbol: str) -> Optional[MutationOutcome]:
        try:
            valid = await self._quotes.is_valid_symbol(symbol)
        except InvalidSymbolError:
            valid = False
        except QuoteFetchError as exc:
            logger.warning("Could not validate %s: %s", symbol, exc.reason)
            valid = False
        if valid:
            return None
        return self._reject(
            MutationKind.ADD,
            symbol,
            MutationFailure.INVALID_SYMBOL,
            f"Invalid Symbol: {symbol}. Prices unavailable.",
        )

    def _transition(self, kind: MutationKind, symbol: Optional[str], state: MutationState) -> None:
        logger.debug("%s %s [%s] -> %s", kind.value, symbol or "-", self._owner, state.value)

    def _reject(
        self,
        kind: MutationKind,
        symbol: Optional[str],
        failure: MutationFailure,
        message: str,
    ) -> MutationOutcome:
        self._transition(kind, symbol, MutationState.ROLLED_BACK)
        logger.info("Rejected %s %s: %s", kind.value, symbol or "-", message)
        return MutationOutcome(
            kind=kind,
            symbol=symbol or None,
            state=MutationState.ROLLED_BACK,
            failure=failure,
            error=message,
        )

    def _persistence_failed(
        self,
        kind: MutationKind,
        symbol: Optional[str],
        exc: StoreError,
    ) -> MutationOutcome:
        self._transition(kind, symbol, MutationState.ROLLED_BACK)
        logger.error("Failed to persist %s %s for %s: %s", kind.value, symbol or "-", self._owner, exc)
        return MutationOutcome(
            kind=kind,
            symbol=symbol,
            state=MutationState.ROLLED_BACK,
            failure=MutationFailure.PERSISTENCE,
            error=str(exc),
        )

    def _commit(
        self,
        kind: MutationKind,
        symbol: Optional[str],
        holding: Optional[Holding] = None,
        buying_power: Optional[float] = None,
    ) -> MutationOutcome:
        self._transition(kind, symbol, MutationState.COMMITTED)
        return MutationOutcome(
            kind=kind,
            symbol=symbol,
            state=MutationState.COMMITTED,
            holding=holding,
            buying_power=buying_power,
        )
