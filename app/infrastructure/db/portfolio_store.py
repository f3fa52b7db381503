"""
Remote portfolio store.

Each method is one remote call: it runs in its own session and transaction
and either commits or raises StoreError. Nothing is batched across calls, so
a sequence of calls (e.g. an import) is not atomic. An update or delete that
matches no row is a failure, not a confirmation.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.domain.exceptions import StoreError
from app.domain.models import Holding
from app.infrastructure.db.repositories.holding_repository import HoldingRepository
from app.infrastructure.db.repositories.user_settings_repository import UserSettingsRepository

logger = logging.getLogger(__name__)


class PortfolioStore(Protocol):
    async def select_holdings(self, owner: str) -> List[Holding]:
        ...

    async def insert_holding(self, owner: str, symbol: str, shares: float) -> Holding:
        ...

    async def insert_holdings(self, owner: str, rows: Iterable[Tuple[str, float]]) -> int:
        ...

    async def update_holding(self, owner: str, symbol: str, shares: float) -> None:
        ...

    async def delete_holding(self, owner: str, symbol: str) -> None:
        ...

    async def delete_all_holdings(self, owner: str) -> None:
        ...

    async def select_buying_power(self, owner: str) -> Optional[float]:
        ...

    async def upsert_buying_power(self, owner: str, buying_power: float) -> None:
        ...


class SqlPortfolioStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def _run(self, operation: str, fn):
        try:
            async with self._session_factory() as session:
                try:
                    result = await fn(session)
                    await session.commit()
                    return result
                except Exception:
                    await session.rollback()
                    raise
        except SQLAlchemyError as exc:
            logger.error("Store %s failed: %s", operation, exc)
            raise StoreError(f"{operation} failed") from exc

    async def select_holdings(self, owner: str) -> List[Holding]:
        return await self._run(
            "select_holdings",
            lambda s: HoldingRepository(s).list_for_owner(owner),
        )

    async def insert_holding(self, owner: str, symbol: str, shares: float) -> Holding:
        return await self._run(
            "insert_holding",
            lambda s: HoldingRepository(s).insert(owner, symbol, shares),
        )

    async def insert_holdings(self, owner: str, rows: Iterable[Tuple[str, float]]) -> int:
        rows = list(rows)
        return await self._run(
            "insert_holdings",
            lambda s: HoldingRepository(s).insert_many(owner, rows),
        )

    async def update_holding(self, owner: str, symbol: str, shares: float) -> None:
        updated = await self._run(
            "update_holding",
            lambda s: HoldingRepository(s).update_shares(owner, symbol, shares),
        )
        if not updated:
            logger.error("Store update_holding matched no row for %s/%s", owner, symbol)
            raise StoreError("update_holding failed: no such holding")

    async def delete_holding(self, owner: str, symbol: str) -> None:
        deleted = await self._run(
            "delete_holding",
            lambda s: HoldingRepository(s).delete_one(owner, symbol),
        )
        if not deleted:
            logger.error("Store delete_holding matched no row for %s/%s", owner, symbol)
            raise StoreError("delete_holding failed: no such holding")

    async def delete_all_holdings(self, owner: str) -> None:
        await self._run(
            "delete_all_holdings",
            lambda s: HoldingRepository(s).delete_all(owner),
        )

    async def select_buying_power(self, owner: str) -> Optional[float]:
        return await self._run(
            "select_buying_power",
            lambda s: UserSettingsRepository(s).get_buying_power(owner),
        )

    async def upsert_buying_power(self, owner: str, buying_power: float) -> None:
        await self._run(
            "upsert_buying_power",
            lambda s: UserSettingsRepository(s).upsert_buying_power(owner, buying_power),
        )
