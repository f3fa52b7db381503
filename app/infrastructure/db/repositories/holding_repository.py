"""
Holding Repository
Row operations on the portfolios table, always scoped to one owner
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from decimal import Decimal
from typing import Iterable, List, Tuple

from app.infrastructure.db.models import HoldingModel
from app.domain.models import Holding


class HoldingRepository:
    """Repository for Holding"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def list_for_owner(self, user_id: str) -> List[Holding]:
        """
        Get every holding of an owner, oldest first

        Args:
            user_id: Owner identifier

        Returns:
            List of Holding domain objects
        """
        result = await self.session.execute(
            select(HoldingModel)
            .where(HoldingModel.user_id == user_id)
            .order_by(HoldingModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def insert(self, user_id: str, symbol: str, shares: float) -> Holding:
        """
        Insert one holding

        Returns:
            Holding carrying the store-assigned id
        """
        model = HoldingModel(user_id=user_id, symbol=symbol, shares=_to_numeric(shares))
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model)

    async def insert_many(self, user_id: str, rows: Iterable[Tuple[str, float]]) -> int:
        models = [
            HoldingModel(user_id=user_id, symbol=symbol, shares=_to_numeric(shares))
            for symbol, shares in rows
        ]
        self.session.add_all(models)
        await self.session.flush()
        return len(models)

    async def update_shares(self, user_id: str, symbol: str, shares: float) -> int:
        """
        Set the share count of one holding

        Returns:
            Number of rows updated
        """
        result = await self.session.execute(
            update(HoldingModel)
            .where(HoldingModel.user_id == user_id, HoldingModel.symbol == symbol)
            .values(shares=_to_numeric(shares))
        )
        return result.rowcount or 0

    async def delete_one(self, user_id: str, symbol: str) -> int:
        result = await self.session.execute(
            delete(HoldingModel)
            .where(HoldingModel.user_id == user_id, HoldingModel.symbol == symbol)
        )
        return result.rowcount or 0

    async def delete_all(self, user_id: str) -> int:
        result = await self.session.execute(
            delete(HoldingModel).where(HoldingModel.user_id == user_id)
        )
        return result.rowcount or 0

    @staticmethod
    def _to_domain(model: HoldingModel) -> Holding:
        return Holding(
            id=model.id,
            symbol=model.symbol,
            shares=float(model.shares or 0),
        )


def _to_numeric(value: float) -> Decimal:
    return Decimal(str(value))
