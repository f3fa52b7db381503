"""
User Settings Repository
Cash balance per owner (upsert semantics)
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from decimal import Decimal
from typing import Optional

from app.infrastructure.db.models import UserSettingsModel


class UserSettingsRepository:
    """Repository for UserSettings"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_buying_power(self, user_id: str) -> Optional[float]:
        result = await self.session.execute(
            select(UserSettingsModel.buying_power).where(UserSettingsModel.user_id == user_id)
        )
        value = result.scalar_one_or_none()
        return float(value) if value is not None else None

    async def upsert_buying_power(self, user_id: str, buying_power: float) -> float:
        model = await self.session.get(UserSettingsModel, user_id)
        amount = Decimal(str(buying_power))
        if model is None:
            model = UserSettingsModel(user_id=user_id, buying_power=amount)
            self.session.add(model)
        else:
            model.buying_power = amount
        await self.session.flush()
        return float(model.buying_power)
