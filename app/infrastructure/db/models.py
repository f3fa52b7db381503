"""
Database Models (SQLAlchemy ORM)
Holdings and per-user settings, keyed by owner
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from app.infrastructure.db.database import Base


class HoldingModel(Base):
    """One equity position owned by a user"""
    __tablename__ = "portfolios"
    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_portfolios_user_symbol"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    symbol = Column(String(32), nullable=False)
    shares = Column(Numeric(18, 6), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class UserSettingsModel(Base):
    """Per-user cash balance"""
    __tablename__ = "user_settings"

    user_id = Column(String(64), primary_key=True)
    buying_power = Column(Numeric(18, 2), nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
