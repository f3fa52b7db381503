"""
Database Configuration
SQLAlchemy async setup (PostgreSQL via asyncpg, SQLite via aiosqlite)
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from typing import Optional

from app.config import settings


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def normalize_async_url(url: str) -> str:
    """Convert postgres:// URLs to postgresql+asyncpg://"""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    url = normalize_async_url(url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, future=True)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=3600
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_engine() -> AsyncEngine:
    """Engine for settings.DATABASE_URL, created on first use."""
    global _engine, _session_factory
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
        _session_factory = build_session_factory(_engine)
    return _engine


def get_session_factory() -> async_sessionmaker:
    get_engine()
    return _session_factory


async def init_db(engine: Optional[AsyncEngine] = None):
    """Initialize database (create tables)"""
    if not settings.AUTO_CREATE_TABLES and engine is None:
        return
    engine = engine or get_engine()
    async with engine.begin() as conn:
        # Import all models here to ensure they're registered
        from app.infrastructure.db import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections"""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
