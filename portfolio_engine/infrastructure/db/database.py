"""
Database Configuration
Async engine and sessions for the portfolio store (PostgreSQL in production, SQLite in tests)
"""

import os
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from typing import AsyncGenerator, Optional

from portfolio_engine.config import settings


class Base(DeclarativeBase):
    """Declarative base shared by portfolio, holding and price_log tables"""


def to_async_url(url: str) -> str:
    """postgres:// and postgresql:// → postgresql+asyncpg://; other URLs untouched"""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = to_async_url(settings.DATABASE_URL)

# Alembic runs with a sync driver and must not build the async engine
ALEMBIC_MODE = os.getenv("ALEMBIC_MODE") == "1" or os.getenv("ALEMBIC_CONTEXT") == "1"


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.DEBUG}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=3600)
    return kwargs


engine = None
async_session_factory: Optional[async_sessionmaker] = None

if not ALEMBIC_MODE:
    engine = create_async_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))
    async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session: committed when the route returns, rolled back on any error.

    A rolled-back aggregate write leaves no partial holdings, ledger or cash changes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create tables when AUTO_CREATE_TABLES is set; otherwise migrations own the schema"""
    if not settings.AUTO_CREATE_TABLES:
        return
    async with engine.begin() as conn:
        from portfolio_engine.infrastructure.db import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    if engine is not None:
        await engine.dispose()
