from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portfolio_engine.api.deps import build_aggregate
from portfolio_engine.api.routes import health, market_data, portfolio, price_logs, transactions
from portfolio_engine.domain.models import AllocateCommand, AllocationAction, HoldingInput, Portfolio
from portfolio_engine.domain.services.portfolio_aggregate import PortfolioAggregate
from portfolio_engine.infrastructure.db import models  # noqa: F401
from portfolio_engine.infrastructure.db.database import Base, get_db
from portfolio_engine.infrastructure.db.repositories.portfolio_repository import PortfolioRepository
from portfolio_engine.infrastructure.market_data.quote_store import QuoteStore
from portfolio_engine.services.valuation_service import DailyValuationService


FIXED_NOW = datetime(2026, 3, 10, 15, 45)


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        future=True,
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        # cleanup
        await session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            await session.execute(table.delete())
        await session.commit()


@pytest.fixture()
def quote_store() -> QuoteStore:
    return QuoteStore()


@pytest.fixture()
def valuation_service(session_factory, quote_store) -> DailyValuationService:
    return DailyValuationService(
        session_factory,
        quote_store,
        max_attempts=3,
        base_delay_seconds=0.0,
        concurrency=2,
        clock=lambda: FIXED_NOW,
        sleep=_no_sleep,
    )


@pytest.fixture()
async def app(db_session, quote_store, valuation_service) -> FastAPI:
    app = FastAPI()
    app.include_router(health.router, tags=["Health"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolios", tags=["Portfolios"])
    app.include_router(transactions.router, prefix="/api/v1/portfolios", tags=["Transactions"])
    app.include_router(price_logs.router, prefix="/api/v1/price-logs", tags=["Price Logs"])
    app.include_router(market_data.router, prefix="/api/v1/market-data", tags=["Market Data"])

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    app.state.price_source = quote_store
    app.state.aggregate = build_aggregate()
    app.state.valuation_service = valuation_service

    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def basic_portfolio_payload() -> dict:
    """Two holdings on ₹1,00,000: 50 RELIANCE @ 1000 and 40 TCS @ 1000."""
    return {
        "name": "Growth Basket",
        "min_investment": 100000,
        "duration_months": 12,
        "description": "Large caps",
        "compare_with": "NIFTYBEES",
        "holdings": [
            {"symbol": "reliance", "weight": 50, "buy_price": 1000, "sector": "Energy"},
            {"symbol": "TCS", "weight": 40, "buy_price": 1000, "sector": "IT"},
        ],
    }


@pytest.fixture()
def seed_portfolio(session_factory):
    """Factory that stores a portfolio through the allocation regime and returns it."""

    async def _seed(
        name="Seeded Basket",
        holdings=(("RELIANCE", 50, 1000, "Energy"), ("TCS", 40, 1000, "IT")),
        min_investment=100000,
        compare_with="NIFTYBEES",
    ):
        draft = Portfolio(
            name=name,
            min_investment=Decimal(str(min_investment)),
            cash_balance=Decimal(str(min_investment)),
            compare_with=compare_with,
            created_at=FIXED_NOW,
        )
        command = AllocateCommand(
            action=AllocationAction.CREATE,
            holdings=tuple(
                HoldingInput(symbol, Decimal(str(weight)), Decimal(str(price)), sector=sector)
                for symbol, weight, price, sector in holdings
            ),
        )
        portfolio, _ = PortfolioAggregate(clock=lambda: FIXED_NOW).apply(draft, command)
        async with session_factory() as session:
            stored = await PortfolioRepository(session).add(portfolio)
            await session.commit()
        return stored

    return _seed
