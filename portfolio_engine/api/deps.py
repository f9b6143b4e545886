"""
Shared route dependencies (engine components live on app.state)
"""

from decimal import Decimal

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_engine.config import settings
from portfolio_engine.domain.services.allocation_engine import InvestmentAllocator
from portfolio_engine.domain.services.portfolio_aggregate import PortfolioAggregate
from portfolio_engine.domain.services.weight_validator import WeightValidator
from portfolio_engine.infrastructure.db.database import get_db
from portfolio_engine.infrastructure.market_data.provider_factory import unwrap_quote_store
from portfolio_engine.infrastructure.market_data.quote_store import QuoteStore
from portfolio_engine.infrastructure.market_data.types import PriceSource
from portfolio_engine.services.history_service import HistoryService
from portfolio_engine.services.portfolio_service import PortfolioService
from portfolio_engine.services.valuation_service import DailyValuationService


def build_aggregate() -> PortfolioAggregate:
    max_weight = Decimal(str(settings.MAX_TOTAL_WEIGHT))
    return PortfolioAggregate(
        allocator=InvestmentAllocator(
            tolerance_pct=Decimal(str(settings.ALLOCATION_TOLERANCE_PCT)),
            max_weight=max_weight,
        ),
        weight_validator=WeightValidator(max_total_weight=max_weight),
    )


def get_price_source(request: Request) -> PriceSource:
    return request.app.state.price_source


def get_aggregate(request: Request) -> PortfolioAggregate:
    aggregate = getattr(request.app.state, "aggregate", None)
    if aggregate is None:
        aggregate = build_aggregate()
        request.app.state.aggregate = aggregate
    return aggregate


def get_portfolio_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> PortfolioService:
    return PortfolioService(db, get_aggregate(request), get_price_source(request))


def get_history_service(db: AsyncSession = Depends(get_db)) -> HistoryService:
    return HistoryService(db)


def get_valuation_service(request: Request) -> DailyValuationService:
    service = getattr(request.app.state, "valuation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Valuation service not initialized")
    return service


def get_quote_store(request: Request) -> QuoteStore:
    store = unwrap_quote_store(get_price_source(request))
    if store is None:
        raise HTTPException(status_code=409, detail="Quotes can only be managed with PRICE_SOURCE=memory")
    return store
