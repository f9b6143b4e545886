"""
Transaction API Routes - wallet regime

RULES (LOCKED):
❌ Cash is never re-derived from min_investment here
✅ Buy debits cash, sell credits the full sale value
"""

import logging

from fastapi import APIRouter, Depends

from portfolio_engine.api.deps import get_portfolio_service
from portfolio_engine.api.errors import to_http_exception
from portfolio_engine.domain.exceptions import PortfolioEngineError
from portfolio_engine.domain.schemas.portfolio import (
    BuyRequest,
    PurchaseResponse,
    SaleResponse,
    SellRequest,
)
from portfolio_engine.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{portfolio_id}/buy", response_model=PurchaseResponse)
async def buy(
    portfolio_id: int,
    request: BuyRequest,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Buy shares; quantity 0 on an active holding only refreshes its price"""
    try:
        portfolio, outcome = await service.buy(
            portfolio_id,
            symbol=request.symbol,
            buy_price=request.buy_price,
            quantity=request.quantity,
            sector=request.sector,
            weight=request.weight,
            stock_cap_type=request.stock_cap_type,
            expected_version=request.expected_version,
        )
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e

    logger.info(
        f"💰 BUY {outcome.purchase.holding.symbol} x{outcome.purchase.quantity_bought} "
        f"in portfolio {portfolio_id}, cash now ₹{portfolio.cash_balance:,.2f}"
    )
    return PurchaseResponse.from_domain(outcome.purchase, portfolio)


@router.post("/{portfolio_id}/sell", response_model=SaleResponse)
async def sell(
    portfolio_id: int,
    request: SellRequest,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Sell at the market quote; market_price is only a fallback"""
    try:
        portfolio, outcome = await service.sell(
            portfolio_id,
            symbol=request.symbol,
            quantity=request.quantity,
            sale_type=request.sale_type,
            market_price=request.market_price,
            expected_version=request.expected_version,
        )
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e

    sale = outcome.sale
    logger.info(
        f"💸 SELL {sale.symbol} x{sale.quantity_sold} @ ₹{sale.sale_price} "
        f"(P&L ₹{sale.profit_loss}) in portfolio {portfolio_id}"
    )
    return SaleResponse.from_domain(sale, portfolio)
