"""
Portfolio Service
Load aggregate → apply command → persist, one portfolio per call
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_engine.domain.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    PriceUnavailableError,
    ValidationError,
)
from portfolio_engine.domain.models import (
    AllocateCommand,
    AllocationAction,
    ApplyOutcome,
    Portfolio,
    PortfolioSummary,
    SaleType,
    TransactCommand,
    TransactionAction,
)
from portfolio_engine.domain.services.portfolio_aggregate import PortfolioAggregate
from portfolio_engine.domain.services.portfolio_summary import PortfolioSummaryService
from portfolio_engine.infrastructure.db.repositories.portfolio_repository import PortfolioRepository
from portfolio_engine.infrastructure.db.repositories.price_log_repository import PriceLogRepository
from portfolio_engine.infrastructure.market_data.types import PriceSource
from portfolio_engine.utils.time import add_months, now_ist_naive

logger = logging.getLogger(__name__)

METADATA_FIELDS = (
    "name", "description", "category", "expiry_date", "compare_with",
    "time_horizon", "rebalancing", "index_name", "details",
    "monthly_contribution", "last_rebalance_date", "next_rebalance_date",
)


class PortfolioService:
    def __init__(
        self,
        session: AsyncSession,
        aggregate: PortfolioAggregate,
        price_source: Optional[PriceSource] = None,
        summary_service: Optional[PortfolioSummaryService] = None,
    ):
        self.session = session
        self.aggregate = aggregate
        self.price_source = price_source
        self.summary_service = summary_service or PortfolioSummaryService(aggregate.weight_validator)
        self.portfolios = PortfolioRepository(session)
        self.logs = PriceLogRepository(session)

    async def get(self, portfolio_id: int) -> Portfolio:
        portfolio = await self.portfolios.get(portfolio_id)
        if portfolio is None:
            raise NotFoundError(f"Portfolio {portfolio_id} not found")
        return portfolio

    async def list(self, limit: int = 100, offset: int = 0) -> Tuple[List[Portfolio], int]:
        return await self.portfolios.list(limit, offset), await self.portfolios.count()

    async def create(self, draft: Portfolio, command: AllocateCommand) -> Tuple[Portfolio, ApplyOutcome]:
        """
        Create a portfolio through the allocation regime

        Args:
            draft: Metadata and min_investment; holdings and cash are derived
            command: CREATE allocation with the initial holdings
        """
        if await self.portfolios.get_by_name(draft.name):
            raise ValidationError(f"Portfolio name '{draft.name}' already exists", field="name")

        now = now_ist_naive()
        draft = replace(
            draft,
            holdings=(),
            cash_balance=draft.min_investment,
            current_value=None,
            created_at=now,
            expiry_date=draft.expiry_date or add_months(now, draft.duration_months),
        )
        portfolio, outcome = self.aggregate.apply(draft, replace(command, action=AllocationAction.CREATE))
        stored = await self.portfolios.add(portfolio)
        logger.info(
            f"✅ Created portfolio {stored.name} (id={stored.id}): "
            f"{len(stored.holdings)} holdings, cash ₹{stored.cash_balance:,.2f}"
        )
        return stored, outcome

    async def update(
        self,
        portfolio_id: int,
        metadata: Dict[str, object],
        command: Optional[AllocateCommand] = None,
        min_investment: Optional[Decimal] = None,
        expected_version: Optional[int] = None,
    ) -> Tuple[Portfolio, Optional[ApplyOutcome]]:
        portfolio = await self._load(portfolio_id, expected_version)

        if min_investment is not None and Decimal(str(min_investment)) != portfolio.min_investment:
            raise ValidationError("Minimum investment cannot be changed after creation", field="min_investment")

        changes = {k: v for k, v in metadata.items() if k in METADATA_FIELDS and v is not None}
        if "name" in changes and changes["name"] != portfolio.name:
            if await self.portfolios.get_by_name(changes["name"]):
                raise ValidationError(f"Portfolio name '{changes['name']}' already exists", field="name")
        portfolio = replace(portfolio, **changes)

        outcome = None
        if command is not None:
            portfolio, outcome = self.aggregate.apply(portfolio, command)

        stored = await self.portfolios.save(portfolio)
        logger.info(f"✏️  Updated portfolio {stored.name} (v{stored.version})")
        return stored, outcome

    async def buy(
        self,
        portfolio_id: int,
        symbol: str,
        buy_price: Decimal,
        quantity: int,
        sector: str = "",
        weight: Optional[Decimal] = None,
        stock_cap_type=None,
        expected_version: Optional[int] = None,
    ) -> Tuple[Portfolio, ApplyOutcome]:
        portfolio = await self._load(portfolio_id, expected_version)
        command = TransactCommand(
            action=TransactionAction.BUY,
            symbol=symbol,
            quantity=quantity,
            price=buy_price,
            sector=sector,
            weight=weight,
            stock_cap_type=stock_cap_type,
        )
        updated, outcome = self.aggregate.apply(portfolio, command)
        return await self.portfolios.save(updated), outcome

    async def sell(
        self,
        portfolio_id: int,
        symbol: str,
        quantity: Optional[int],
        sale_type: SaleType = SaleType.PARTIAL,
        market_price: Optional[Decimal] = None,
        expected_version: Optional[int] = None,
    ) -> Tuple[Portfolio, ApplyOutcome]:
        portfolio = await self._load(portfolio_id, expected_version)
        price = await self._sale_price(symbol.strip().upper(), market_price)
        command = TransactCommand(
            action=TransactionAction.SELL,
            symbol=symbol,
            quantity=quantity,
            price=price,
            sale_type=sale_type,
        )
        updated, outcome = self.aggregate.apply(portfolio, command)
        return await self.portfolios.save(updated), outcome

    async def delete(self, portfolio_id: int) -> int:
        """Delete a portfolio and its price logs. Returns the number of logs removed."""
        await self.get(portfolio_id)
        removed = await self.logs.delete_for_portfolio(portfolio_id)
        await self.portfolios.delete(portfolio_id)
        logger.info(f"🗑️  Deleted portfolio {portfolio_id} and {removed} price logs")
        return removed

    async def summary(self, portfolio_id: int) -> Tuple[PortfolioSummary, List[str]]:
        portfolio = await self.get(portfolio_id)
        prices: Dict[str, Decimal] = {}
        missing: List[str] = []
        for holding in portfolio.active_holdings:
            quote = await self._quote(holding.symbol)
            if quote is None:
                missing.append(holding.symbol)
            else:
                prices[holding.symbol] = quote.current_price
        return self.summary_service.summarize(portfolio, prices), missing

    async def _load(self, portfolio_id: int, expected_version: Optional[int]) -> Portfolio:
        portfolio = await self.get(portfolio_id)
        if expected_version is not None and expected_version != portfolio.version:
            raise ConcurrentModificationError(portfolio_id, expected_version, portfolio.version)
        return portfolio

    async def _quote(self, symbol: str):
        if self.price_source is None:
            return None
        try:
            return await self.price_source.get_price(symbol)
        except PriceUnavailableError as e:
            logger.warning(f"⚠️  {e}")
            return None

    async def _sale_price(self, symbol: str, fallback: Optional[Decimal]) -> Decimal:
        quote = await self._quote(symbol)
        if quote is not None and quote.current_price:
            return quote.current_price
        if fallback is not None:
            logger.warning(f"⚠️  No market quote for {symbol}; selling at client-supplied price ₹{fallback}")
            return Decimal(str(fallback))
        raise PriceUnavailableError(symbol, "no market quote and no fallback price supplied")
