"""
Portfolio Repository
Load and persist the portfolio aggregate (portfolio + holdings + ledger)
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError
from decimal import Decimal
from typing import Optional, List

from portfolio_engine.domain.exceptions import ConcurrentModificationError, ValidationError
from portfolio_engine.domain.models import (
    Holding,
    HoldingStatus,
    Portfolio,
    PriceHistoryAction,
    PriceHistoryEntry,
    StockCapType,
)
from portfolio_engine.infrastructure.db.models import (
    HoldingModel,
    HoldingPriceHistoryModel,
    HoldingStatusEnum,
    PortfolioModel,
    PriceHistoryActionEnum,
)
from portfolio_engine.utils.time import now_ist_naive


class PortfolioRepository:
    """Repository for the Portfolio aggregate"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def get(self, portfolio_id: int) -> Optional[Portfolio]:
        model = await self._get_model(portfolio_id)
        return self._to_domain(model) if model else None

    async def get_by_name(self, name: str) -> Optional[Portfolio]:
        result = await self.session.execute(
            select(PortfolioModel).where(PortfolioModel.name == name).execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list(self, limit: int = 100, offset: int = 0) -> List[Portfolio]:
        result = await self.session.execute(
            select(PortfolioModel)
            .order_by(PortfolioModel.id)
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(PortfolioModel.id)))
        return int(result.scalar() or 0)

    async def list_ids(self) -> List[int]:
        result = await self.session.execute(select(PortfolioModel.id).order_by(PortfolioModel.id))
        return [row[0] for row in result.all()]

    async def add(self, portfolio: Portfolio) -> Portfolio:
        """
        Insert a new portfolio with its holdings

        Returns:
            The stored portfolio with ids and version assigned
        """
        model = PortfolioModel(created_at=portfolio.created_at or now_ist_naive())
        self._apply_fields(model, portfolio)
        model.holdings = [self._new_holding_model(h) for h in portfolio.holdings]
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ValidationError(f"Portfolio name '{portfolio.name}' already exists", field="name") from e
        return self._to_domain(model)

    async def save(self, portfolio: Portfolio) -> Portfolio:
        """
        Persist a mutated aggregate

        The row version must match the version the aggregate was loaded with;
        the UPDATE itself is guarded by the ORM version counter.

        Raises:
            ConcurrentModificationError: another writer committed first
        """
        model = await self._get_model(portfolio.id)
        if model is None:
            raise ConcurrentModificationError(portfolio.id)
        if model.version != portfolio.version:
            raise ConcurrentModificationError(portfolio.id, portfolio.version, model.version)

        self._apply_fields(model, portfolio)
        self._sync_holdings(model, portfolio.holdings)
        model.updated_at = now_ist_naive()
        flag_modified(model, "updated_at")

        try:
            await self.session.flush()
        except StaleDataError as e:
            raise ConcurrentModificationError(portfolio.id, portfolio.version) from e
        except IntegrityError as e:
            raise ValidationError(f"Portfolio name '{portfolio.name}' already exists", field="name") from e
        return self._to_domain(model)

    async def delete(self, portfolio_id: int) -> bool:
        model = await self._get_model(portfolio_id)
        if model is None:
            return False
        await self.session.delete(model)
        await self.session.flush()
        return True

    async def update_current_value(self, portfolio_id: int, value: Decimal) -> None:
        """Cache write; bypasses the ORM version counter."""
        await self.session.execute(
            update(PortfolioModel)
            .where(PortfolioModel.id == portfolio_id)
            .values(current_value=value)
            .execution_options(synchronize_session=False)
        )

    async def _get_model(self, portfolio_id: int) -> Optional[PortfolioModel]:
        result = await self.session.execute(
            select(PortfolioModel)
            .where(PortfolioModel.id == portfolio_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _apply_fields(model: PortfolioModel, portfolio: Portfolio) -> None:
        model.name = portfolio.name
        model.description = portfolio.description
        model.category = portfolio.category
        model.min_investment = portfolio.min_investment
        model.cash_balance = portfolio.cash_balance
        model.current_value = portfolio.current_value
        model.monthly_contribution = portfolio.monthly_contribution
        model.duration_months = portfolio.duration_months
        model.expiry_date = portfolio.expiry_date
        model.compare_with = portfolio.compare_with
        model.time_horizon = portfolio.time_horizon
        model.rebalancing = portfolio.rebalancing
        model.index_name = portfolio.index_name
        model.details = portfolio.details
        model.last_rebalance_date = portfolio.last_rebalance_date
        model.next_rebalance_date = portfolio.next_rebalance_date

    def _sync_holdings(self, model: PortfolioModel, holdings) -> None:
        """Update rows by symbol, add new ones, drop removed ones. Ledger is append-only."""
        by_symbol = {h.symbol: h for h in model.holdings}
        keep = []
        for holding in holdings:
            row = by_symbol.get(holding.symbol)
            if row is None:
                keep.append(self._new_holding_model(holding))
                continue
            self._apply_holding_fields(row, holding)
            for entry in holding.price_history[len(row.price_history):]:
                row.price_history.append(self._history_model(entry))
            keep.append(row)
        model.holdings = keep

    def _new_holding_model(self, holding: Holding) -> HoldingModel:
        row = HoldingModel(created_at=now_ist_naive())
        self._apply_holding_fields(row, holding)
        row.price_history = [self._history_model(e) for e in holding.price_history]
        return row

    @staticmethod
    def _apply_holding_fields(row: HoldingModel, holding: Holding) -> None:
        row.symbol = holding.symbol
        row.sector = holding.sector
        row.stock_cap_type = holding.stock_cap_type.value if holding.stock_cap_type else None
        row.buy_price = holding.buy_price
        row.original_buy_price = holding.original_buy_price
        row.current_price = holding.current_price
        row.quantity = holding.quantity
        row.weight = holding.weight
        row.realized_pnl = holding.realized_pnl
        row.status = HoldingStatusEnum(holding.status.value)
        row.last_updated = holding.last_updated

    @staticmethod
    def _history_model(entry: PriceHistoryEntry) -> HoldingPriceHistoryModel:
        return HoldingPriceHistoryModel(
            date=entry.date,
            price=entry.price,
            quantity=entry.quantity,
            action=PriceHistoryActionEnum(entry.action.value),
        )

    @staticmethod
    def _to_domain(model: PortfolioModel) -> Portfolio:
        holdings = tuple(
            Holding(
                id=row.id,
                symbol=row.symbol,
                sector=row.sector or "",
                buy_price=Decimal(str(row.buy_price)),
                original_buy_price=Decimal(str(row.original_buy_price)),
                quantity=int(row.quantity),
                weight=Decimal(str(row.weight)),
                status=HoldingStatus(row.status.value),
                realized_pnl=Decimal(str(row.realized_pnl or 0)),
                current_price=Decimal(str(row.current_price)) if row.current_price is not None else None,
                stock_cap_type=StockCapType(row.stock_cap_type) if row.stock_cap_type else None,
                price_history=tuple(
                    PriceHistoryEntry(
                        date=e.date,
                        price=Decimal(str(e.price)),
                        quantity=int(e.quantity),
                        action=PriceHistoryAction(e.action.value),
                    )
                    for e in row.price_history
                ),
                last_updated=row.last_updated,
            )
            for row in model.holdings
        )
        return Portfolio(
            id=model.id,
            name=model.name,
            description=model.description or "",
            category=model.category,
            min_investment=Decimal(str(model.min_investment)),
            cash_balance=Decimal(str(model.cash_balance)),
            current_value=Decimal(str(model.current_value)) if model.current_value is not None else None,
            monthly_contribution=Decimal(str(model.monthly_contribution or 0)),
            duration_months=model.duration_months,
            expiry_date=model.expiry_date,
            compare_with=model.compare_with,
            time_horizon=model.time_horizon,
            rebalancing=model.rebalancing,
            index_name=model.index_name,
            details=model.details,
            last_rebalance_date=model.last_rebalance_date,
            next_rebalance_date=model.next_rebalance_date,
            holdings=holdings,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
