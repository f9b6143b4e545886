"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from portfolio_engine.domain.exceptions import ValidationError
from portfolio_engine.domain.models.money import ZERO, HUNDRED, money


class HoldingStatus(str, Enum):
    """Lifecycle status of a holding"""
    FRESH_BUY = "Fresh-Buy"
    HOLD = "Hold"
    ADDON_BUY = "addon-buy"
    SELL = "Sell"


class PriceHistoryAction(str, Enum):
    """Ledger action recorded on a holding"""
    ALLOCATE = "allocate"
    BUY = "buy"
    PARTIAL_SELL = "partial_sell"
    COMPLETE_SELL = "complete_sell"


class StockCapType(str, Enum):
    """Market-cap bucket of a stock"""
    SMALL_CAP = "small cap"
    MID_CAP = "mid cap"
    LARGE_CAP = "large cap"
    MICRO_CAP = "micro cap"
    MEGA_CAP = "mega cap"


class SaleType(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"


@dataclass(frozen=True)
class PriceHistoryEntry:
    """One buy/sell event in a holding's ledger - Immutable"""
    date: datetime
    price: Decimal
    quantity: int
    action: PriceHistoryAction


@dataclass(frozen=True)
class Holding:
    """One symbol's position within a portfolio - Immutable snapshot"""
    symbol: str
    sector: str
    buy_price: Decimal
    original_buy_price: Decimal
    quantity: int
    weight: Decimal
    status: HoldingStatus
    realized_pnl: Decimal = ZERO
    current_price: Optional[Decimal] = None
    stock_cap_type: Optional[StockCapType] = None
    price_history: Tuple[PriceHistoryEntry, ...] = ()
    last_updated: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        if not self.symbol:
            raise ValidationError("Holding symbol cannot be empty", field="symbol")
        if self.quantity < 0:
            raise ValidationError(f"Quantity for {self.symbol} cannot be negative", field="quantity")
        if (self.quantity == 0) != (self.status == HoldingStatus.SELL):
            raise ValidationError(
                f"Holding {self.symbol} has quantity {self.quantity} with status {self.status.value}",
                field="status",
            )
        if self.status == HoldingStatus.SELL and self.weight != ZERO:
            raise ValidationError(f"Sold holding {self.symbol} must have zero weight", field="weight")

    @property
    def is_active(self) -> bool:
        return self.status != HoldingStatus.SELL

    @property
    def investment_value_at_buy(self) -> Decimal:
        """Cost basis of the remaining quantity (minimumInvestmentValueStock)."""
        return money(self.buy_price * self.quantity)

    @property
    def market_price(self) -> Decimal:
        return self.current_price if self.current_price is not None else self.buy_price

    @property
    def investment_value_at_market(self) -> Decimal:
        return money(self.market_price * self.quantity)

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.investment_value_at_market - self.investment_value_at_buy


@dataclass(frozen=True)
class Portfolio:
    """Model portfolio aggregate state - Immutable snapshot"""
    name: str
    min_investment: Decimal
    cash_balance: Decimal
    holdings: Tuple[Holding, ...] = ()
    current_value: Optional[Decimal] = None
    description: str = ""
    category: str = "Basic"
    duration_months: int = 12
    expiry_date: Optional[datetime] = None
    compare_with: Optional[str] = None
    time_horizon: Optional[str] = None
    rebalancing: Optional[str] = None
    index_name: Optional[str] = None
    details: Optional[str] = None
    monthly_contribution: Decimal = ZERO
    last_rebalance_date: Optional[date] = None
    next_rebalance_date: Optional[date] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        if not self.name:
            raise ValidationError("Portfolio name cannot be empty", field="name")
        if self.min_investment < HUNDRED:
            raise ValidationError("Minimum investment must be at least ₹100", field="min_investment")
        if self.duration_months < 1:
            raise ValidationError("Duration must be at least 1 month", field="duration_months")
        symbols = [h.symbol for h in self.holdings]
        if len(symbols) != len(set(symbols)):
            raise ValidationError("Duplicate holding symbols in portfolio", field="holdings")

    @property
    def active_holdings(self) -> Tuple[Holding, ...]:
        return tuple(h for h in self.holdings if h.is_active)

    @property
    def sold_holdings(self) -> Tuple[Holding, ...]:
        return tuple(h for h in self.holdings if not h.is_active)

    @property
    def holdings_value_at_buy(self) -> Decimal:
        return sum((h.investment_value_at_buy for h in self.active_holdings), ZERO)

    @property
    def holdings_value_at_market(self) -> Decimal:
        return sum((h.investment_value_at_market for h in self.active_holdings), ZERO)

    @property
    def realized_pnl(self) -> Decimal:
        return sum((h.realized_pnl for h in self.holdings), ZERO)

    def find_holding(self, symbol: str) -> Optional[Holding]:
        for holding in self.holdings:
            if holding.symbol == symbol:
                return holding
        return None

    def computed_value(self) -> Decimal:
        """Cash plus active holdings at market (falls back to buy price)."""
        return money(self.cash_balance + self.holdings_value_at_market)


@dataclass(frozen=True)
class PriceLogEntry:
    """Daily valuation row - one per portfolio per calendar day"""
    portfolio_id: int
    date: datetime
    date_only: date
    portfolio_value: Decimal
    cash_remaining: Decimal
    update_count: int = 1
    used_closing_prices: bool = False
    benchmark_value: Optional[Decimal] = None
    data_verified: bool = True
    data_quality_issues: Tuple[str, ...] = field(default_factory=tuple)
    id: Optional[int] = None
