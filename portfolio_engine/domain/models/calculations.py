"""
Domain Models - Calculation Results
Immutable outputs of the engine components
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Tuple

from portfolio_engine.domain.models.entities import Holding


@dataclass(frozen=True)
class AllocationResult:
    """Weight % + price + capital → whole shares"""
    weight_percent: Decimal
    buy_price: Decimal
    total_investment: Decimal
    allocated_amount: Decimal
    quantity: int
    actual_investment_amount: Decimal
    leftover_amount: Decimal
    accurate_weight: Decimal
    rounded_up: bool = False


@dataclass(frozen=True)
class WeightValidation:
    is_valid: bool
    total_weight: Decimal
    remaining_weight: Decimal
    max_allowed: Decimal
    active_count: int
    sold_count: int
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CashValidation:
    is_valid: bool
    required: Decimal
    available: Decimal
    shortfall: Decimal
    message: str


@dataclass(frozen=True)
class PurchaseResult:
    holding: Holding
    is_new: bool
    price_refresh_only: bool
    quantity_bought: int
    cash_spent: Decimal
    cash_balance_after: Decimal
    previous_buy_price: Optional[Decimal] = None


@dataclass(frozen=True)
class SaleResult:
    holding: Holding
    symbol: str
    quantity_sold: int
    sale_price: Decimal
    sale_value: Decimal
    cost_basis: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    is_complete_sale: bool
    cash_balance_after: Decimal
    remaining_quantity: int


@dataclass(frozen=True)
class MinInvestmentValidation:
    is_valid: bool
    min_investment: Decimal
    realized_pnl: Decimal
    effective_min_investment: Decimal
    total_cost: Decimal
    cash_balance: Decimal
    errors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PortfolioSummary:
    holdings_value_at_buy: Decimal
    holdings_value_at_market: Decimal
    cash_balance: Decimal
    total_value_at_buy: Decimal
    total_value_at_market: Decimal
    realized_pnl: Decimal
    unrealized_pnl: Decimal
    total_pnl: Decimal
    total_pnl_percent: Decimal
    max_purchase_amount: Decimal
    active_holdings: int
    sold_holdings: int
    weight_validation: WeightValidation
    min_investment_validation: MinInvestmentValidation


@dataclass(frozen=True)
class TamperIssue:
    field: str
    symbol: Optional[str]
    client_value: str
    server_value: str


@dataclass(frozen=True)
class TamperReport:
    issues: Tuple[TamperIssue, ...] = ()

    @property
    def tampered(self) -> bool:
        return bool(self.issues)


@dataclass(frozen=True)
class ValuationBreakdown:
    """Result of valuing one portfolio against the price source"""
    portfolio_value: Decimal
    cash_balance: Decimal
    holdings_value: Decimal
    used_closing_prices: bool
    benchmark_value: Optional[Decimal] = None
    fallback_symbols: Tuple[str, ...] = ()
    price_sources: Dict[str, int] = field(default_factory=dict)

    @property
    def data_verified(self) -> bool:
        return not self.fallback_symbols


@dataclass(frozen=True)
class ApplyOutcome:
    """What a command did to the aggregate"""
    regime: str
    purchase: Optional[PurchaseResult] = None
    sale: Optional[SaleResult] = None
    allocations: Dict[str, AllocationResult] = field(default_factory=dict)
    weight_validation: Optional[WeightValidation] = None
    tamper_report: Optional[TamperReport] = None
