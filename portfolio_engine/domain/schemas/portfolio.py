from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from portfolio_engine.domain.models import (
    AllocationResult,
    ClientTotals,
    Holding,
    HoldingInput,
    Portfolio,
    PortfolioSummary,
    PurchaseResult,
    SaleResult,
    SaleType,
    StockCapType,
    TamperReport,
    WeightValidation,
)


# ======================
# Inbound (allocation inputs only; derived fields are dropped)
# ======================

class HoldingInputSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(min_length=1, max_length=50)
    weight: Decimal = Field(gt=0, le=100)
    buy_price: Decimal = Field(gt=0)
    sector: str = ""
    stock_cap_type: Optional[StockCapType] = None

    def to_domain(self) -> HoldingInput:
        return HoldingInput(
            symbol=self.symbol,
            weight=self.weight,
            buy_price=self.buy_price,
            sector=self.sector,
            stock_cap_type=self.stock_cap_type,
        )


class ClientTotalsSchema(BaseModel):
    cash_balance: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    quantities: Dict[str, int] = Field(default_factory=dict)

    def to_domain(self) -> ClientTotals:
        return ClientTotals(
            cash_balance=self.cash_balance,
            current_value=self.current_value,
            quantities=tuple(self.quantities.items()),
        )


class PortfolioMetadataSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    description: Optional[str] = None
    category: Optional[str] = None
    expiry_date: Optional[datetime] = None
    compare_with: Optional[str] = None
    time_horizon: Optional[str] = None
    rebalancing: Optional[str] = None
    index_name: Optional[str] = None
    details: Optional[str] = None
    monthly_contribution: Optional[Decimal] = Field(default=None, ge=0)
    last_rebalance_date: Optional[date] = None
    next_rebalance_date: Optional[date] = None


class PortfolioCreateRequest(PortfolioMetadataSchema):
    name: str = Field(min_length=1, max_length=200)
    min_investment: Decimal = Field(ge=100)
    duration_months: int = Field(ge=1)
    holdings: List[HoldingInputSchema] = Field(default_factory=list)
    client_totals: Optional[ClientTotalsSchema] = None


class PortfolioUpdateRequest(PortfolioMetadataSchema):
    action: Literal["update", "add", "delete", "replace"] = "update"
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    min_investment: Optional[Decimal] = None
    holdings: Optional[List[HoldingInputSchema]] = None
    remove_symbols: List[str] = Field(default_factory=list)
    client_totals: Optional[ClientTotalsSchema] = None
    expected_version: Optional[int] = None


class BuyRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(min_length=1, max_length=50)
    buy_price: Decimal = Field(gt=0)
    quantity: int = Field(ge=0)
    sector: str = ""
    weight: Optional[Decimal] = Field(default=None, gt=0, le=100)
    stock_cap_type: Optional[StockCapType] = None
    expected_version: Optional[int] = None


class SellRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(min_length=1, max_length=50)
    quantity: Optional[int] = Field(default=None, gt=0)
    sale_type: SaleType = SaleType.PARTIAL
    market_price: Optional[Decimal] = Field(default=None, gt=0)
    expected_version: Optional[int] = None


# ======================
# Outbound
# ======================

class PriceHistoryEntryResponse(BaseModel):
    date: datetime
    price: float
    quantity: int
    action: str


class HoldingResponse(BaseModel):
    symbol: str
    sector: str
    stock_cap_type: Optional[str]
    status: str
    quantity: int
    weight: float
    buy_price: float
    original_buy_price: float
    current_price: Optional[float]
    investment_value_at_buy: float
    investment_value_at_market: float
    unrealized_pnl: float
    realized_pnl: float
    last_updated: Optional[datetime]
    price_history: List[PriceHistoryEntryResponse]

    @classmethod
    def from_domain(cls, h: Holding) -> "HoldingResponse":
        return cls(
            symbol=h.symbol,
            sector=h.sector,
            stock_cap_type=h.stock_cap_type.value if h.stock_cap_type else None,
            status=h.status.value,
            quantity=h.quantity,
            weight=float(h.weight),
            buy_price=float(h.buy_price),
            original_buy_price=float(h.original_buy_price),
            current_price=float(h.current_price) if h.current_price is not None else None,
            investment_value_at_buy=float(h.investment_value_at_buy),
            investment_value_at_market=float(h.investment_value_at_market),
            unrealized_pnl=float(h.unrealized_pnl),
            realized_pnl=float(h.realized_pnl),
            last_updated=h.last_updated,
            price_history=[
                PriceHistoryEntryResponse(
                    date=e.date, price=float(e.price), quantity=e.quantity, action=e.action.value
                )
                for e in h.price_history
            ],
        )


class PortfolioResponse(BaseModel):
    id: int
    name: str
    description: str
    category: str
    min_investment: float
    cash_balance: float
    current_value: Optional[float]
    holdings_value: float
    duration_months: int
    expiry_date: Optional[datetime]
    compare_with: Optional[str]
    time_horizon: Optional[str]
    rebalancing: Optional[str]
    index_name: Optional[str]
    details: Optional[str]
    monthly_contribution: float
    last_rebalance_date: Optional[date]
    next_rebalance_date: Optional[date]
    version: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    holdings: List[HoldingResponse]

    @classmethod
    def from_domain(cls, p: Portfolio) -> "PortfolioResponse":
        return cls(
            id=p.id,
            name=p.name,
            description=p.description,
            category=p.category,
            min_investment=float(p.min_investment),
            cash_balance=float(p.cash_balance),
            current_value=float(p.current_value) if p.current_value is not None else None,
            holdings_value=float(p.holdings_value_at_buy),
            duration_months=p.duration_months,
            expiry_date=p.expiry_date,
            compare_with=p.compare_with,
            time_horizon=p.time_horizon,
            rebalancing=p.rebalancing,
            index_name=p.index_name,
            details=p.details,
            monthly_contribution=float(p.monthly_contribution),
            last_rebalance_date=p.last_rebalance_date,
            next_rebalance_date=p.next_rebalance_date,
            version=p.version,
            created_at=p.created_at,
            updated_at=p.updated_at,
            holdings=[HoldingResponse.from_domain(h) for h in p.holdings],
        )


class PortfolioListResponse(BaseModel):
    total: int
    items: List[PortfolioResponse]


class AllocationResultResponse(BaseModel):
    symbol: Optional[str] = None
    weight_percent: float
    buy_price: float
    allocated_amount: float
    quantity: int
    actual_investment_amount: float
    leftover_amount: float
    accurate_weight: float
    rounded_up: bool

    @classmethod
    def from_domain(cls, r: AllocationResult, symbol: Optional[str] = None) -> "AllocationResultResponse":
        return cls(
            symbol=symbol,
            weight_percent=float(r.weight_percent),
            buy_price=float(r.buy_price),
            allocated_amount=float(r.allocated_amount),
            quantity=r.quantity,
            actual_investment_amount=float(r.actual_investment_amount),
            leftover_amount=float(r.leftover_amount),
            accurate_weight=float(r.accurate_weight),
            rounded_up=r.rounded_up,
        )


class WeightValidationResponse(BaseModel):
    is_valid: bool
    total_weight: float
    remaining_weight: float
    max_allowed: float
    active_count: int
    sold_count: int
    errors: List[str]
    warnings: List[str]

    @classmethod
    def from_domain(cls, v: WeightValidation) -> "WeightValidationResponse":
        return cls(
            is_valid=v.is_valid,
            total_weight=float(v.total_weight),
            remaining_weight=float(v.remaining_weight),
            max_allowed=float(v.max_allowed),
            active_count=v.active_count,
            sold_count=v.sold_count,
            errors=list(v.errors),
            warnings=list(v.warnings),
        )


class TamperIssueResponse(BaseModel):
    field: str
    symbol: Optional[str]
    client_value: str
    server_value: str


class TamperReportResponse(BaseModel):
    tampered: bool
    issues: List[TamperIssueResponse]

    @classmethod
    def from_domain(cls, report: TamperReport) -> "TamperReportResponse":
        return cls(
            tampered=report.tampered,
            issues=[TamperIssueResponse(**vars(i)) for i in report.issues],
        )


class AllocationWriteResponse(BaseModel):
    portfolio: PortfolioResponse
    allocations: List[AllocationResultResponse] = Field(default_factory=list)
    weight_validation: Optional[WeightValidationResponse] = None
    tamper_report: Optional[TamperReportResponse] = None


class PurchaseResponse(BaseModel):
    symbol: str
    is_new: bool
    price_refresh_only: bool
    quantity_bought: int
    buy_price: float
    previous_buy_price: Optional[float]
    total_quantity: int
    cash_spent: float
    cash_balance: float
    status: str
    portfolio: PortfolioResponse

    @classmethod
    def from_domain(cls, r: PurchaseResult, portfolio: Portfolio) -> "PurchaseResponse":
        return cls(
            symbol=r.holding.symbol,
            is_new=r.is_new,
            price_refresh_only=r.price_refresh_only,
            quantity_bought=r.quantity_bought,
            buy_price=float(r.holding.buy_price),
            previous_buy_price=float(r.previous_buy_price) if r.previous_buy_price is not None else None,
            total_quantity=r.holding.quantity,
            cash_spent=float(r.cash_spent),
            cash_balance=float(r.cash_balance_after),
            status=r.holding.status.value,
            portfolio=PortfolioResponse.from_domain(portfolio),
        )


class SaleResponse(BaseModel):
    symbol: str
    quantity_sold: int
    sale_price: float
    sale_value: float
    cost_basis: float
    profit_loss: float
    profit_loss_percent: float
    is_complete_sale: bool
    remaining_quantity: int
    cash_balance: float
    realized_pnl: float
    status: str
    portfolio: PortfolioResponse

    @classmethod
    def from_domain(cls, r: SaleResult, portfolio: Portfolio) -> "SaleResponse":
        return cls(
            symbol=r.symbol,
            quantity_sold=r.quantity_sold,
            sale_price=float(r.sale_price),
            sale_value=float(r.sale_value),
            cost_basis=float(r.cost_basis),
            profit_loss=float(r.profit_loss),
            profit_loss_percent=float(r.profit_loss_percent),
            is_complete_sale=r.is_complete_sale,
            remaining_quantity=r.remaining_quantity,
            cash_balance=float(r.cash_balance_after),
            realized_pnl=float(r.holding.realized_pnl),
            status=r.holding.status.value,
            portfolio=PortfolioResponse.from_domain(portfolio),
        )


class MinInvestmentValidationResponse(BaseModel):
    is_valid: bool
    min_investment: float
    realized_pnl: float
    effective_min_investment: float
    total_cost: float
    cash_balance: float
    errors: List[str]


class PortfolioSummaryResponse(BaseModel):
    portfolio_id: int
    holdings_value_at_buy: float
    holdings_value_at_market: float
    cash_balance: float
    total_value_at_buy: float
    total_value_at_market: float
    realized_pnl: float
    unrealized_pnl: float
    total_pnl: float
    total_pnl_percent: float
    max_purchase_amount: float
    active_holdings: int
    sold_holdings: int
    prices_missing: List[str]
    weight_validation: WeightValidationResponse
    min_investment_validation: MinInvestmentValidationResponse

    @classmethod
    def from_domain(cls, portfolio_id: int, s: PortfolioSummary, prices_missing: List[str]) -> "PortfolioSummaryResponse":
        m = s.min_investment_validation
        return cls(
            portfolio_id=portfolio_id,
            holdings_value_at_buy=float(s.holdings_value_at_buy),
            holdings_value_at_market=float(s.holdings_value_at_market),
            cash_balance=float(s.cash_balance),
            total_value_at_buy=float(s.total_value_at_buy),
            total_value_at_market=float(s.total_value_at_market),
            realized_pnl=float(s.realized_pnl),
            unrealized_pnl=float(s.unrealized_pnl),
            total_pnl=float(s.total_pnl),
            total_pnl_percent=float(s.total_pnl_percent),
            max_purchase_amount=float(s.max_purchase_amount),
            active_holdings=s.active_holdings,
            sold_holdings=s.sold_holdings,
            prices_missing=prices_missing,
            weight_validation=WeightValidationResponse.from_domain(s.weight_validation),
            min_investment_validation=MinInvestmentValidationResponse(
                is_valid=m.is_valid,
                min_investment=float(m.min_investment),
                realized_pnl=float(m.realized_pnl),
                effective_min_investment=float(m.effective_min_investment),
                total_cost=float(m.total_cost),
                cash_balance=float(m.cash_balance),
                errors=list(m.errors),
            ),
        )


class HistoryPointResponse(BaseModel):
    date: str
    value: float
    cash: float
    change: Optional[float] = None
    change_percent: Optional[float] = None
    gain: Optional[float] = None
    gain_percent: Optional[float] = None


class HistoryResponse(BaseModel):
    portfolio_id: int
    period: str
    data_points: int
    baseline_value: Optional[float]
    baseline_date: Optional[str]
    data: List[HistoryPointResponse]


class PerformanceResponse(BaseModel):
    portfolio_id: int
    age_days: int
    current_value: float
    data_points: int
    one_month_gain: float
    one_year_gain: float
    cagr: float
