from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from portfolio_engine.domain.models import PriceLogEntry


class PriceLogResponse(BaseModel):
    id: int
    portfolio_id: int
    date: datetime
    date_only: date
    portfolio_value: float
    cash_remaining: float
    update_count: int
    used_closing_prices: bool
    benchmark_value: Optional[float]
    data_verified: bool
    data_quality_issues: List[str]

    @classmethod
    def from_domain(cls, e: PriceLogEntry) -> "PriceLogResponse":
        return cls(
            id=e.id,
            portfolio_id=e.portfolio_id,
            date=e.date,
            date_only=e.date_only,
            portfolio_value=float(e.portfolio_value),
            cash_remaining=float(e.cash_remaining),
            update_count=e.update_count,
            used_closing_prices=e.used_closing_prices,
            benchmark_value=float(e.benchmark_value) if e.benchmark_value is not None else None,
            data_verified=e.data_verified,
            data_quality_issues=list(e.data_quality_issues),
        )


class PriceLogListResponse(BaseModel):
    total: int
    limit: int
    offset: int
    items: List[PriceLogResponse]


class ValuationResult(BaseModel):
    portfolio: int
    status: str
    value: Optional[float] = None
    error: Optional[str] = None
    portfolio_name: Optional[str] = None
    cash: Optional[float] = None
    action: Optional[str] = None
    value_change: Optional[float] = None
    update_count: Optional[int] = None
    date_only: Optional[str] = None
    used_closing_prices: Optional[bool] = None
    data_verified: Optional[bool] = None
    data_quality_issues: Optional[List[str]] = None
    price_sources: Optional[Dict[str, int]] = None


class ValuationRunRequest(BaseModel):
    use_closing_prices: bool = False


class ValuationRunResponse(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[ValuationResult]


class DedupResponse(BaseModel):
    duplicates_found: int
    duplicates_removed: int
    errors: List[dict]
    remaining_duplicate_groups: int


class IntegrityResponse(BaseModel):
    total_logs: int
    duplicate_groups: int
    healthy: bool


class QuoteUpdate(BaseModel):
    symbol: str = Field(min_length=1, max_length=50)
    current_price: Decimal = Field(gt=0)
    closing_price: Optional[Decimal] = Field(default=None, gt=0)


class QuoteUpdateRequest(BaseModel):
    quotes: List[QuoteUpdate]


class QuoteResponse(BaseModel):
    symbol: str
    current_price: float
    closing_price: Optional[float]
