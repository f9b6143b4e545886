"""
Portfolio API Routes
Allocation-regime writes, reads, summaries and history
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from portfolio_engine.api.deps import (
    get_history_service,
    get_portfolio_service,
    get_valuation_service,
)
from portfolio_engine.api.errors import to_http_exception
from portfolio_engine.domain.exceptions import PortfolioEngineError
from portfolio_engine.domain.models import (
    AllocateCommand,
    AllocationAction,
    ApplyOutcome,
    Portfolio,
)
from portfolio_engine.domain.schemas.portfolio import (
    AllocationResultResponse,
    AllocationWriteResponse,
    HistoryResponse,
    PerformanceResponse,
    PortfolioCreateRequest,
    PortfolioListResponse,
    PortfolioResponse,
    PortfolioSummaryResponse,
    PortfolioUpdateRequest,
    TamperReportResponse,
    WeightValidationResponse,
)
from portfolio_engine.domain.schemas.price_log import ValuationResult
from portfolio_engine.services.history_service import HistoryService
from portfolio_engine.services.portfolio_service import METADATA_FIELDS, PortfolioService
from portfolio_engine.services.valuation_service import DailyValuationService

logger = logging.getLogger(__name__)
router = APIRouter()


def _write_response(portfolio: Portfolio, outcome: Optional[ApplyOutcome]) -> AllocationWriteResponse:
    if outcome is None:
        return AllocationWriteResponse(portfolio=PortfolioResponse.from_domain(portfolio))
    return AllocationWriteResponse(
        portfolio=PortfolioResponse.from_domain(portfolio),
        allocations=[
            AllocationResultResponse.from_domain(result, symbol)
            for symbol, result in outcome.allocations.items()
        ],
        weight_validation=(
            WeightValidationResponse.from_domain(outcome.weight_validation)
            if outcome.weight_validation else None
        ),
        tamper_report=(
            TamperReportResponse.from_domain(outcome.tamper_report)
            if outcome.tamper_report else None
        ),
    )


@router.post("", response_model=AllocationWriteResponse, status_code=201)
async def create_portfolio(
    request: PortfolioCreateRequest,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Create a portfolio; quantities are derived from weights and min_investment"""
    metadata = request.model_dump(include=set(METADATA_FIELDS) - {"name"}, exclude_none=True)
    try:
        draft = Portfolio(
            name=request.name,
            min_investment=request.min_investment,
            cash_balance=request.min_investment,
            duration_months=request.duration_months,
            **metadata,
        )
        command = AllocateCommand(
            action=AllocationAction.CREATE,
            holdings=tuple(h.to_domain() for h in request.holdings),
            client_totals=request.client_totals.to_domain() if request.client_totals else None,
        )
        portfolio, outcome = await service.create(draft, command)
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e
    return _write_response(portfolio, outcome)


@router.get("", response_model=PortfolioListResponse)
async def list_portfolios(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: PortfolioService = Depends(get_portfolio_service),
):
    items, total = await service.list(limit=limit, offset=offset)
    return PortfolioListResponse(
        total=total,
        items=[PortfolioResponse.from_domain(p) for p in items],
    )


@router.get("/{portfolio_id}", response_model=PortfolioResponse)
async def get_portfolio(
    portfolio_id: int,
    service: PortfolioService = Depends(get_portfolio_service),
):
    try:
        return PortfolioResponse.from_domain(await service.get(portfolio_id))
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e


@router.patch("/{portfolio_id}", response_model=AllocationWriteResponse)
async def update_portfolio(
    portfolio_id: int,
    request: PortfolioUpdateRequest,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """
    Update metadata and/or holdings

    action=update merges holdings by symbol, add appends new symbols,
    delete removes symbols, replace swaps the active set.
    Cash is re-derived from min_investment on every holdings change.
    """
    metadata = request.model_dump(include=set(METADATA_FIELDS), exclude_none=True)

    command = None
    if request.holdings is not None or request.remove_symbols or request.action != "update":
        command = AllocateCommand(
            action=AllocationAction(request.action),
            holdings=tuple(h.to_domain() for h in request.holdings or []),
            remove_symbols=tuple(request.remove_symbols),
            client_totals=request.client_totals.to_domain() if request.client_totals else None,
        )

    try:
        portfolio, outcome = await service.update(
            portfolio_id,
            metadata,
            command=command,
            min_investment=request.min_investment,
            expected_version=request.expected_version,
        )
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e
    return _write_response(portfolio, outcome)


@router.delete("/{portfolio_id}")
async def delete_portfolio(
    portfolio_id: int,
    service: PortfolioService = Depends(get_portfolio_service),
):
    try:
        removed = await service.delete(portfolio_id)
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e
    return {
        "message": f"Portfolio {portfolio_id} deleted",
        "price_logs_deleted": removed,
    }


@router.get("/{portfolio_id}/summary", response_model=PortfolioSummaryResponse)
async def get_summary(
    portfolio_id: int,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Cost basis, market value and P&L with both validations"""
    try:
        summary, missing = await service.summary(portfolio_id)
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e
    return PortfolioSummaryResponse.from_domain(portfolio_id, summary, missing)


@router.get("/{portfolio_id}/history", response_model=HistoryResponse)
async def get_history(
    portfolio_id: int,
    period: str = Query("1m"),
    service: HistoryService = Depends(get_history_service),
):
    try:
        return HistoryResponse(**await service.get_history(portfolio_id, period))
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e


@router.get("/{portfolio_id}/performance", response_model=PerformanceResponse)
async def get_performance(
    portfolio_id: int,
    service: HistoryService = Depends(get_history_service),
):
    try:
        return PerformanceResponse(**await service.get_performance(portfolio_id))
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e


@router.post("/{portfolio_id}/recalculate", response_model=ValuationResult)
async def recalculate_portfolio(
    portfolio_id: int,
    valuation: DailyValuationService = Depends(get_valuation_service),
):
    """Revalue now with live prices and upsert today's log"""
    try:
        result = await valuation.recalculate(portfolio_id)
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e
    return ValuationResult(**result)
