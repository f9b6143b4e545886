"""
Price Log API Routes
Daily valuation rows, manual runs and maintenance
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_engine.api.deps import get_valuation_service
from portfolio_engine.api.errors import to_http_exception
from portfolio_engine.domain.exceptions import PortfolioEngineError
from portfolio_engine.domain.schemas.price_log import (
    DedupResponse,
    IntegrityResponse,
    PriceLogListResponse,
    PriceLogResponse,
    ValuationResult,
    ValuationRunRequest,
    ValuationRunResponse,
)
from portfolio_engine.infrastructure.db.database import get_db
from portfolio_engine.infrastructure.db.repositories.price_log_repository import PriceLogRepository
from portfolio_engine.services.valuation_service import DailyValuationService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=PriceLogListResponse)
async def list_price_logs(
    portfolio_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    rows, total = await PriceLogRepository(db).list(
        portfolio_id=portfolio_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return PriceLogListResponse(
        total=total,
        limit=limit,
        offset=offset,
        items=[PriceLogResponse.from_domain(r) for r in rows],
    )


@router.get("/integrity", response_model=IntegrityResponse)
async def check_integrity(valuation: DailyValuationService = Depends(get_valuation_service)):
    return IntegrityResponse(**await valuation.integrity())


@router.post("/run", response_model=ValuationRunResponse)
async def run_valuation(
    request: Optional[ValuationRunRequest] = None,
    valuation: DailyValuationService = Depends(get_valuation_service),
):
    """Value every portfolio now; one failure never blocks the others"""
    request = request or ValuationRunRequest()
    results = await valuation.log_all_portfolios(use_closing_prices=request.use_closing_prices)
    succeeded = sum(1 for r in results if r["status"] == "success")
    return ValuationRunResponse(
        total=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=[ValuationResult(**r) for r in results],
    )


@router.post("/dedup", response_model=DedupResponse)
async def deduplicate(valuation: DailyValuationService = Depends(get_valuation_service)):
    try:
        return DedupResponse(**await valuation.deduplicate())
    except PortfolioEngineError as e:
        raise to_http_exception(e) from e


@router.get("/{log_id}", response_model=PriceLogResponse)
async def get_price_log(log_id: int, db: AsyncSession = Depends(get_db)):
    entry = await PriceLogRepository(db).get(log_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Price log {log_id} not found")
    return PriceLogResponse.from_domain(entry)
