"""
Market Data API Routes
Feed and inspect the in-memory quote store
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from portfolio_engine.api.deps import get_quote_store
from portfolio_engine.domain.schemas.price_log import QuoteResponse, QuoteUpdateRequest
from portfolio_engine.infrastructure.market_data.quote_store import QuoteStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/quotes")
async def put_quotes(request: QuoteUpdateRequest, store: QuoteStore = Depends(get_quote_store)):
    for quote in request.quotes:
        store.ingest(quote.symbol, quote.current_price, quote.closing_price)
    logger.info(f"📈 Ingested {len(request.quotes)} quotes")
    return {"updated": len(request.quotes)}


@router.get("/quotes")
async def quote_status(store: QuoteStore = Depends(get_quote_store)):
    return store.get_status()


@router.get("/quotes/{symbol}", response_model=QuoteResponse)
async def get_quote(symbol: str, store: QuoteStore = Depends(get_quote_store)):
    quote = store.get_last_quote(symbol)
    if quote is None:
        raise HTTPException(status_code=404, detail=f"No quote for {symbol.upper()}")
    return QuoteResponse(
        symbol=quote.symbol,
        current_price=float(quote.current_price),
        closing_price=float(quote.closing_price) if quote.closing_price is not None else None,
    )
