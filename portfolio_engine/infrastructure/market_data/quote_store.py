"""
In-memory quote store used as a price source.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from portfolio_engine.infrastructure.market_data.types import PriceQuote


@dataclass
class Quote:
    symbol: str
    current_price: Decimal
    closing_price: Optional[Decimal]
    ts: datetime


class QuoteStore:
    def __init__(self):
        self._last_quotes: Dict[str, Quote] = {}

    def ingest(
        self,
        symbol: str,
        current_price: Decimal,
        closing_price: Optional[Decimal] = None,
        ts: Optional[datetime] = None,
    ) -> None:
        if not symbol:
            return
        if ts is None:
            ts = datetime.now(tz=timezone.utc)
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        symbol = symbol.upper()
        previous = self._last_quotes.get(symbol)
        if closing_price is None and previous is not None:
            closing_price = previous.closing_price
        self._last_quotes[symbol] = Quote(
            symbol=symbol,
            current_price=current_price,
            closing_price=closing_price,
            ts=ts,
        )

    def get_last_quote(self, symbol: str) -> Optional[Quote]:
        return self._last_quotes.get((symbol or "").upper())

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        quote = self.get_last_quote(symbol)
        if quote is None:
            return None
        return PriceQuote(
            symbol=quote.symbol,
            current_price=quote.current_price,
            closing_price=quote.closing_price,
        )

    def get_status(self) -> Dict[str, object]:
        now = datetime.now(tz=timezone.utc)
        status = {}
        for symbol, quote in self._last_quotes.items():
            age = (now - quote.ts).total_seconds()
            status[symbol] = {
                "current_price": float(quote.current_price),
                "closing_price": float(quote.closing_price) if quote.closing_price is not None else None,
                "ts": quote.ts.isoformat(),
                "age_seconds": age,
            }
        return status
