"""
Bounded-retry wrapper around a price source.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from portfolio_engine.domain.exceptions import PriceUnavailableError
from portfolio_engine.infrastructure.market_data.types import PriceQuote, PriceSource

logger = logging.getLogger(__name__)


class RetryingPriceSource:
    """
    Retries PriceUnavailableError up to ``retries`` extra times with
    exponential backoff, then re-raises. "Not found" (None) is not retried.
    """

    def __init__(self, source: PriceSource, retries: int = 2, backoff_seconds: float = 0.5):
        self.source = source
        self.retries = max(0, retries)
        self.backoff_seconds = backoff_seconds

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        last_exc: Optional[PriceUnavailableError] = None
        for attempt in range(self.retries + 1):
            try:
                return await self.source.get_price(symbol)
            except PriceUnavailableError as exc:
                last_exc = exc
                if attempt < self.retries:
                    delay = self.backoff_seconds * (2 ** attempt)
                    logger.debug(f"Price fetch {symbol} failed (attempt {attempt + 1}), retrying in {delay}s")
                    await asyncio.sleep(delay)
        logger.warning(f"⚠️  Price fetch {symbol} exhausted {self.retries + 1} attempts: {last_exc}")
        raise last_exc
