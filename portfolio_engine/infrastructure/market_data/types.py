"""
Price source protocol for type hints.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol


@dataclass(frozen=True)
class PriceQuote:
    symbol: str
    current_price: Decimal
    closing_price: Optional[Decimal] = None


class PriceSource(Protocol):
    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        """Quote for a symbol, or None when the source has no data."""
        ...
