"""
HTTP price source.

Expects ``GET {base_url}/quotes/{symbol}`` to answer with
``{"current_price": ..., "closing_price": ...}``; 404 means no quote.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from portfolio_engine.domain.exceptions import PriceUnavailableError
from portfolio_engine.infrastructure.market_data.types import PriceQuote

logger = logging.getLogger(__name__)


class HttpPriceSource:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        """
        Raises:
            PriceUnavailableError: network failure or unexpected response,
                retryable by the caller
        """
        url = f"{self.base_url}/quotes/{symbol.upper()}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            raise PriceUnavailableError(symbol, f"request failed: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.debug(f"Price API {response.status_code}: {response.text}")
            raise PriceUnavailableError(symbol, f"HTTP {response.status_code}")

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
            current = _decimal_or_none(data.get("current_price"))
            closing = _decimal_or_none(data.get("closing_price"))
        except (InvalidOperation, ValueError, TypeError) as exc:
            # JSONDecodeError is a ValueError
            raise PriceUnavailableError(symbol, f"malformed quote: {exc}") from exc

        if current is None or current <= 0:
            return None
        return PriceQuote(symbol=symbol.upper(), current_price=current, closing_price=closing)


def _decimal_or_none(value) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))
