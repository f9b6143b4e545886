"""
Price source factory (config-driven).
"""

from __future__ import annotations

from portfolio_engine.config import Settings, settings as default_settings
from portfolio_engine.infrastructure.market_data.http_price_source import HttpPriceSource
from portfolio_engine.infrastructure.market_data.quote_store import QuoteStore
from portfolio_engine.infrastructure.market_data.retrying import RetryingPriceSource
from portfolio_engine.infrastructure.market_data.types import PriceSource


def build_price_source(settings: Settings = default_settings) -> PriceSource:
    name = (settings.PRICE_SOURCE or "memory").lower()
    if name == "memory":
        source = QuoteStore()
    elif name == "http":
        if not settings.PRICE_SOURCE_URL:
            raise ValueError("PRICE_SOURCE_URL is required when PRICE_SOURCE=http")
        source = HttpPriceSource(
            base_url=settings.PRICE_SOURCE_URL,
            api_key=(settings.PRICE_SOURCE_API_KEY or "").strip() or None,
            timeout_seconds=settings.PRICE_SOURCE_TIMEOUT_SECONDS,
        )
    else:
        raise ValueError(f"Unknown price source: {settings.PRICE_SOURCE}")

    return RetryingPriceSource(
        source,
        retries=settings.PRICE_FETCH_RETRIES,
        backoff_seconds=settings.PRICE_FETCH_BACKOFF_SECONDS,
    )


def unwrap_quote_store(source: PriceSource):
    """The in-memory store behind a source, or None."""
    inner = getattr(source, "source", source)
    return inner if isinstance(inner, QuoteStore) else None
