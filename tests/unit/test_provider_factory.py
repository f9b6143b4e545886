import pytest

from portfolio_engine.config import Settings
from portfolio_engine.infrastructure.market_data.http_price_source import HttpPriceSource
from portfolio_engine.infrastructure.market_data.provider_factory import build_price_source, unwrap_quote_store
from portfolio_engine.infrastructure.market_data.quote_store import QuoteStore
from portfolio_engine.infrastructure.market_data.retrying import RetryingPriceSource


def test_memory_source_is_wrapped_quote_store():
    source = build_price_source(Settings(PRICE_SOURCE="memory", PRICE_FETCH_RETRIES=1))

    assert isinstance(source, RetryingPriceSource)
    assert source.retries == 1
    assert isinstance(unwrap_quote_store(source), QuoteStore)


def test_http_source_requires_url():
    with pytest.raises(ValueError, match="PRICE_SOURCE_URL"):
        build_price_source(Settings(PRICE_SOURCE="http"))


def test_http_source():
    source = build_price_source(Settings(PRICE_SOURCE="http", PRICE_SOURCE_URL="https://prices.test"))

    assert isinstance(source.source, HttpPriceSource)
    assert unwrap_quote_store(source) is None


def test_unknown_source():
    with pytest.raises(ValueError, match="Unknown price source"):
        build_price_source(Settings(PRICE_SOURCE="carrier-pigeon"))
