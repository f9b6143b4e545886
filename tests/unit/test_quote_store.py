from datetime import datetime, timezone
from decimal import Decimal

from portfolio_engine.infrastructure.market_data.quote_store import QuoteStore


def test_ingest_normalizes_symbol_and_keeps_closing():
    store = QuoteStore()
    ts = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)

    store.ingest("infy", Decimal("1500"), Decimal("1490"), ts)
    store.ingest("INFY", Decimal("1510"), ts=ts)

    quote = store.get_last_quote("Infy")
    assert quote is not None
    assert quote.symbol == "INFY"
    assert quote.current_price == Decimal("1510")
    assert quote.closing_price == Decimal("1490")


async def test_get_price_returns_quote_or_none():
    store = QuoteStore()
    store.ingest("HDFC", Decimal("1600"), Decimal("1580"))

    quote = await store.get_price("hdfc")
    assert quote.current_price == Decimal("1600")
    assert quote.closing_price == Decimal("1580")
    assert await store.get_price("ITC") is None


def test_status_reports_each_symbol():
    store = QuoteStore()
    store.ingest("ITC", Decimal("420"))
    status = store.get_status()
    assert status["ITC"]["current_price"] == 420.0
    assert status["ITC"]["closing_price"] is None
    assert set(status) == {"ITC"}
