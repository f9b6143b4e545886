"""
API tests for wallet-regime buys and sells
Cash moves only by the transaction amount
"""

from decimal import Decimal

import pytest

API = "/api/v1/portfolios"


@pytest.fixture()
async def portfolio_id(client, basic_portfolio_payload):
    response = await client.post(API, json=basic_portfolio_payload)
    assert response.status_code == 201, response.text
    return response.json()["portfolio"]["id"]


def _holding(portfolio, symbol):
    return next(h for h in portfolio["holdings"] if h["symbol"] == symbol)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_buy_new_symbol_spends_cash(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/buy", json={
        "symbol": "infy", "buy_price": 1500, "quantity": 5, "sector": "IT",
    })

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["symbol"] == "INFY"
    assert body["is_new"] is True
    assert body["status"] == "Fresh-Buy"
    assert body["cash_spent"] == 7500.0
    assert body["cash_balance"] == 2500.0
    assert body["portfolio"]["cash_balance"] == 2500.0
    assert _holding(body["portfolio"], "INFY")["weight"] == 7.5
    # allocation-regime holdings untouched
    assert _holding(body["portfolio"], "RELIANCE")["quantity"] == 50


@pytest.mark.asyncio
@pytest.mark.integration
async def test_buy_averages_existing_holding(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/buy", json={
        "symbol": "RELIANCE", "buy_price": 1200, "quantity": 5,
    })

    body = response.json()
    assert body["is_new"] is False
    assert body["status"] == "addon-buy"
    assert body["total_quantity"] == 55
    assert body["previous_buy_price"] == 1000.0
    assert body["buy_price"] == pytest.approx(1018.1818)
    assert body["cash_balance"] == 4000.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_buy_insufficient_funds(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/buy", json={
        "symbol": "INFY", "buy_price": 1500, "quantity": 10,
    })

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "InsufficientFundsError"
    assert detail["required"] == 15000.0
    assert detail["available"] == 10000.0
    assert detail["shortfall"] == 5000.0

    current = (await client.get(f"{API}/{portfolio_id}")).json()
    assert current["cash_balance"] == 10000.0
    assert current["version"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_zero_quantity_refreshes_price(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/buy", json={
        "symbol": "TCS", "buy_price": 1100, "quantity": 0,
    })

    body = response.json()
    assert body["price_refresh_only"] is True
    assert body["cash_balance"] == 10000.0
    tcs = _holding(body["portfolio"], "TCS")
    assert tcs["quantity"] == 40
    assert tcs["current_price"] == 1100.0
    assert tcs["buy_price"] == 1000.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_zero_quantity_unknown_symbol(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/buy", json={
        "symbol": "WIPRO", "buy_price": 500, "quantity": 0,
    })
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_buy_with_stale_version(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/buy", json={
        "symbol": "INFY", "buy_price": 1500, "quantity": 1, "expected_version": 7,
    })
    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sell_uses_market_quote(client, portfolio_id, quote_store):
    quote_store.ingest("RELIANCE", Decimal("1200"))

    response = await client.post(f"{API}/{portfolio_id}/sell", json={
        "symbol": "RELIANCE", "quantity": 10, "market_price": 1, "sale_type": "partial",
    })

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["sale_price"] == 1200.0
    assert body["sale_value"] == 12000.0
    assert body["profit_loss"] == 2000.0
    assert body["remaining_quantity"] == 40
    assert body["status"] == "Hold"
    # full proceeds land in cash, not just the profit
    assert body["cash_balance"] == 22000.0
    assert _holding(body["portfolio"], "RELIANCE")["weight"] == 50.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sell_falls_back_to_client_price(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/sell", json={
        "symbol": "TCS", "quantity": 4, "market_price": 900,
    })

    body = response.json()
    assert body["sale_price"] == 900.0
    assert body["profit_loss"] == -400.0
    assert body["cash_balance"] == 13600.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sell_without_any_price(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/sell", json={"symbol": "TCS", "quantity": 4})

    assert response.status_code == 503
    assert response.json()["detail"]["symbol"] == "TCS"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sell_more_than_held(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/sell", json={
        "symbol": "TCS", "quantity": 41, "market_price": 1000,
    })
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sell_unknown_symbol(client, portfolio_id):
    response = await client.post(f"{API}/{portfolio_id}/sell", json={
        "symbol": "WIPRO", "quantity": 1, "market_price": 500,
    })
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_complete_sale_then_rebuy(client, portfolio_id, quote_store):
    quote_store.ingest("TCS", Decimal("1100"))

    sold = await client.post(f"{API}/{portfolio_id}/sell", json={"symbol": "TCS", "sale_type": "complete"})

    assert sold.status_code == 200, sold.text
    sale = sold.json()
    assert sale["is_complete_sale"] is True
    assert sale["quantity_sold"] == 40
    assert sale["status"] == "Sell"
    assert sale["realized_pnl"] == 4000.0
    assert sale["cash_balance"] == 54000.0

    rebought = await client.post(f"{API}/{portfolio_id}/buy", json={
        "symbol": "TCS", "buy_price": 1050, "quantity": 2,
    })

    body = rebought.json()
    assert body["is_new"] is True
    assert body["status"] == "Fresh-Buy"
    assert body["cash_balance"] == 51900.0
    assert len(body["portfolio"]["holdings"]) == 2
    tcs = _holding(body["portfolio"], "TCS")
    assert tcs["quantity"] == 2
    assert tcs["realized_pnl"] == 4000.0
    assert [e["action"] for e in tcs["price_history"]][-2:] == ["complete_sell", "buy"]
