"""
API tests for portfolio CRUD in the allocation regime
"""

from decimal import Decimal

import pytest

API = "/api/v1/portfolios"


async def _create(client, payload):
    response = await client.post(API, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _holding(portfolio, symbol):
    return next(h for h in portfolio["holdings"] if h["symbol"] == symbol)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_portfolio(client, basic_portfolio_payload):
    body = await _create(client, basic_portfolio_payload)

    portfolio = body["portfolio"]
    assert portfolio["name"] == "Growth Basket"
    assert portfolio["version"] == 1
    assert portfolio["cash_balance"] == 10000.0
    assert portfolio["compare_with"] == "NIFTYBEES"
    assert _holding(portfolio, "RELIANCE")["quantity"] == 50
    assert _holding(portfolio, "TCS")["quantity"] == 40
    assert _holding(portfolio, "TCS")["status"] == "Fresh-Buy"
    assert {a["symbol"] for a in body["allocations"]} == {"RELIANCE", "TCS"}
    assert body["weight_validation"]["total_weight"] == 90.0
    assert body["tamper_report"]["tampered"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_duplicate_name(client, basic_portfolio_payload):
    await _create(client, basic_portfolio_payload)

    response = await client.post(API, json=basic_portfolio_payload)

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "name"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_rejects_small_min_investment(client, basic_portfolio_payload):
    basic_portfolio_payload["min_investment"] = 50

    response = await client.post(API, json=basic_portfolio_payload)

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_over_allocated(client, basic_portfolio_payload):
    basic_portfolio_payload["holdings"].append(
        {"symbol": "INFY", "weight": 20, "buy_price": 1500, "sector": "IT"}
    )

    response = await client.post(API, json=basic_portfolio_payload)

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "OverAllocationError"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_client_totals_are_reported_not_trusted(client, basic_portfolio_payload):
    basic_portfolio_payload["client_totals"] = {
        "cash_balance": 99999,
        "quantities": {"RELIANCE": 51},
    }

    body = await _create(client, basic_portfolio_payload)

    assert body["portfolio"]["cash_balance"] == 10000.0
    assert body["tamper_report"]["tampered"] is True
    assert {i["field"] for i in body["tamper_report"]["issues"]} == {"cash_balance", "quantity"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_unknown_portfolio(client):
    response = await client.get(f"{API}/999")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "NotFoundError"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_paginates(client, basic_portfolio_payload):
    for name in ("One", "Two", "Three"):
        await _create(client, {**basic_portfolio_payload, "name": name})

    response = await client.get(API, params={"limit": 2, "offset": 0})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert len(body["items"]) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_patch_add_holding(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]

    response = await client.patch(f"{API}/{pid}", json={
        "action": "add",
        "holdings": [{"symbol": "infy", "weight": 5, "buy_price": 1000, "sector": "IT"}],
        "expected_version": 1,
    })

    assert response.status_code == 200, response.text
    portfolio = response.json()["portfolio"]
    assert portfolio["version"] == 2
    assert _holding(portfolio, "INFY")["quantity"] == 5
    assert portfolio["cash_balance"] == 5000.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_patch_delete_holding(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]

    response = await client.patch(f"{API}/{pid}", json={"action": "delete", "remove_symbols": ["TCS"]})

    assert response.status_code == 200
    portfolio = response.json()["portfolio"]
    assert [h["symbol"] for h in portfolio["holdings"]] == ["RELIANCE"]
    assert portfolio["cash_balance"] == 50000.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_patch_replace_holdings(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]

    response = await client.patch(f"{API}/{pid}", json={
        "action": "replace",
        "holdings": [{"symbol": "INFY", "weight": 60, "buy_price": 1500}],
    })

    assert response.status_code == 200
    portfolio = response.json()["portfolio"]
    assert [h["symbol"] for h in portfolio["holdings"]] == ["INFY"]
    assert _holding(portfolio, "INFY")["quantity"] == 40
    assert portfolio["cash_balance"] == 40000.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_patch_metadata_only(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]

    response = await client.patch(f"{API}/{pid}", json={"description": "Rebalanced quarterly"})

    assert response.status_code == 200
    body = response.json()
    assert body["portfolio"]["description"] == "Rebalanced quarterly"
    assert body["portfolio"]["cash_balance"] == 10000.0
    assert body["allocations"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_patch_rejects_min_investment_change(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]

    response = await client.patch(f"{API}/{pid}", json={"min_investment": 200000})

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "min_investment"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_patch_stale_version(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]
    await client.patch(f"{API}/{pid}", json={"description": "first"})

    response = await client.patch(f"{API}/{pid}", json={"description": "second", "expected_version": 1})

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "ConcurrentModificationError"
    current = (await client.get(f"{API}/{pid}")).json()
    assert current["description"] == "first"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_patch_over_allocation_leaves_portfolio_unchanged(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]

    response = await client.patch(f"{API}/{pid}", json={
        "action": "add",
        "holdings": [{"symbol": "HDFC", "weight": 20, "buy_price": 1000}],
    })

    assert response.status_code == 409
    current = (await client.get(f"{API}/{pid}")).json()
    assert current["version"] == 1
    assert {h["symbol"] for h in current["holdings"]} == {"RELIANCE", "TCS"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_removes_price_logs(client, basic_portfolio_payload):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]
    recalculated = await client.post(f"{API}/{pid}/recalculate")
    assert recalculated.status_code == 200

    response = await client.delete(f"{API}/{pid}")

    assert response.status_code == 200
    assert response.json()["price_logs_deleted"] == 1
    assert (await client.get(f"{API}/{pid}")).status_code == 404
    logs = (await client.get("/api/v1/price-logs", params={"portfolio_id": pid})).json()
    assert logs["total"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_unknown_portfolio(client):
    response = await client.delete(f"{API}/12345")
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_summary_marks_to_market(client, basic_portfolio_payload, quote_store):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]
    quote_store.ingest("RELIANCE", Decimal("1100"))

    response = await client.get(f"{API}/{pid}/summary")

    assert response.status_code == 200
    summary = response.json()
    assert summary["portfolio_id"] == pid
    assert summary["prices_missing"] == ["TCS"]
    assert summary["cash_balance"] == 10000.0
    assert summary["holdings_value_at_buy"] == 90000.0
    assert summary["active_holdings"] == 2
    assert summary["weight_validation"]["is_valid"] is True
    assert summary["min_investment_validation"]["is_valid"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_recalculate_writes_todays_log(client, basic_portfolio_payload, quote_store):
    created = await _create(client, basic_portfolio_payload)
    pid = created["portfolio"]["id"]
    quote_store.ingest("RELIANCE", Decimal("1100"))
    quote_store.ingest("TCS", Decimal("1000"))

    first = (await client.post(f"{API}/{pid}/recalculate")).json()
    second = (await client.post(f"{API}/{pid}/recalculate")).json()

    assert first["action"] == "created"
    assert first["value"] == 105000.0
    assert second["action"] == "updated"
    assert second["update_count"] == 2
    assert (await client.get(f"{API}/{pid}")).json()["current_value"] == 105000.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_recalculate_unknown_portfolio(client):
    response = await client.post(f"{API}/777/recalculate")
    assert response.status_code == 404
