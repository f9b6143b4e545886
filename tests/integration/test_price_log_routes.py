"""
API tests for price logs, quote ingestion and health probes
"""

import pytest

PORTFOLIOS = "/api/v1/portfolios"
LOGS = "/api/v1/price-logs"
QUOTES = "/api/v1/market-data/quotes"


async def _put_quotes(client, **prices):
    response = await client.put(QUOTES, json={
        "quotes": [{"symbol": s, "current_price": p} for s, p in prices.items()],
    })
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture()
async def two_portfolios(client, basic_portfolio_payload):
    ids = []
    for name in ("Alpha", "Beta"):
        response = await client.post(PORTFOLIOS, json={**basic_portfolio_payload, "name": name})
        assert response.status_code == 201, response.text
        ids.append(response.json()["portfolio"]["id"])
    return ids


@pytest.mark.asyncio
@pytest.mark.integration
async def test_run_values_every_portfolio(client, two_portfolios):
    await _put_quotes(client, RELIANCE=1100, TCS=1000, NIFTYBEES=250)

    response = await client.post(f"{LOGS}/run", json={"use_closing_prices": False})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["succeeded"] == 2
    assert body["failed"] == 0
    assert {r["portfolio"] for r in body["results"]} == set(two_portfolios)
    assert all(r["value"] == 105000.0 for r in body["results"])
    assert all(r["date_only"] == "2026-03-10" for r in body["results"])


@pytest.mark.asyncio
@pytest.mark.integration
async def test_run_without_body_defaults_to_live_prices(client, two_portfolios):
    body = (await client.post(f"{LOGS}/run")).json()

    assert body["succeeded"] == 2
    assert all(r["used_closing_prices"] is False for r in body["results"])
    # no quotes loaded: every holding falls back to its buy price
    assert all(r["data_verified"] is False for r in body["results"])


@pytest.mark.asyncio
@pytest.mark.integration
async def test_repeated_runs_keep_one_row_per_day(client, two_portfolios):
    await client.post(f"{LOGS}/run")
    await client.post(f"{LOGS}/run")

    listing = (await client.get(LOGS)).json()
    assert listing["total"] == 2
    assert all(item["update_count"] == 2 for item in listing["items"])

    integrity = (await client.get(f"{LOGS}/integrity")).json()
    assert integrity == {"total_logs": 2, "duplicate_groups": 0, "healthy": True}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_filters(client, two_portfolios):
    await client.post(f"{LOGS}/run")
    alpha = two_portfolios[0]

    by_portfolio = (await client.get(LOGS, params={"portfolio_id": alpha})).json()
    assert by_portfolio["total"] == 1
    assert by_portfolio["items"][0]["portfolio_id"] == alpha

    in_range = (await client.get(LOGS, params={"start_date": "2026-03-10", "end_date": "2026-03-10"})).json()
    assert in_range["total"] == 2

    later = (await client.get(LOGS, params={"start_date": "2026-03-11"})).json()
    assert later["total"] == 0

    paged = (await client.get(LOGS, params={"limit": 1, "offset": 1})).json()
    assert paged["total"] == 2
    assert len(paged["items"]) == 1
    assert paged["limit"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_rejects_inverted_range(client):
    response = await client.get(LOGS, params={"start_date": "2026-03-11", "end_date": "2026-03-01"})
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_single_log(client, two_portfolios):
    await client.post(f"{LOGS}/run")
    log_id = (await client.get(LOGS)).json()["items"][0]["id"]

    response = await client.get(f"{LOGS}/{log_id}")

    assert response.status_code == 200
    assert response.json()["id"] == log_id
    assert (await client.get(f"{LOGS}/99999")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_dedup_endpoint_on_clean_table(client, two_portfolios):
    await client.post(f"{LOGS}/run")

    response = await client.post(f"{LOGS}/dedup")

    assert response.status_code == 200
    body = response.json()
    assert body["duplicates_found"] == 0
    assert body["remaining_duplicate_groups"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_quotes_roundtrip(client):
    assert await _put_quotes(client, reliance=1234.5) == {"updated": 1}

    quote = (await client.get(f"{QUOTES}/RELIANCE")).json()
    assert quote == {"symbol": "RELIANCE", "current_price": 1234.5, "closing_price": None}

    status = (await client.get(QUOTES)).json()
    assert set(status) == {"RELIANCE"}

    assert (await client.get(f"{QUOTES}/UNKNOWN")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_quotes_need_memory_source(app, client):
    app.state.price_source = object()

    response = await client.get(QUOTES)

    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_valuation_unavailable_without_service(app, client):
    app.state.valuation_service = None

    response = await client.post(f"{LOGS}/run")

    assert response.status_code == 503


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health_and_ready(client):
    assert (await client.get("/health")).json() == {"status": "ok"}

    ready = (await client.get("/ready")).json()
    assert ready == {"status": "ready", "db_connected": True}
