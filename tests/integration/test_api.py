"""
HTTP surface of the ledger: status codes, wire format and headers.
"""


def _submit_body(data, ticker="PAMP", side="BUY", kind="MARKET", quantity="1", price=None, user_id=None):
    body = {
        "userId": user_id if user_id is not None else data.rich_user_id,
        "instrumentId": data.instrument_ids[ticker] if ticker in data.instrument_ids else data.cash_instrument_id,
        "side": side,
        "kind": kind,
        "quantity": quantity,
    }
    if price is not None:
        body["price"] = price
    return body


async def test_submit_market_buy_fills_at_latest_close(api_client):
    client, data = api_client

    response = await client.post("/api/v1/orders/submit", json=_submit_body(data))

    assert response.status_code == 200
    order = response.json()
    assert order["status"] == "FILLED"
    assert order["price"] == "100.00"
    assert order["quantity"] == "1.00"
    assert order["userId"] == data.rich_user_id
    assert order["instrumentId"] == data.instrument_ids["PAMP"]


async def test_submit_accepts_snake_case_fields(api_client):
    client, data = api_client
    body = {
        "user_id": data.empty_user_id,
        "instrument_id": data.instrument_ids["PAMP"],
        "side": "BUY",
        "kind": "MARKET",
        "quantity": "1",
    }

    response = await client.post("/api/v1/orders/submit", json=body)

    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"


async def test_submit_rejects_malformed_requests(api_client):
    client, data = api_client
    bad_bodies = [
        _submit_body(data, side="SHORT"),
        _submit_body(data, kind="LIMIT"),
        _submit_body(data, quantity="0"),
        _submit_body(data, quantity="1.001"),
        _submit_body(data, kind="LIMIT", price="-1"),
        _submit_body(data, kind="LIMIT", quantity="10000000", price="9999999999.99"),
        _submit_body(data, quantity="1e20"),
        _submit_body(data, quantity="1000000000000000"),
    ]

    for body in bad_bodies:
        response = await client.post("/api/v1/orders/submit", json=body)
        assert response.status_code == 400, body
        assert response.json()["error"] == "validation_error"


async def test_trade_side_on_cash_instrument_is_rejected(api_client):
    client, data = api_client

    response = await client.post("/api/v1/orders/submit", json=_submit_body(data, ticker="ARS"))

    assert response.status_code == 400
    assert response.json()["details"]["field"] == "side"


async def test_submit_for_unknown_user_is_not_found(api_client):
    client, data = api_client

    response = await client.post("/api/v1/orders/submit", json=_submit_body(data, user_id=999))

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "not_found"
    assert body["message"] == "User with ID 999 not found"


async def test_cancel_lifecycle(api_client):
    client, data = api_client
    limit = await client.post("/api/v1/orders/submit",
                              json=_submit_body(data, kind="LIMIT", price="95.50"))
    market = await client.post("/api/v1/orders/submit", json=_submit_body(data))
    assert limit.json()["status"] == "NEW"

    cancelled = await client.post("/api/v1/orders/cancel", json={"orderId": limit.json()["id"]})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["price"] == "95.50"

    refused = await client.post("/api/v1/orders/cancel", json={"orderId": market.json()["id"]})
    assert refused.status_code == 409
    assert refused.json()["error"] == "invalid_transition"
    assert "Cannot cancel order with status FILLED" in refused.json()["message"]

    missing = await client.post("/api/v1/orders/cancel", json={"orderId": 999})
    assert missing.status_code == 404


async def test_portfolio_endpoint(api_client):
    client, data = api_client
    await client.post("/api/v1/orders/submit", json=_submit_body(data, quantity="10"))

    response = await client.get(f"/api/v1/portfolio/{data.rich_user_id}")

    assert response.status_code == 200
    portfolio = response.json()
    assert portfolio["availableCash"] == "9000.00"
    assert portfolio["totalAccountValue"] == "10000.00"
    assert portfolio["positions"] == [{
        "instrumentId": data.instrument_ids["PAMP"],
        "ticker": "PAMP",
        "name": "Pampa Holding S.A.",
        "quantity": "10.00",
        "totalValue": "1000.00",
        "totalReturn": "0.00",
    }]


async def test_portfolio_errors(api_client):
    client, _ = api_client

    assert (await client.get("/api/v1/portfolio/999")).status_code == 404
    assert (await client.get("/api/v1/portfolio/abc")).status_code == 400


async def test_health_metrics_and_request_ids(api_client):
    client, data = api_client
    await client.post("/api/v1/orders/submit", json=_submit_body(data))

    health = await client.get("/health", headers={"X-Request-ID": "req-42"})
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.headers["X-Request-ID"] == "req-42"
    assert health.headers["X-Correlation-ID"]

    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "ledger_orders_processed_total" in metrics.text
    assert "ledger_settlement_orders_total" in metrics.text
