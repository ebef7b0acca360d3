"""JSON API for holdings, their ledger, the tax center and rebalancing."""

from __future__ import annotations

from tests.conftest import assert_float_equal


def _create_holding(client, **overrides):
    payload = {"symbol": "infy.ns", "name": "Infosys", "asset_type": "stock"}
    payload.update(overrides)
    response = client.post("/investments/", json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["holding"]


def _add(client, holding_id, **payload):
    return client.post(f"/investments/{holding_id}/transactions", json=payload)


def test_requests_without_identity_are_rejected(anonymous_client):
    response = anonymous_client.get("/investments/")

    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorized"}


def test_unknown_user_is_rejected(anonymous_client):
    response = anonymous_client.get("/investments/", headers={"X-User-Id": "9999"})

    assert response.status_code == 401


def test_create_and_list_holdings(client):
    holding = _create_holding(client, quantity=10, price=100)

    assert holding["symbol"] == "INFY.NS"
    assert holding["quantity"] == 10
    assert holding["avg_buy_price"] == 100

    listing = client.get("/investments/").get_json()
    assert [h["symbol"] for h in listing["holdings"]] == ["INFY.NS"]
    assert listing["total_invested"] == 1000.0


def test_create_then_delete_transaction_restores_holding(client):
    holding = _create_holding(client)
    hid = holding["id"]
    assert _add(client, hid, type="buy", quantity=10, price=100, date="2024-01-01").status_code == 201

    added = _add(client, hid, type="buy", quantity=10, price=200, date="2024-01-02")
    assert added.status_code == 201
    body = added.get_json()
    assert_float_equal(body["holding"]["avg_buy_price"], 150.0)
    assert body["transaction"]["amount"] == 2000.0

    deleted = client.delete(f"/investments/{hid}/transactions/{body['transaction']['id']}")
    assert deleted.status_code == 200
    restored = deleted.get_json()["holding"]
    assert restored["quantity"] == 10
    assert_float_equal(restored["avg_buy_price"], 100.0)

    listing = client.get(f"/investments/{hid}/transactions").get_json()["transactions"]
    assert len(listing) == 1


def test_delete_transaction_by_query_parameter(client):
    hid = _create_holding(client)["id"]
    txn = _add(client, hid, type="buy", quantity=1, price=10, date="2024-01-01").get_json()["transaction"]

    response = client.delete(f"/investments/{hid}/transactions?transactionId={txn['id']}")

    assert response.status_code == 200
    assert client.get(f"/investments/{hid}").get_json()["holding"]["quantity"] == 0


def test_oversold_sell_is_a_validation_error(client):
    hid = _create_holding(client)["id"]
    _add(client, hid, type="buy", quantity=5, price=100, date="2024-01-01")

    response = _add(client, hid, type="sell", quantity=6, price=120, date="2024-02-01")

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "ledger_integrity"
    assert "quantity" in body["errors"]
    assert client.get(f"/investments/{hid}").get_json()["holding"]["quantity"] == 5


def test_transaction_form_errors(client):
    hid = _create_holding(client)["id"]

    response = _add(client, hid, type="sell", price=10)

    assert response.status_code == 400
    errors = response.get_json()["errors"]
    assert "quantity" in errors
    assert "amount" in errors

    bad_type = _add(client, hid, type="gift", amount=10)
    assert "type" in bad_type.get_json()["errors"]


def test_dividend_needs_only_amount(client):
    hid = _create_holding(client, quantity=2, price=50)["id"]

    response = _add(client, hid, type="dividend", amount=12.5, date="2024-03-01T10:00:00+05:30")

    assert response.status_code == 201
    assert response.get_json()["transaction"]["date"] == "2024-03-01T10:00:00"
    position = client.get(f"/investments/{hid}").get_json()["position"]
    assert position["dividends"] == 12.5


def test_direct_quantity_edit_rejected_after_ledger(client):
    hid = _create_holding(client, quantity=2, price=50)["id"]

    rejected = client.put(f"/investments/{hid}", json={"quantity": 10})
    renamed = client.put(f"/investments/{hid}", json={"name": "Infosys Ltd", "current_price": 60})

    assert rejected.status_code == 400
    assert renamed.status_code == 200
    assert renamed.get_json()["holding"]["market_value"] == 120.0


def test_delete_holding_and_missing_holding(client):
    hid = _create_holding(client)["id"]

    assert client.delete(f"/investments/{hid}").status_code == 200
    assert client.get(f"/investments/{hid}").status_code == 404
    assert client.delete(f"/investments/{hid}").status_code == 404


def test_tax_center_endpoint(client):
    hid = _create_holding(client, symbol="TCS.NS", name="TCS")["id"]
    _add(client, hid, type="buy", quantity=100, price=10, date="2024-01-01")
    _add(client, hid, type="buy", quantity=100, price=20, date="2024-06-01")
    _add(client, hid, type="sell", quantity=150, price=30, date="2025-02-01")

    body = client.get("/investments/tax-center?fyStartYear=2024").get_json()

    assert body["fy"] == "2024-2025"
    assert body["totals"]["ltcg_gain"] == 2000.0
    assert body["totals"]["stcg_gain"] == 500.0
    assert {row["symbol"] for row in body["transactions"]} == {"TCS.NS"}

    assert client.get("/investments/tax-center?fyStartYear=abc").status_code == 400


def test_rebalance_endpoint(client):
    _create_holding(client, symbol="AAA", quantity=10, price=90)
    _create_holding(client, symbol="BBB", asset_type="etf", quantity=10, price=10)

    default_plan = client.get("/investments/rebalance").get_json()
    custom_plan = client.post("/investments/rebalance", json={"targets": {"stock": 90, "etf": 30}}).get_json()

    assert default_plan["targets"]["stock"] == 45.0
    assert custom_plan["targets"] == {"stock": 75.0, "etf": 25.0}
    assert custom_plan["total_value"] == 1000.0

    bad = client.post("/investments/rebalance", json={"targets": {"stock": "lots"}})
    assert bad.status_code == 400
