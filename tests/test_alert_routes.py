"""Alert evaluation endpoint and the notification inbox."""

from __future__ import annotations


def _concentrated_portfolio(client):
    client.post("/investments/", json={"symbol": "AAA", "quantity": 10, "price": 100})


def test_evaluate_creates_notification_once_per_day(client):
    _concentrated_portfolio(client)

    first = client.post("/alerts/evaluate", json={})
    second = client.post("/alerts/evaluate", json={})

    assert first.status_code == 200
    body = first.get_json()
    assert body["generated"] == 1
    assert body["alerts"][0]["title"] == "Concentration alert: AAA"
    assert body["config"]["concentration_pct"] == 25.0
    assert "summary" not in body
    assert second.get_json()["generated"] == 0


def test_evaluate_applies_config_overrides(client):
    client.post("/investments/", json={"symbol": "AAA", "quantity": 1, "price": 100})
    client.post("/investments/", json={"symbol": "BBB", "quantity": 1, "price": 100})

    relaxed = client.post("/alerts/evaluate", json={"config": {"concentration_pct": 60}})

    assert relaxed.get_json()["config"]["concentration_pct"] == 60.0
    assert relaxed.get_json()["generated"] == 0


def test_evaluate_rejects_bad_config(client):
    response = client.post(
        "/alerts/evaluate", json={"config": {"drawdown_pct": "steep", "budget_usage_pct": -5}}
    )

    assert response.status_code == 400
    assert set(response.get_json()["errors"]) == {"drawdown_pct", "budget_usage_pct"}

    not_object = client.post("/alerts/evaluate", json={"config": [1, 2]})
    assert not_object.status_code == 400


def test_evaluate_with_summary_falls_back_without_client(client):
    _concentrated_portfolio(client)

    body = client.post("/alerts/evaluate", json={"summarize": True}).get_json()

    assert body["summary"]["fallback"] is True
    assert body["summary"]["headline"]


def test_push_receives_payload(client, app_context):
    _concentrated_portfolio(client)

    client.post("/alerts/evaluate", json={})

    sent = app_context.notifications.push_sender.sent
    assert len(sent) == 1
    assert sent[0][1]["title"] == "Concentration alert: AAA"


def test_notification_inbox_and_mark_read(client):
    _concentrated_portfolio(client)
    client.post("/alerts/evaluate", json={})

    inbox = client.get("/notifications").get_json()["notifications"]
    assert len(inbox) == 1
    assert inbox[0]["is_read"] is False
    assert inbox[0]["data"]["symbol"] == "AAA"

    marked = client.post(f"/notifications/{inbox[0]['id']}/read")
    assert marked.get_json()["notification"]["is_read"] is True
    assert client.get("/notifications?unread=true").get_json()["notifications"] == []
    assert client.post("/notifications/9999/read").status_code == 404


def test_notification_limit_must_be_numeric(client):
    assert client.get("/notifications?limit=lots").status_code == 400
