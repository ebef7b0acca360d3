"""Price target alerts: matching, cooldown, the evaluation batch and routes."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from tests.conftest import FakeQuoteProvider, RecordingPushSender
from wealthbook.models import User
from wealthbook.models.price_alert import PriceAlert
from wealthbook.services.notifications import NotificationSink
from wealthbook.services.price_alerts import PriceAlertService, in_cooldown, price_alert_matches

NOW = datetime(2025, 3, 10, 10, 0)


@pytest.mark.parametrize(
    "direction, price, matched",
    [
        ("above", 101.0, True),
        ("above", 100.0, True),
        ("above", 99.0, False),
        ("below", 99.0, True),
        ("below", 100.0, True),
        ("below", 101.0, False),
    ],
)
def test_price_alert_matches_is_inclusive(direction, price, matched):
    assert price_alert_matches(direction, price, 100.0) is matched


def test_cooldown_window_has_one_minute_floor():
    fresh = PriceAlert(user_id=1, symbol="X", target_price=1, created_at=NOW, cooldown_minutes=60)
    assert in_cooldown(fresh, NOW) is False

    fresh.last_notified_at = NOW - timedelta(minutes=59)
    assert in_cooldown(fresh, NOW) is True
    fresh.last_notified_at = NOW - timedelta(minutes=60)
    assert in_cooldown(fresh, NOW) is False

    zero = PriceAlert(user_id=1, symbol="X", target_price=1, created_at=NOW, cooldown_minutes=0)
    zero.last_notified_at = NOW - timedelta(seconds=30)
    assert in_cooldown(zero, NOW) is True


@pytest.fixture
def push_sender():
    return RecordingPushSender()


@pytest.fixture
def price_service(session_factory, push_sender):
    provider = FakeQuoteProvider(prices={"INFY.NS": 1500.0, "TCS.NS": 3500.0})
    sink = NotificationSink(session_factory, push_sender)
    return PriceAlertService(session_factory, provider, sink)


def _alert(service, user, **overrides):
    values = {"symbol": "INFY.NS", "target_price": 1600.0, "direction": "below"}
    values.update(overrides)
    return service.create_alert(values, user_id=user.id)


def test_one_shot_alert_fires_once_and_becomes_triggered(price_service, push_sender, user):
    alert = _alert(price_service, user)

    first = price_service.evaluate_all(NOW)
    second = price_service.evaluate_all(NOW + timedelta(hours=2))

    assert first.to_dict() == {"checked": 1, "triggered": 1}
    assert second.to_dict() == {"checked": 0, "triggered": 0}
    stored = price_service.get_alert(alert.id, user_id=user.id)
    assert stored.status == "triggered"
    assert stored.triggered_at == NOW
    assert stored.last_notified_at == NOW

    assert len(push_sender.sent) == 1
    user_id, payload = push_sender.sent[0]
    assert user_id == user.id
    assert payload["title"] == "Price alert triggered: INFY.NS"
    assert payload["body"] == "INFY.NS is at 1500.00, below your target 1600.00."

    notifications = price_service.sink.list_recent(user_id=user.id)
    assert notifications[0].notif_type == "investment_alert"
    data = notifications[0].to_dict()["data"]
    assert data == {"symbol": "INFY.NS", "current": 1500.0, "target": 1600.0, "direction": "below"}


def test_repeating_alert_respects_cooldown(price_service, user):
    alert = _alert(price_service, user, notify_once=False, cooldown_minutes=30)

    assert price_service.evaluate_all(NOW).triggered == 1
    assert price_service.evaluate_all(NOW + timedelta(minutes=10)).triggered == 0
    assert price_service.evaluate_all(NOW + timedelta(minutes=30)).triggered == 1

    stored = price_service.get_alert(alert.id, user_id=user.id)
    assert stored.status == "active"
    assert stored.last_checked_at == NOW + timedelta(minutes=30)


def test_unmatched_alert_only_records_check(price_service, push_sender, user):
    alert = _alert(price_service, user, direction="above")

    result = price_service.evaluate_all(NOW)

    assert result.to_dict() == {"checked": 1, "triggered": 0}
    stored = price_service.get_alert(alert.id, user_id=user.id)
    assert stored.status == "active"
    assert stored.last_checked_at == NOW
    assert stored.last_notified_at is None
    assert push_sender.sent == []


def test_missing_quote_leaves_alert_untouched(price_service, user):
    alert = _alert(price_service, user, symbol="UNKNOWN.NS")

    result = price_service.evaluate_all(NOW)

    assert result.to_dict() == {"checked": 1, "triggered": 0}
    assert price_service.get_alert(alert.id, user_id=user.id).last_checked_at is None


def test_paused_alerts_are_not_checked(price_service, user):
    alert = _alert(price_service, user)
    price_service.update_alert(alert, {"status": "paused"}, user_id=user.id)

    assert price_service.evaluate_all(NOW).checked == 0


def test_batch_fetches_each_symbol_once(price_service, user, user_factory):
    other = user_factory("other")
    _alert(price_service, user)
    _alert(price_service, other, target_price=1400.0, direction="above")
    _alert(price_service, user, symbol="TCS.NS", target_price=3000.0, direction="above")

    result = price_service.evaluate_all(NOW)

    assert result.to_dict() == {"checked": 3, "triggered": 3}
    assert sorted(price_service.provider.calls) == [("quotes", "INFY.NS"), ("quotes", "TCS.NS")]


def test_create_applies_defaults_and_uppercases_symbol(client):
    response = client.post("/price-alerts", json={"symbol": " infy.ns ", "target_price": 1450})

    assert response.status_code == 201
    alert = response.get_json()["price_alert"]
    assert alert["symbol"] == "INFY.NS"
    assert alert["direction"] == "below"
    assert alert["notify_once"] is True
    assert alert["cooldown_minutes"] == 60
    assert alert["status"] == "active"


def test_create_validates_fields(client):
    response = client.post(
        "/price-alerts",
        json={"target_price": 0, "direction": "sideways", "notify_once": "maybe", "cooldown_minutes": 5000},
    )

    assert response.status_code == 400
    assert set(response.get_json()["errors"]) == {
        "symbol",
        "target_price",
        "direction",
        "notify_once",
        "cooldown_minutes",
    }


def test_create_ignores_status(client):
    response = client.post(
        "/price-alerts", json={"symbol": "INFY.NS", "target_price": 1450, "status": "triggered"}
    )

    assert response.get_json()["price_alert"]["status"] == "active"


def test_update_pause_and_rearm(client):
    alert_id = client.post("/price-alerts", json={"symbol": "INFY.NS", "target_price": 1450}).get_json()[
        "price_alert"
    ]["id"]

    paused = client.patch(f"/price-alerts/{alert_id}", json={"status": "paused", "target_price": 1400})
    assert paused.status_code == 200
    body = paused.get_json()["price_alert"]
    assert body["status"] == "paused"
    assert body["target_price"] == 1400
    assert body["direction"] == "below"

    bad = client.put(f"/price-alerts/{alert_id}", json={"status": "done"})
    assert bad.status_code == 400
    assert "status" in bad.get_json()["errors"]

    rearmed = client.put(f"/price-alerts/{alert_id}", json={"status": "active", "notify_once": False})
    assert rearmed.get_json()["price_alert"]["status"] == "active"
    assert rearmed.get_json()["price_alert"]["notify_once"] is False


def test_list_is_scoped_and_newest_first(client, app_context):
    other = app_context.user_repo.create(User(username="someone-else"))
    app_context.price_alerts.create_alert({"symbol": "TCS.NS", "target_price": 10}, user_id=other.id)
    client.post("/price-alerts", json={"symbol": "AAA", "target_price": 1})
    client.post("/price-alerts", json={"symbol": "BBB", "target_price": 2})

    rows = client.get("/price-alerts").get_json()["price_alerts"]

    assert [row["symbol"] for row in rows] == ["BBB", "AAA"]


def test_delete_and_missing_alert(client, app_context):
    other = app_context.user_repo.create(User(username="someone-else"))
    foreign = app_context.price_alerts.create_alert({"symbol": "TCS.NS", "target_price": 10}, user_id=other.id)
    alert_id = client.post("/price-alerts", json={"symbol": "AAA", "target_price": 1}).get_json()[
        "price_alert"
    ]["id"]

    assert client.delete(f"/price-alerts/{alert_id}").get_json() == {"deleted": True, "id": alert_id}
    assert client.delete(f"/price-alerts/{alert_id}").status_code == 404
    assert client.patch(f"/price-alerts/{foreign.id}", json={"status": "paused"}).status_code == 404


def test_price_alert_routes_require_identity(anonymous_client):
    assert anonymous_client.get("/price-alerts").status_code == 401
