"""Alert evaluation, price targets and the notification inbox."""

from __future__ import annotations

from dataclasses import fields

from flask import jsonify, request

from ...errors import NotFoundError, ValidationError
from ...extensions import current_user_id, get_context
from ...models.price_alert import PriceAlert
from ...services.alerts import DEFAULT_THRESHOLDS, AlertThresholds
from ..forms import json_body
from . import bp
from .forms import PriceAlertForm

THRESHOLD_KEYS = tuple(f.name for f in fields(AlertThresholds))


def thresholds_from_payload(payload: dict) -> AlertThresholds:
    """Default thresholds with any numeric overrides from ``payload["config"]``."""

    raw = payload.get("config") or {}
    if not isinstance(raw, dict):
        raise ValidationError.single("config", "Config must be an object.")
    overrides: dict[str, float] = {}
    errors: dict[str, list[str]] = {}
    for key in THRESHOLD_KEYS:
        if key not in raw or raw[key] is None:
            continue
        value = raw[key]
        if isinstance(value, bool):
            errors[key] = ["Enter a valid number."]
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            errors[key] = ["Enter a valid number."]
            continue
        if number < 0:
            errors[key] = ["Must be at least 0."]
            continue
        overrides[key] = number
    if errors:
        raise ValidationError(errors)
    return DEFAULT_THRESHOLDS.with_overrides(overrides)


@bp.post("/alerts/evaluate")
def evaluate_alerts():
    ctx = get_context()
    user_id = current_user_id()
    payload = json_body()
    thresholds = thresholds_from_payload(payload)
    result = ctx.alerts.evaluate(user_id, thresholds)
    body = result.to_dict()
    if payload.get("summarize"):
        body["summary"] = ctx.summarizer.summarize("alerts", body).to_dict()
    return jsonify(body)


@bp.get("/notifications")
def list_notifications():
    ctx = get_context()
    try:
        limit = max(1, min(int(request.args.get("limit", 50)), 200))
    except ValueError:
        raise ValidationError.single("limit", "Enter a whole number.") from None
    unread_only = request.args.get("unread", "").lower() in {"1", "true", "yes"}
    rows = ctx.notifications.list_recent(user_id=current_user_id(), limit=limit, unread_only=unread_only)
    return jsonify({"notifications": [row.to_dict() for row in rows]})


@bp.post("/notifications/<int:notification_id>/read")
def mark_notification_read(notification_id: int):
    ctx = get_context()
    notification = ctx.notifications.mark_read(notification_id, user_id=current_user_id())
    if notification is None:
        raise NotFoundError("Notification not found")
    return jsonify({"notification": notification.to_dict()})


def _load_price_alert(alert_id: int, user_id: int) -> PriceAlert:
    alert = get_context().price_alerts.get_alert(alert_id, user_id=user_id)
    if alert is None:
        raise NotFoundError("Price alert not found")
    return alert


@bp.get("/price-alerts")
def list_price_alerts():
    ctx = get_context()
    rows = ctx.price_alerts.list_alerts(user_id=current_user_id())
    return jsonify({"price_alerts": [row.to_dict() for row in rows]})


@bp.post("/price-alerts")
def create_price_alert():
    ctx = get_context()
    form = PriceAlertForm.from_mapping(json_body())
    form.validate()
    form.raise_for_errors()
    alert = ctx.price_alerts.create_alert(form.values, user_id=current_user_id())
    return jsonify({"price_alert": alert.to_dict()}), 201


@bp.route("/price-alerts/<int:alert_id>", methods=["PUT", "PATCH"])
def update_price_alert(alert_id: int):
    ctx = get_context()
    user_id = current_user_id()
    alert = _load_price_alert(alert_id, user_id)
    form = PriceAlertForm.from_mapping(json_body(), partial=True)
    form.validate()
    form.raise_for_errors()
    alert = ctx.price_alerts.update_alert(alert, form.values, user_id=user_id)
    return jsonify({"price_alert": alert.to_dict()})


@bp.delete("/price-alerts/<int:alert_id>")
def delete_price_alert(alert_id: int):
    ctx = get_context()
    if not ctx.price_alerts.delete_alert(alert_id, user_id=current_user_id()):
        raise NotFoundError("Price alert not found")
    return jsonify({"deleted": True, "id": alert_id})
