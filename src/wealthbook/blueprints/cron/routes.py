"""Cron routes: batch jobs across every user."""

from __future__ import annotations

import hmac

from flask import jsonify, request

from ...errors import AuthenticationError
from ...extensions import get_context
from ...logging_config import get_logger
from ...scheduler import run_alert_evaluation, run_price_alert_evaluation, run_sip_tick
from . import bp

logger = get_logger("cron")


@bp.before_request
def require_cron_secret():
    secret = get_context().config.CRON_SECRET
    header = request.headers.get("Authorization", "")
    token = header[len("Bearer "):] if header.startswith("Bearer ") else ""
    if not secret or not token or not hmac.compare_digest(token, secret):
        logger.warning("Rejected cron request", extra={"path": request.path})
        raise AuthenticationError("Unauthorized")


@bp.get("/sync-sips")
def sync_sips():
    summary = run_sip_tick(get_context())
    return jsonify({"ok": True, **summary.to_dict()})


@bp.get("/evaluate-alerts")
def evaluate_alerts():
    result = run_alert_evaluation(get_context())
    return jsonify({"ok": True, **result})


@bp.get("/evaluate-price-alerts")
def evaluate_price_alerts():
    result = run_price_alert_evaluation(get_context())
    return jsonify({"ok": True, **result.to_dict()})
