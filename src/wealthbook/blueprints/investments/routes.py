"""Holding, ledger, tax-center and rebalance routes."""

from __future__ import annotations

from flask import jsonify, request

from ...errors import ValidationError
from ...extensions import current_user_id, get_context
from ...models.portfolio import Holding
from ...services.dates import day_key, local_now
from ...services.ledger import LedgerEntry
from ...services.rebalance import HoldingSnapshot, build_rebalance_plan
from ...services.tax_lots import build_tax_center, current_fiscal_year, fiscal_year_window
from ..forms import json_body
from . import bp
from .forms import HoldingForm, HoldingUpdateForm, InvestmentTransactionForm

TAXABLE_TYPES = ("buy", "sip", "sell")


def _holding_payload(holding: Holding) -> dict:
    invested = float(holding.quantity or 0.0) * float(holding.avg_buy_price or 0.0)
    market_value = holding.market_value
    return {
        "id": holding.id,
        "symbol": holding.symbol,
        "name": holding.name,
        "asset_type": holding.asset_type,
        "quantity": holding.quantity,
        "avg_buy_price": holding.avg_buy_price,
        "current_price": holding.current_price,
        "currency": holding.currency,
        "invested": round(invested, 2),
        "market_value": round(market_value, 2),
        "unrealized_gain": round(market_value - invested, 2),
        "last_updated": holding.last_updated.isoformat() if holding.last_updated else None,
    }


@bp.get("/")
def list_holdings():
    ctx = get_context()
    holdings = ctx.ledger.list_holdings(user_id=current_user_id())
    payload = [_holding_payload(h) for h in holdings]
    return jsonify(
        {
            "holdings": payload,
            "total_invested": round(sum(item["invested"] for item in payload), 2),
            "total_value": round(sum(item["market_value"] for item in payload), 2),
        }
    )


@bp.post("/")
def create_holding():
    ctx = get_context()
    user_id = current_user_id()
    form = HoldingForm.from_mapping(json_body())
    form.tz_name = ctx.config.TIMEZONE
    form.validate()
    form.raise_for_errors()
    holding = ctx.ledger.create_holding(form.to_new_holding(), user_id=user_id)
    return jsonify({"holding": _holding_payload(holding)}), 201


@bp.get("/<int:holding_id>")
def get_holding(holding_id: int):
    ctx = get_context()
    user_id = current_user_id()
    holding = ctx.ledger.get_holding(holding_id, user_id=user_id)
    position = ctx.ledger.position(holding_id, user_id=user_id)
    return jsonify({"holding": _holding_payload(holding), "position": position.to_dict()})


@bp.put("/<int:holding_id>")
def update_holding(holding_id: int):
    ctx = get_context()
    user_id = current_user_id()
    form = HoldingUpdateForm.from_mapping(json_body())
    form.validate()
    form.raise_for_errors()
    holding = ctx.ledger.update_holding(holding_id, form.changes, user_id=user_id)
    return jsonify({"holding": _holding_payload(holding)})


@bp.delete("/<int:holding_id>")
def delete_holding(holding_id: int):
    ctx = get_context()
    ctx.ledger.delete_holding(holding_id, user_id=current_user_id())
    return jsonify({"deleted": True, "id": holding_id})


@bp.get("/<int:holding_id>/transactions")
def list_transactions(holding_id: int):
    ctx = get_context()
    rows = ctx.ledger.list_transactions(holding_id, user_id=current_user_id())
    return jsonify({"transactions": [row.to_dict() for row in rows]})


@bp.post("/<int:holding_id>/transactions")
def add_transaction(holding_id: int):
    ctx = get_context()
    user_id = current_user_id()
    tz_name = ctx.config.TIMEZONE
    form = InvestmentTransactionForm.from_mapping(json_body(), tz_name=tz_name)
    form.validate(now=local_now(tz_name))
    form.raise_for_errors()
    txn, holding = ctx.ledger.add_transaction(holding_id, form.to_entry(), user_id=user_id)
    return jsonify({"transaction": txn.to_dict(), "holding": _holding_payload(holding)}), 201


@bp.delete("/<int:holding_id>/transactions/<int:transaction_id>")
def delete_transaction(holding_id: int, transaction_id: int):
    ctx = get_context()
    holding = ctx.ledger.delete_transaction(holding_id, transaction_id, user_id=current_user_id())
    return jsonify({"deleted": True, "id": transaction_id, "holding": _holding_payload(holding)})


@bp.delete("/<int:holding_id>/transactions")
def delete_transaction_by_query(holding_id: int):
    raw = request.args.get("transactionId") or json_body().get("transaction_id")
    try:
        transaction_id = int(raw)
    except (TypeError, ValueError):
        raise ValidationError.single("transaction_id", "A transaction id is required.") from None
    return delete_transaction(holding_id, transaction_id)


@bp.get("/tax-center")
def tax_center():
    ctx = get_context()
    user_id = current_user_id()
    raw_year = request.args.get("fyStartYear")
    if raw_year:
        try:
            fy_start_year = int(raw_year)
        except ValueError:
            raise ValidationError.single("fyStartYear", "Enter a four-digit year.") from None
        if not 1900 <= fy_start_year <= 2200:
            raise ValidationError.single("fyStartYear", "Enter a four-digit year.")
    else:
        fy_start_year = current_fiscal_year(day_key(local_now(ctx.config.TIMEZONE)))

    _, fy_end = fiscal_year_window(fy_start_year)
    names = {h.id: h.symbol or h.name for h in ctx.ledger.list_holdings(user_id=user_id)}
    rows = ctx.ledger.transactions.list_for_user(user_id=user_id, until=fy_end, types=TAXABLE_TYPES)
    entries = [(row.holding_id, LedgerEntry.from_model(row)) for row in rows]
    return jsonify(build_tax_center(entries, fy_start_year, names))


@bp.route("/rebalance", methods=["GET", "POST"])
def rebalance():
    ctx = get_context()
    targets = None
    if request.method == "POST":
        raw = json_body().get("targets")
        if raw is not None:
            if not isinstance(raw, dict):
                raise ValidationError.single("targets", "Targets must map asset types to weights.")
            try:
                targets = {str(key): float(value) for key, value in raw.items()}
            except (TypeError, ValueError):
                raise ValidationError.single("targets", "Weights must be numbers.") from None
    holdings = ctx.ledger.list_holdings(user_id=current_user_id())
    plan = build_rebalance_plan((HoldingSnapshot.from_holding(h) for h in holdings), targets)
    return jsonify(plan)
