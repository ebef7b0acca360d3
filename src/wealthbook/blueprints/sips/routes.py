"""SIP routes: CRUD, installments, refresh, sync, migration and scheme search."""

from __future__ import annotations

from flask import jsonify, request

from ...extensions import current_user_id, get_context
from ...models.sip import Sip
from ..forms import json_body
from . import bp
from .forms import InstallmentForm, SipForm


def _totals(sips: list[Sip]) -> dict:
    invested = sum(s.total_invested for s in sips if s.status != "migrated")
    value = sum(s.current_value for s in sips if s.status != "migrated")
    return {
        "total_invested": round(invested, 2),
        "current_value": round(value, 2),
        "gain": round(value - invested, 2),
        "active": sum(1 for s in sips if s.status == "active"),
    }


@bp.get("/")
def list_sips():
    ctx = get_context()
    sips = ctx.sips.list_sips(user_id=current_user_id())
    return jsonify({"sips": [s.to_dict() for s in sips], "totals": _totals(sips)})


@bp.post("/")
def create_sip():
    ctx = get_context()
    user_id = current_user_id()
    form = SipForm.from_mapping(json_body())
    form.validate()
    form.raise_for_errors()
    sip = ctx.sips.create_sip(form.to_draft(), user_id=user_id)
    return jsonify({"sip": sip.to_dict()}), 201


@bp.get("/<int:sip_id>")
def get_sip(sip_id: int):
    ctx = get_context()
    return jsonify({"sip": ctx.sips.get_sip(sip_id, user_id=current_user_id()).to_dict()})


@bp.route("/<int:sip_id>", methods=["PUT", "PATCH"])
def update_sip(sip_id: int):
    ctx = get_context()
    user_id = current_user_id()
    form = SipForm.from_mapping(json_body(), partial=True)
    form.validate()
    form.raise_for_errors()
    sip = ctx.sips.update_sip(sip_id, form.changes(), user_id=user_id)
    return jsonify({"sip": sip.to_dict()})


@bp.delete("/<int:sip_id>")
def delete_sip(sip_id: int):
    ctx = get_context()
    ctx.sips.delete_sip(sip_id, user_id=current_user_id())
    return jsonify({"deleted": True, "id": sip_id})


@bp.get("/<int:sip_id>/details")
def sip_details(sip_id: int):
    ctx = get_context()
    return jsonify(ctx.sips.details(sip_id, user_id=current_user_id()))


@bp.get("/<int:sip_id>/installments")
def list_installments(sip_id: int):
    ctx = get_context()
    rows = ctx.sips.list_installments(sip_id, user_id=current_user_id())
    return jsonify({"installments": [row.to_dict() for row in rows]})


@bp.post("/<int:sip_id>/installments")
def add_installment(sip_id: int):
    ctx = get_context()
    user_id = current_user_id()
    form = InstallmentForm.from_mapping(json_body())
    form.validate()
    form.raise_for_errors()
    installment, sip = ctx.sips.add_installment(sip_id, form.to_draft(), user_id=user_id)
    return jsonify({"installment": installment.to_dict(), "sip": sip.to_dict()}), 201


@bp.patch("/<int:sip_id>/installments")
def update_installment(sip_id: int):
    ctx = get_context()
    user_id = current_user_id()
    form = InstallmentForm.from_mapping(json_body(), partial=True)
    form.validate()
    form.raise_for_errors()
    installment, sip = ctx.sips.update_installment(
        sip_id, form.installment_id, form.values, user_id=user_id
    )
    return jsonify({"installment": installment.to_dict(), "sip": sip.to_dict()})


@bp.post("/<int:sip_id>/migrate-to-investment")
def migrate_sip(sip_id: int):
    ctx = get_context()
    sip, holding = ctx.sips.migrate_to_holding(sip_id, user_id=current_user_id())
    return jsonify({"sip": sip.to_dict(), "holding_id": holding.id, "symbol": holding.symbol})


@bp.post("/refresh")
def refresh_prices():
    ctx = get_context()
    return jsonify(ctx.sips.refresh_prices(user_id=current_user_id()))


@bp.post("/sync")
def sync_sips():
    ctx = get_context()
    summary = ctx.sip_scheduler.tick(user_id=current_user_id())
    return jsonify(summary.to_dict())


@bp.get("/schemes")
def search_schemes():
    current_user_id()
    query = (request.args.get("q") or "").strip()
    if len(query) < 2:
        return jsonify({"schemes": []})
    schemes = get_context().provider.search_schemes(query, limit=15)
    return jsonify(
        {"schemes": [{"scheme_code": s.scheme_code, "scheme_name": s.scheme_name} for s in schemes]}
    )
