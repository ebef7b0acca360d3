"""Liability routes."""

from __future__ import annotations

from flask import jsonify

from ...errors import NotFoundError
from ...extensions import current_user_id, get_context
from ...models.liability import Liability
from ..forms import json_body
from . import bp
from .forms import LiabilityForm


@bp.get("/")
def list_liabilities():
    ctx = get_context()
    user_id = current_user_id()
    repo = ctx.liability_repo
    liabilities = repo.list_all(user_id=user_id)
    return jsonify(
        {
            "liabilities": [item.to_dict() for item in liabilities],
            "total_outstanding": round(repo.get_total_debt(user_id=user_id), 2),
            "weighted_rate": round(repo.get_weighted_rate(user_id=user_id), 4),
        }
    )


@bp.post("/")
def create_liability():
    ctx = get_context()
    user_id = current_user_id()
    form = LiabilityForm.from_mapping(json_body())
    form.validate()
    form.raise_for_errors()
    liability = ctx.liability_repo.create(Liability(user_id=user_id, **form.values), user_id=user_id)
    return jsonify({"liability": liability.to_dict()}), 201


def _load(liability_id: int, user_id: int) -> Liability:
    liability = get_context().liability_repo.get_by_id(liability_id, user_id=user_id)
    if liability is None:
        raise NotFoundError("Liability not found")
    return liability


@bp.get("/<int:liability_id>")
def get_liability(liability_id: int):
    return jsonify({"liability": _load(liability_id, current_user_id()).to_dict()})


@bp.route("/<int:liability_id>", methods=["PUT", "PATCH"])
def update_liability(liability_id: int):
    ctx = get_context()
    user_id = current_user_id()
    liability = _load(liability_id, user_id)
    form = LiabilityForm.from_mapping(json_body(), partial=True)
    form.validate()
    start = form.values.get("start_date", liability.start_date)
    end = form.values.get("end_date", liability.end_date)
    if start and end and end < start and "end_date" not in form.errors:
        form.errors.setdefault("end_date", []).append("End date cannot be before the start date.")
    form.raise_for_errors()
    for name, value in form.values.items():
        setattr(liability, name, value)
    liability = ctx.liability_repo.update(liability, user_id=user_id)
    return jsonify({"liability": liability.to_dict()})


@bp.delete("/<int:liability_id>")
def delete_liability(liability_id: int):
    ctx = get_context()
    if not ctx.liability_repo.delete(liability_id, user_id=current_user_id()):
        raise NotFoundError("Liability not found")
    return jsonify({"deleted": True, "id": liability_id})
