"""SIP blueprint package."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint("sips", __name__, url_prefix="/sips")

from . import routes  # noqa: E402,F401

__all__ = ["bp"]
