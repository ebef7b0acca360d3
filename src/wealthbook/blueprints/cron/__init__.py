"""Bearer-protected batch job endpoints for an external cron."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint("cron", __name__, url_prefix="/cron")

from . import routes  # noqa: E402,F401

__all__ = ["bp"]
