"""Alert evaluation and notification inbox blueprint."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint("alerts", __name__)

from . import routes  # noqa: E402,F401

__all__ = ["bp"]
