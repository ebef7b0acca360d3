"""Flask wiring: app context attachment, request identity and JSON errors."""

from __future__ import annotations

from flask import Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .context import AppContext
from .errors import AuthenticationError, WealthBookError
from .logging_config import get_logger

logger = get_logger("http")

USER_HEADER = "X-User-Id"


def init_context(app: Flask, ctx: AppContext) -> None:
    """Attach the application context so handlers can reach services."""

    app.extensions["wealthbook"] = ctx


def get_context() -> AppContext:
    """Return the context attached to the running app."""

    ctx = current_app.extensions.get("wealthbook")
    if ctx is None:  # pragma: no cover - misconfigured app
        raise RuntimeError("Application context not initialized")
    return ctx


def current_user_id() -> int:
    """Resolve the caller from the identity header set by the auth gateway.

    Raises:
        AuthenticationError: header missing, malformed or naming no user.
    """

    if "user_id" in g:
        return g.user_id
    raw = (request.headers.get(USER_HEADER) or "").strip()
    try:
        user_id = int(raw)
    except ValueError:
        raise AuthenticationError("Unauthorized") from None
    if get_context().user_repo.get_by_id(user_id) is None:
        raise AuthenticationError("Unauthorized")
    g.user_id = user_id
    return user_id


def register_error_handlers(app: Flask) -> None:
    """Render every error as JSON."""

    @app.errorhandler(WealthBookError)
    def _domain_error(exc: WealthBookError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"error": exc.name.lower().replace(" ", "_")}), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc: Exception):
        logger.exception("Unhandled error", extra={"path": request.path})
        return jsonify({"error": "server_error"}), 500
