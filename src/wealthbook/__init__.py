"""WealthBook application factory."""

from __future__ import annotations

from importlib import import_module
from typing import Iterable, Optional

from flask import Flask

from . import cli as _cli
from .config import BaseConfig, DevConfig, TestConfig
from .context import AppContext, create_app_context

_CONFIG_MAP = {
    "development": DevConfig,
    "testing": TestConfig,
    "default": BaseConfig,
}


def _resolve_config(name: str | None) -> type[BaseConfig]:
    """Return the config class for the provided environment name."""

    if not name:
        return BaseConfig
    return _CONFIG_MAP.get(name.lower(), BaseConfig)


def _blueprint_paths() -> Iterable[str]:
    """Yield blueprint import paths registered on every app."""

    yield "wealthbook.blueprints.investments"
    yield "wealthbook.blueprints.sips"
    yield "wealthbook.blueprints.alerts"
    yield "wealthbook.blueprints.liabilities"
    yield "wealthbook.blueprints.cron"


def create_app(config_name: str | None = None, *, context: Optional[AppContext] = None) -> Flask:
    """Create and configure the Flask application instance.

    Tests may pass a prebuilt *context* carrying fake providers.
    """

    app = Flask(__name__, instance_relative_config=True)
    if context is None:
        config_obj = _resolve_config(config_name)()
    else:
        config_obj = context.config
    app.config.from_object(config_obj)
    app.config["WEALTHBOOK_CONFIG"] = config_obj

    from .logging_config import setup_logging

    setup_logging(config_obj)

    from .extensions import init_context, register_error_handlers

    init_context(app, context or create_app_context(config_obj))
    register_error_handlers(app)
    _register_blueprints(app)
    _cli.init_app(app)
    return app


def _register_blueprints(app: Flask) -> None:
    """Import and register all blueprints declared in `_blueprint_paths`."""

    for dotted_path in _blueprint_paths():
        module = import_module(dotted_path)
        blueprint = getattr(module, "bp")
        app.register_blueprint(blueprint)


__all__ = ["AppContext", "BaseConfig", "DevConfig", "TestConfig", "create_app", "create_app_context"]
