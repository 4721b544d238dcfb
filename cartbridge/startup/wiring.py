"""Application initialization / wiring.

Orchestrates: DB engine init, route registration, runtime config summary.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask

from cartbridge.config import summarize_runtime_config
from cartbridge.db import init_engine_once
from cartbridge.routes import register_all as register_routes
from cartbridge.utils.logging import get_logger

LOG = get_logger("cartbridge.startup")


def init_app(app: Any) -> None:
    LOG.debug("init_app starting")
    init_engine_once()
    LOG.debug("DB engine initialized")
    register_routes(app)
    LOG.info("App startup wiring complete config=%s", summarize_runtime_config())


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Flask app with the bridge, admin connector and health routes.

    ``overrides`` lands in ``app.config``; tests use it to inject
    ``BRIDGE_AUTHENTICATOR``, ``BRIDGE_SERVICES`` and ``BRIDGE_ADAPTER_FACTORY``.
    """
    app = Flask("cartbridge")
    if overrides:
        app.config.update(overrides)
    init_app(app)
    return app


__all__ = ["create_app", "init_app"]
