"""Admin connector API.

POST /admin/a2c-connector with JSON ``{"connector_action": ...}``:
``installBridge``, ``removeBridge`` or ``updateToken``. Guarded by the
``X-Admin-Token`` header; the endpoint is disabled while no admin token is
configured.
"""
from __future__ import annotations

import hmac
from typing import Any, Callable, Dict, Optional

from flask import Blueprint, jsonify, request

from cartbridge import config as app_config
from cartbridge.services import installer_service
from cartbridge.utils.logging import get_logger

LOG = get_logger("admin_connector.routes")

bp = Blueprint("a2c_connector_admin", __name__, url_prefix="/admin/a2c-connector")

ADMIN_TOKEN_HEADER = "X-Admin-Token"

CONNECTOR_ACTIONS: Dict[str, Callable[[], Dict[str, Any]]] = {
    "installBridge": lambda: installer_service.install_bridge(),
    "removeBridge": lambda: installer_service.remove_bridge(),
    "updateToken": lambda: installer_service.update_token(),
}


def _json_error(code: str, status: int = 400, *, message: Optional[str] = None):
    payload: Dict[str, Any] = {"error": code}
    if message:
        payload["message"] = message
    return jsonify(payload), status


def _require_admin():
    expected = app_config.admin_token()
    if not expected:
        return _json_error("admin_disabled", 403, message="Admin token is not configured")
    supplied = request.headers.get(ADMIN_TOKEN_HEADER) or ""
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        LOG.info("admin connector rejected: bad token")
        return _json_error("permission_denied", 403)
    return True


@bp.route("", methods=["POST"])
def connector_action():
    auth = _require_admin()
    if auth is not True:
        return auth
    body = request.get_json(silent=True) or {}
    name = str(body.get("connector_action") or "")
    handler = CONNECTOR_ACTIONS.get(name)
    if handler is None:
        return _json_error("unknown_action", 400, message=f"Unknown connector action: {name or '-'}")
    LOG.info("admin connector action=%s", name)
    return jsonify(handler())


def register_admin_connector(app: Any) -> None:
    if getattr(app, "_admin_connector_bp", None):
        return
    csrf = app.extensions.get("csrf")
    if csrf is not None:
        csrf.exempt(bp)
    app.register_blueprint(bp)
    setattr(app, "_admin_connector_bp", bp)
    LOG.debug("admin connector blueprint registered")


__all__ = ["ADMIN_TOKEN_HEADER", "CONNECTOR_ACTIONS", "bp", "register_admin_connector"]
