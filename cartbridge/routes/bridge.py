"""Bridge endpoint.

Single route ``/wp-json/a2c/v1/bridge-action`` accepting every method. The
body is PHP-style form data; query-string parameters are merged underneath
it. Authentication runs before the config adapter is built so rejected
calls never touch the database.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Tuple

from flask import Blueprint, current_app, jsonify, request

from cartbridge.services.authenticator import RequestAuthenticator
from cartbridge.services.bridge import Bridge
from cartbridge.services.config_adapter import build_config_adapter
from cartbridge.services.context import BridgeServices
from cartbridge.errors import AuthError, BridgeError, ConnectivityError
from cartbridge.utils.constants import HTTP_NO_CONTENT
from cartbridge.utils.logging import get_logger
from cartbridge.utils.params import parse_bracketed

LOG = get_logger("bridge.routes")

BRIDGE_PATH = "/wp-json/a2c/v1/bridge-action"
BRIDGE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

bp = Blueprint("bridge", __name__)

_AUTH_ERROR_CODES = {
    "ERROR: Field token is not correct": "token_is_not_correct",
    "ERROR: Signature is not correct": "signature_is_not_correct",
}


def _request_params() -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """(post, all) where ``all`` is the query string overlaid by the body."""
    post = parse_bracketed(request.form.items(multi=True))
    query = parse_bracketed(request.args.items(multi=True))
    return post, {**query, **post}


def _auth_error(exc: AuthError):
    message = str(exc)
    payload = {
        "code": _AUTH_ERROR_CODES.get(message, "rest_forbidden"),
        "message": message,
        "data": {"status": exc.status_code},
    }
    return jsonify(payload), exc.status_code


def _authenticator() -> RequestAuthenticator:
    return current_app.config.get("BRIDGE_AUTHENTICATOR") or RequestAuthenticator()


def _services() -> BridgeServices:
    return current_app.config.get("BRIDGE_SERVICES") or BridgeServices()


def _adapter_factory() -> Callable[..., Any]:
    return current_app.config.get("BRIDGE_ADAPTER_FACTORY") or build_config_adapter


@bp.route(BRIDGE_PATH, methods=BRIDGE_METHODS)
def bridge_action():
    post, params = _request_params()
    try:
        _authenticator().verify(post, params)
    except AuthError as exc:
        return _auth_error(exc)

    try:
        adapter = _adapter_factory()(params)
    except BridgeError as exc:
        LOG.error("config adapter failed: %s", exc)
        return jsonify(str(exc)), 500
    except Exception as exc:
        LOG.exception("config adapter construction failed")
        return jsonify(str(exc)), 500

    try:
        result = Bridge(adapter, params, post, services=_services()).run()
    except ConnectivityError as exc:
        LOG.error("database unreachable: %s", exc)
        return jsonify(str(exc)), 500
    except Exception as exc:
        LOG.exception("action %r failed", params.get("action"))
        result = str(exc)

    if result == HTTP_NO_CONTENT:
        return "", 204
    return jsonify(result if result else ""), 200


def register_bridge(app: Any) -> None:
    if getattr(app, "_bridge_bp", None):
        return
    csrf = app.extensions.get("csrf")
    if csrf is not None:
        csrf.exempt(bp)
    app.register_blueprint(bp)
    setattr(app, "_bridge_bp", bp)
    LOG.debug("bridge blueprint registered at %s", BRIDGE_PATH)


__all__ = ["BRIDGE_PATH", "bp", "register_bridge"]
