"""Bridge install / uninstall / key rotation behind the admin connector.

Install marks the bridge installed, mirrors the store key to the bridge
directory and then proves the public endpoint answers a signed
``checkbridge`` call. A 403 from the endpoint (typically a WAF in front of
the store) is reported as a warning and still counts as installed.
"""
from __future__ import annotations

import os
import uuid
from typing import Any, Callable, Dict, Optional

import requests

from cartbridge import config as app_config
from cartbridge.services import store_key_service
from cartbridge.services.authenticator import sign_params
from cartbridge.services.http_client import DOWNLOAD_HEADERS, new_session
from cartbridge.utils.constants import BRIDGE_OK, CART_WOOCOMMERCE, HEALTH_CHECK_ACTION
from cartbridge.utils.logging import get_logger

LOG = get_logger("installer_service")

ALLOWED_WARNING_STATUSES = frozenset({403})
SELF_CHECK_TIMEOUT = 30


def check_bridge(
    store_key: str,
    *,
    url: Optional[str] = None,
    http_session: Callable[[], requests.Session] = new_session,
) -> Dict[str, Any]:
    """Signed ``checkbridge`` round trip against the public bridge URL."""
    url = url or app_config.bridge_public_url()
    if not url:
        return {"success": False, "message": "Bridge URL is not configured", "custom": True, "warning": False}
    store_root = app_config.store_base_dir().rstrip(os.sep)
    post = sign_params(
        {"action": HEALTH_CHECK_ACTION, "cart_id": CART_WOOCOMMERCE, "store_root": store_root},
        store_key,
    )
    query = {"unique": uuid.uuid4().hex, "disable_checks": 1, "cart_id": CART_WOOCOMMERCE}
    try:
        resp = http_session().post(url, params=query, data=post, headers=DOWNLOAD_HEADERS, timeout=SELF_CHECK_TIMEOUT)
    except requests.RequestException as exc:
        LOG.warning("bridge self-check failed url=%s err=%s", url, exc)
        return {"success": False, "message": f"Url:{url}</br>{exc}", "custom": True, "warning": False}
    if BRIDGE_OK in (resp.text or ""):
        return {"success": True, "message": "Bridge install successfully", "custom": True, "warning": False}
    LOG.info("bridge self-check answered HTTP %s", resp.status_code)
    return {
        "success": False,
        "message": f"Can't verify bridge url: {url}.</br>Status code:{resp.status_code}",
        "custom": True,
        "warning": resp.status_code in ALLOWED_WARNING_STATUSES,
    }


def install_bridge(*, http_session: Callable[[], requests.Session] = new_session) -> Dict[str, Any]:
    store_key_service.mark_installed()
    key = store_key_service.get_store_key()
    status = store_key_service.write_mirror_key(key)
    if not status["success"]:
        return {"status": status, "data": {}, "warning": False}
    status = check_bridge(key, http_session=http_session)
    warning = bool(status.get("warning"))
    if status["success"] or warning:
        store_key_service.mark_installed(custom=bool(status.get("custom")))
        LOG.info("bridge installed warning=%s", warning)
    data = {"storeKey": key, "bridgeUrl": app_config.bridge_public_url()}
    return {"status": status, "data": data, "warning": warning}


def remove_bridge() -> Dict[str, Any]:
    store_key_service.clear_installed()
    LOG.info("bridge removed")
    return {"status": {"success": True, "message": "Bridge deleted"}, "data": {}, "warning": False}


def update_token() -> Dict[str, Any]:
    key = store_key_service.rotate_store_key()
    status = store_key_service.write_mirror_key(key)
    return {"status": status, "data": {"storeKey": key}, "warning": False}


__all__ = ["ALLOWED_WARNING_STATUSES", "check_bridge", "install_bridge", "remove_bridge", "update_token"]
