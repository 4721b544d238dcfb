"""``createRefund``: refund an order, optionally through the payment gateway.

The call is authorised out of band: the remote platform's ``request_key``
is checked against the check-request-key service together with the local
store key before anything is touched.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

import requests

from cartbridge import config as app_config
from cartbridge.services.actions.base import WIRE_JSON, Action
from cartbridge.services.actions.platform_action import error_body
from cartbridge.services.context import RequestContext
from cartbridge.errors import CommerceEntityError
from cartbridge.services.http_client import DEFAULT_TIMEOUT
from cartbridge.utils.constants import ACTION_NOT_SUPPORTED, CART_TYPE_WORDPRESS, CART_WOOCOMMERCE
from cartbridge.utils.logging import get_logger

LOG = get_logger("actions.refund")

NOT_AUTHORIZED = "Not authorized"
GATEWAY_NO_REFUNDS = "Order payment method does not support refunds"
GATEWAY_REPAY_FAILED = "An error occurred while attempting to repay the refund using the payment gateway API"
_TRUE = {"1", "true", "yes", "on"}


def filter_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def remaining_refund_amount(order: Mapping[str, Any]) -> float:
    total = float(order.get("total") or 0)
    refunded = sum(abs(float(r.get("total") or 0)) for r in order.get("refunds") or [])
    return round(total - refunded, 2)


def check_request_key(ctx: RequestContext, request_key: str) -> bool:
    store_key = ctx.services.store_key_loader() or ""
    try:
        resp = ctx.services.http_session().post(
            app_config.check_request_key_url(),
            data={"request_key": request_key, "store_key": store_key},
            timeout=DEFAULT_TIMEOUT,
        )
    except requests.RequestException as exc:
        LOG.warning("request key check failed: %s", exc)
        return False
    if resp.status_code != 200:
        LOG.info("request key check answered HTTP %s", resp.status_code)
        return False
    try:
        body = resp.json()
    except ValueError:
        return False
    return bool(isinstance(body, dict) and body.get("success"))


class CreateRefundAction(Action):
    name = "createRefund"
    needs_link = False
    needs_cart = True
    wire = WIRE_JSON

    def execute(self, ctx: RequestContext) -> Dict[str, Any]:
        response: Dict[str, Any] = {"error": None, "data": None}
        request_key = ctx.param("request_key")
        if request_key is None or not check_request_key(ctx, str(request_key)):
            response["error"] = {"message": NOT_AUTHORIZED}
            return response

        cfg = ctx.config
        if cfg.cart_type != CART_TYPE_WORDPRESS or cfg.cart_id != CART_WOOCOMMERCE:
            response["error"] = {"message": ACTION_NOT_SUPPORTED}
            return response

        try:
            self._refund(ctx, response)
        except Exception as exc:
            LOG.warning("refund failed order=%s err=%s", ctx.param("order_id"), exc)
            response.pop("data", None)
            response["error"] = error_body(exc)
        return response

    def _refund(self, ctx: RequestContext, response: Dict[str, Any]) -> None:
        platform = ctx.commerce().platform
        order_id = int(ctx.param("order_id") or 0)
        is_online = filter_bool(ctx.param("is_online", False))
        items_raw = ctx.param("items")
        items = json.loads(items_raw) if isinstance(items_raw, str) and items_raw else items_raw
        total_refund = _optional_float(ctx.param("total_refund"))
        restock = filter_bool(ctx.param("restock_items", False))

        order = platform.get_order(order_id)
        if not order:
            raise CommerceEntityError("Invalid order ID.")
        gateway = str(order.get("payment_method") or "")
        if is_online and not platform.gateway_supports_refunds(gateway):
            raise CommerceEntityError(GATEWAY_NO_REFUNDS)

        refund = platform.create_refund(
            order_id,
            amount=total_refund if total_refund is not None else remaining_refund_amount(order),
            reason=str(ctx.param("refund_message") or ""),
            line_items=items or None,
            restock_items=restock,
            refund_payment=False,
        )
        if not refund or not refund.get("id"):
            response["error"] = {"message": "An error occurred while attempting to create the refund"}
            return
        refund_id = int(refund["id"])
        if not is_online:
            response["data"] = {"refunds": [refund_id]}
            return
        try:
            repaid = platform.refund_payment(order_id, refund)
        except Exception:
            platform.delete_refund(order_id, refund_id)
            raise
        if not repaid:
            platform.delete_refund(order_id, refund_id)
            response["error"] = {"message": GATEWAY_REPAY_FAILED}
            return
        response["data"] = {"refunds": [repaid]}


__all__ = ["filter_bool", "remaining_refund_amount", "check_request_key", "CreateRefundAction"]
