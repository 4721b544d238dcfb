"""``send_notification``: trigger store e-mails by class name."""
from __future__ import annotations

from typing import Any, Dict

from cartbridge.services.actions.base import WIRE_JSON, Action
from cartbridge.services.context import RequestContext
from cartbridge.utils.constants import CART_WOOCOMMERCE
from cartbridge.utils.logging import get_logger
from cartbridge.utils.params import as_list

LOG = get_logger("actions.notification")


class SendNotificationAction(Action):
    name = "send_notification"
    needs_link = False
    needs_cart = True
    wire = WIRE_JSON

    def execute(self, ctx: RequestContext) -> Any:
        response: Dict[str, Any] = {"error": False, "code": None, "message": None}
        if ctx.param("cartId") != CART_WOOCOMMERCE:
            return None
        notification = ctx.param("data_notification") or {}
        params = notification.get("msg_params") or {}
        try:
            platform = ctx.commerce().platform
            for email_class in as_list(notification.get("msg_classes")):
                if not platform.trigger_email(str(email_class), params.get(email_class)):
                    LOG.info("unknown e-mail class skipped: %s", email_class)
        except Exception as exc:
            response.update(error=True, code=getattr(exc, "error_code", 0), message=str(exc))
        return response


__all__ = ["SendNotificationAction"]
