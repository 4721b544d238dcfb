"""``platform_action``: call a named config-adapter or commerce operation.

The name is looked up in an explicit table; the adapter's own operations
win over commerce ones. ``data`` is an envelope-encoded JSON document.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from cartbridge.services.actions.base import WIRE_JSON, Action
from cartbridge.services.commerce.handlers import OPERATIONS as COMMERCE_OPERATIONS
from cartbridge.services.context import RequestContext
from cartbridge.utils.constants import ACTION_NOT_SUPPORTED
from cartbridge.utils.logging import get_logger

LOG = get_logger("actions.platform")

# platform_action name -> ConfigAdapter method
ADAPTER_OPERATIONS = {
    "getActiveModules": "get_active_modules",
}


def error_body(exc: BaseException) -> Dict[str, Any]:
    return {"message": str(exc), "code": getattr(exc, "error_code", 0)}


def resolve_operation(ctx: RequestContext, name: str) -> Optional[Callable[[Any], Any]]:
    if name in ADAPTER_OPERATIONS and ctx.adapter is not None:
        return getattr(ctx.adapter, ADAPTER_OPERATIONS[name])
    if name in COMMERCE_OPERATIONS:
        return ctx.commerce().operations()[name]
    return None


class PlatformAction(Action):
    name = "platform_action"
    needs_link = False
    needs_cart = True
    wire = WIRE_JSON

    def execute(self, ctx: RequestContext) -> Dict[str, Any]:
        name = str(ctx.param("platform_action") or "")
        known = name in ADAPTER_OPERATIONS or name in COMMERCE_OPERATIONS
        if not name or ctx.param("data") is None or not known:
            return {"error": {"message": ACTION_NOT_SUPPORTED}, "data": None}
        response: Dict[str, Any] = {"error": None, "data": None}
        try:
            operation = resolve_operation(ctx, name)
            if operation is None:
                return {"error": {"message": ACTION_NOT_SUPPORTED}, "data": None}
            response["data"] = operation(ctx.decode("data"))
        except Exception as exc:
            LOG.warning("platform action %s failed: %s", name, exc)
            response["error"] = error_body(exc)
        return response


__all__ = ["ADAPTER_OPERATIONS", "error_body", "resolve_operation", "PlatformAction"]
