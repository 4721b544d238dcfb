"""``getShipmentProviders``: tracking providers known to the store."""
from __future__ import annotations

import re
import unicodedata
from typing import Any, Dict

from cartbridge.services.actions.base import WIRE_JSON, Action
from cartbridge.services.actions.platform_action import error_body
from cartbridge.services.context import RequestContext
from cartbridge.utils.constants import ACTION_NOT_SUPPORTED, CART_TYPE_WORDPRESS, CART_WOOCOMMERCE

_NON_SLUG_RE = re.compile(r"[^a-z0-9_\-]+")
_DASHES_RE = re.compile(r"-{2,}")


def slugify(value: str) -> str:
    ascii_value = unicodedata.normalize("NFKD", str(value)).encode("ascii", "ignore").decode("ascii")
    slug = _NON_SLUG_RE.sub("-", ascii_value.lower().strip())
    return _DASHES_RE.sub("-", slug).strip("-")


class ShipmentProvidersAction(Action):
    name = "getShipmentProviders"
    needs_link = False
    wire = WIRE_JSON

    def execute(self, ctx: RequestContext) -> Dict[str, Any]:
        response: Dict[str, Any] = {"error": None, "data": None}
        cfg = ctx.config
        if cfg.cart_type != CART_TYPE_WORDPRESS or cfg.cart_id != CART_WOOCOMMERCE:
            response["error"] = {"message": ACTION_NOT_SUPPORTED}
            return response
        try:
            providers = ctx.commerce().platform.shipment_providers()
            if providers is None:
                response["error"] = {"message": "File does not exist"}
                return response
            data: Dict[str, Any] = {}
            for country, entries in providers.items():
                for provider_name, url in (entries or {}).items():
                    data[slugify(provider_name)] = {"name": provider_name, "country": country, "url": url}
            response["data"] = data
        except Exception as exc:
            response["error"] = error_body(exc)
        return response


__all__ = ["slugify", "ShipmentProvidersAction"]
