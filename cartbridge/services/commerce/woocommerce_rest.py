"""WooCommerce REST implementation of the commerce platform collaborator.

Talks to ``/wp-json/wc/v3`` with the store's consumer key/secret and to
``/wp-json/wp/v2`` (media, plugins, term meta) with a WordPress application
password when one is configured. Multilingual routes rely on the
``translations`` / ``lang`` / ``translation_of`` fields the WPML WooCommerce
add-on puts on product resources.
"""
from __future__ import annotations

import mimetypes
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import requests

from cartbridge import config as app_config
from cartbridge.services.commerce.entities import meta_payload
from cartbridge.services.commerce.platform import (
    ENTITY_CATEGORY,
    ENTITY_CUSTOMER,
    ENTITY_ORDER,
    ENTITY_PRODUCT,
    ENTITY_VARIANT,
    CommercePlatform,
    PlatformApiError,
)
from cartbridge.utils.logging import get_logger

LOG = get_logger("commerce.wc_rest")

WC_NAMESPACE = "wc/v3"
WP_NAMESPACE = "wp/v2"

# Bundled offline gateways settle outside the store and cannot repay refunds.
OFFLINE_GATEWAYS = frozenset({"bacs", "cheque", "cod"})

EMAIL_TEMPLATES = {
    "WC_Email_New_Order": "new_order",
    "WC_Email_Cancelled_Order": "cancelled_order",
    "WC_Email_Failed_Order": "failed_order",
    "WC_Email_Customer_On_Hold_Order": "customer_on_hold_order",
    "WC_Email_Customer_Processing_Order": "customer_processing_order",
    "WC_Email_Customer_Completed_Order": "customer_completed_order",
    "WC_Email_Customer_Refunded_Order": "customer_refunded_order",
    "WC_Email_Customer_Invoice": "customer_invoice",
    "WC_Email_Customer_Note": "customer_note",
}

# Fields copied onto a fresh per-language duplicate.
_DUPLICATE_FIELDS = (
    "type", "name", "slug", "status", "featured", "catalog_visibility", "description",
    "short_description", "sku", "regular_price", "sale_price", "tax_status", "tax_class",
    "manage_stock", "stock_quantity", "stock_status", "backorders", "weight", "dimensions",
    "attributes", "default_attributes", "images", "menu_order", "virtual", "downloadable",
    "meta_data",
)


def _refund_line_items(items: Any) -> List[Dict[str, Any]]:
    """Accepts REST rows or ``{item_id: {qty, refund_total, refund_tax}}``."""
    if not items:
        return []
    if isinstance(items, list):
        return [dict(row) for row in items if isinstance(row, Mapping)]
    rows: List[Dict[str, Any]] = []
    for item_id, line in items.items():
        if not isinstance(line, Mapping):
            continue
        row: Dict[str, Any] = {"id": int(item_id)}
        if line.get("qty") is not None:
            row["quantity"] = line.get("qty")
        if line.get("refund_total") is not None:
            row["refund_total"] = float(line["refund_total"] or 0)
        taxes = line.get("refund_tax")
        if isinstance(taxes, Mapping):
            row["refund_tax"] = [{"id": int(k), "refund_total": float(v or 0)} for k, v in taxes.items()]
        rows.append(row)
    return rows


class WooCommerceRestPlatform(CommercePlatform):
    def __init__(
        self,
        base_url: str,
        consumer_key: Optional[str],
        consumer_secret: Optional[str],
        *,
        wp_auth: Optional[Tuple[str, str]] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._wc_auth = (consumer_key, consumer_secret) if consumer_key and consumer_secret else None
        self._wp_auth = wp_auth or self._wc_auth
        self.timeout = timeout
        self.session = session or requests.Session()
        self._variation_parents: Dict[int, int] = {}

    # ---------------- transport ---------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        namespace: str = WC_NAMESPACE,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        data: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}/{namespace}/{path.lstrip('/')}"
        auth = self._wc_auth if namespace == WC_NAMESPACE else self._wp_auth
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                headers=dict(headers or {}),
                auth=auth,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            LOG.warning("platform call failed %s %s err=%s", method, path, exc)
            raise PlatformApiError(str(exc)) from exc
        try:
            body = resp.json()
        except ValueError:
            body = {"raw": resp.text}
        if resp.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            code = body.get("code") if isinstance(body, dict) else None
            LOG.info("platform rejected %s %s status=%s code=%s", method, path, resp.status_code, code)
            raise PlatformApiError(message or f"HTTP {resp.status_code}", code or 0, resp.status_code)
        return body

    def _get_or_none(self, path: str, *, namespace: str = WC_NAMESPACE) -> Optional[Dict[str, Any]]:
        try:
            return self._request("GET", path, namespace=namespace)
        except PlatformApiError as exc:
            if exc.status in (400, 404):
                return None
            raise

    def _product_path(self, product_id: int) -> str:
        parent = self._variation_parents.get(int(product_id))
        if parent:
            return f"products/{parent}/variations/{product_id}"
        return f"products/{product_id}"

    # ---------------- products ---------------
    def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        product = self._get_or_none(f"products/{int(product_id)}")
        if product and product.get("type") == "variation" and product.get("parent_id"):
            self._variation_parents[int(product["id"])] = int(product["parent_id"])
        return product

    def create_product(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        body = dict(payload)
        if body.get("type") == "variation" and body.get("parent_id"):
            parent = int(body.pop("parent_id"))
            body.pop("type", None)
            created = self._request("POST", f"products/{parent}/variations", json=body)
            self._variation_parents[int(created["id"])] = parent
            return created
        return self._request("POST", "products", json=body)

    def update_product(self, product_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", self._product_path(product_id), json=dict(payload))

    def delete_product(self, product_id: int) -> None:
        self._request("DELETE", self._product_path(product_id), params={"force": "true"})
        self._variation_parents.pop(int(product_id), None)

    def _tag_ids(self, names: Iterable[Any]) -> List[int]:
        ids = []
        for name in names:
            found = self._request("GET", "products/tags", params={"search": str(name), "per_page": 100})
            match = next((t for t in found or [] if t.get("name") == str(name)), None)
            if match is None:
                match = self._request("POST", "products/tags", json={"name": str(name)})
            ids.append(int(match["id"]))
        return ids

    def set_product_terms(self, product_id: int, taxonomy: str, names: List[Any], append: bool) -> None:
        if taxonomy == "product_cat":
            field, ids = "categories", [int(n) for n in names if str(n).isdigit()]
        elif taxonomy == "product_tag":
            field, ids = "tags", self._tag_ids(names)
        else:
            LOG.warning("taxonomy %s cannot be assigned over REST; skipped product=%s", taxonomy, product_id)
            return
        if append:
            current = self.get_product(product_id) or {}
            existing = [int(row["id"]) for row in current.get(field) or [] if row.get("id")]
            ids = list(dict.fromkeys(existing + ids))
        self.update_product(product_id, {field: [{"id": i} for i in ids]})

    def clear_product_cache(self, product_id: int) -> None:
        # Writes through REST already clear product transients server-side.
        LOG.debug("product cache cleared id=%s", product_id)

    def product_translations(self, product_id: int) -> Dict[str, int]:
        product = self.get_product(product_id) or {}
        raw = product.get("translations") or {}
        return {str(lang): int(tid) for lang, tid in raw.items() if str(tid).isdigit()}

    def duplicate_product(self, product_id: int, language: str) -> int:
        source = self.get_product(product_id)
        if source is None:
            raise PlatformApiError("Invalid product.", "woocommerce_rest_product_invalid_id", 404)
        body = {k: source[k] for k in _DUPLICATE_FIELDS if k in source}
        body["meta_data"] = [{"key": m["key"], "value": m.get("value")} for m in body.get("meta_data") or []]
        body["images"] = [{"id": img["id"]} for img in body.get("images") or [] if img.get("id")]
        body.update({"lang": language, "translation_of": int(product_id)})
        return int(self._request("POST", "products", json=body)["id"])

    # ---------------- orders ---------------
    def get_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        return self._get_or_none(f"orders/{int(order_id)}")

    def update_order(self, order_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"orders/{int(order_id)}", json=dict(payload))

    def add_order_note(
        self, order_id: int, note: str, *, customer_note: bool = False, added_by_user: bool = False
    ) -> int:
        created = self._request(
            "POST",
            f"orders/{int(order_id)}/notes",
            json={"note": note, "customer_note": bool(customer_note), "added_by_user": bool(added_by_user)},
        )
        return int(created.get("id") or 0)

    # ---------------- refunds ---------------
    def gateway_supports_refunds(self, gateway_id: str) -> bool:
        if not gateway_id or gateway_id in OFFLINE_GATEWAYS:
            return False
        gateway = self._get_or_none(f"payment_gateways/{gateway_id}")
        return bool(gateway and gateway.get("enabled"))

    def create_refund(
        self,
        order_id: int,
        *,
        amount: float,
        reason: str = "",
        line_items: Optional[Iterable[Mapping[str, Any]]] = None,
        restock_items: bool = False,
        refund_payment: bool = False,
    ) -> Dict[str, Any]:
        body = {
            "amount": f"{float(amount):.2f}",
            "reason": reason,
            "line_items": _refund_line_items(line_items),
            "api_refund": bool(refund_payment),
            "api_restock": bool(restock_items),
        }
        return self._request("POST", f"orders/{int(order_id)}/refunds", json=body)

    def refund_payment(self, order_id: int, refund: Mapping[str, Any]) -> Optional[int]:
        """Re-issues ``refund`` with the gateway call enabled (REST has no separate repay step)."""
        self.delete_refund(order_id, int(refund["id"]))
        try:
            repaid = self.create_refund(
                order_id,
                amount=abs(float(refund.get("amount") or 0)),
                reason=str(refund.get("reason") or ""),
                line_items=refund.get("line_items") or [],
                restock_items=False,
                refund_payment=True,
            )
        except PlatformApiError as exc:
            LOG.warning("gateway refund failed order=%s err=%s", order_id, exc)
            return None
        return int(repaid.get("id") or 0) or None

    def delete_refund(self, order_id: int, refund_id: int) -> None:
        try:
            self._request("DELETE", f"orders/{int(order_id)}/refunds/{int(refund_id)}", params={"force": "true"})
        except PlatformApiError as exc:
            if exc.status != 404:
                raise

    # ---------------- meta ---------------
    def _entity_path(self, entity: str, entity_id: int) -> str:
        if entity in (ENTITY_PRODUCT, ENTITY_VARIANT):
            return self._product_path(entity_id)
        if entity == ENTITY_ORDER:
            return f"orders/{int(entity_id)}"
        if entity == ENTITY_CUSTOMER:
            return f"customers/{int(entity_id)}"
        raise PlatformApiError(f"Unknown entity {entity}")

    def get_entity(self, entity: str, entity_id: int) -> Optional[Dict[str, Any]]:
        if entity in (ENTITY_PRODUCT, ENTITY_VARIANT):
            return self.get_product(entity_id)
        if entity == ENTITY_CATEGORY:
            return self._get_or_none(f"products/categories/{int(entity_id)}")
        return self._get_or_none(self._entity_path(entity, entity_id))

    def update_entity_meta(
        self, entity: str, entity_id: int, add: Mapping[str, Any], remove: Iterable[str]
    ) -> Dict[str, Any]:
        changes: Dict[str, Any] = dict(add)
        for key in remove:
            changes[str(key)] = None
        if entity == ENTITY_CATEGORY:
            term = self._request(
                "POST", f"product_cat/{int(entity_id)}", namespace=WP_NAMESPACE, json={"meta": changes}
            )
            meta = term.get("meta") or {}
            term["meta_data"] = [{"id": None, "key": k, "value": v} for k, v in meta.items() if v not in (None, "", [])]
            return term
        current = self.get_entity(entity, entity_id)
        return self._request("PUT", self._entity_path(entity, entity_id), json={"meta_data": meta_payload(changes, current)})

    # ---------------- categories ---------------
    def create_category(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "products/categories", json=dict(payload))

    def update_category(self, category_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"products/categories/{int(category_id)}", json=dict(payload))

    def delete_category(self, category_id: int) -> None:
        self._request("DELETE", f"products/categories/{int(category_id)}", params={"force": "true"})

    # ---------------- media ---------------
    def upload_media(
        self, filename: str, content: bytes, *, alt: str = "", parent_id: Optional[int] = None
    ) -> Dict[str, Any]:
        mime = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        media = self._request(
            "POST",
            "media",
            namespace=WP_NAMESPACE,
            data=content,
            headers={"Content-Type": mime, "Content-Disposition": f'attachment; filename="{filename}"'},
        )
        extra: Dict[str, Any] = {}
        if alt:
            extra["alt_text"] = alt
        if parent_id:
            extra["post"] = int(parent_id)
        if extra:
            media = self._request("POST", f"media/{int(media['id'])}", namespace=WP_NAMESPACE, json=extra)
        return media

    def media_url(self, media_id: int) -> Optional[str]:
        media = self._get_or_none(f"media/{int(media_id)}", namespace=WP_NAMESPACE)
        return media.get("source_url") if media else None

    def home_url(self) -> str:
        return app_config.home_url() or app_config.site_url() or ""

    # ---------------- misc ---------------
    def list_plugins(self) -> List[Dict[str, Any]]:
        return self._request("GET", "plugins", namespace=WP_NAMESPACE) or []

    def trigger_email(self, email_class: str, args: Any) -> bool:
        template = EMAIL_TEMPLATES.get(email_class)
        if template is None:
            return False
        order_id = args[0] if isinstance(args, (list, tuple)) and args else args
        self._request("POST", f"orders/{int(order_id)}/actions/send_email", json={"template_id": template})
        return True

    def shipment_providers(self) -> Optional[Dict[str, Dict[str, str]]]:
        # The tracking add-on scopes the providers route under an order id it never reads.
        return self._get_or_none("orders/0/shipment-trackings/providers", namespace="wc-shipment-tracking/v3")


def build_platform(session: Optional[requests.Session] = None) -> WooCommerceRestPlatform:
    base = app_config.wc_api_url()
    if not base:
        raise PlatformApiError("WooCommerce API URL is not configured")
    user, password = app_config.wp_api_user(), app_config.wp_app_password()
    return WooCommerceRestPlatform(
        base,
        app_config.wc_consumer_key(),
        app_config.wc_consumer_secret(),
        wp_auth=(user, password) if user and password else None,
        timeout=app_config.wc_api_timeout(),
        session=session,
    )


__all__ = ["OFFLINE_GATEWAYS", "EMAIL_TEMPLATES", "WooCommerceRestPlatform", "build_platform"]
