"""Commerce entity operations reachable through ``platform_action``.

Every operation returns ``{"error_code", "error", "result"}``. Single-entity
operations catch at this boundary and report ``ERROR_CODE_INTERNAL_ERROR``;
batch operations record per-item ``errors`` lists and keep going.
"""
from __future__ import annotations

import base64
import binascii
import os
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from cartbridge.services.commerce.entities import (
    ProductDraft,
    attributes_from_meta,
    has_meta,
    meta_payload,
    meta_rows,
    validate_product_type,
)
from cartbridge.services.commerce.platform import (
    META_ENTITIES,
    PRODUCT_TYPES,
    CommercePlatform,
    PlatformApiError,
)
from cartbridge.services.commerce.translation import NullTranslationSync, TranslationSync
from cartbridge.errors import CommerceEntityError
from cartbridge.services.http_client import DEFAULT_TIMEOUT, new_session
from cartbridge.utils.constants import (
    ACTION_NOT_SUPPORTED,
    CART_WOOCOMMERCE,
    ERROR_CODE_ENTITY_NOT_FOUND,
    ERROR_CODE_INTERNAL_ERROR,
    ERROR_CODE_SUCCESS,
)
from cartbridge.utils.logging import get_logger
from cartbridge.utils.params import as_list

LOG = get_logger("commerce.handlers")

VARIATION_GALLERY_META = "woo_variation_gallery_images"
ATTRIBUTES_META_KEY = "_product_attributes"
BATCH_META_SETTERS = {"_sku": "sku", "_upsell_ids": "upsell_ids", "_crosssell_ids": "cross_sell_ids"}
POST_STATUSES = frozenset({"publish", "draft", "pending", "private", "future"})
IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "jpe", "gif", "png", "bmp", "tiff", "tif", "ico", "webp"})
_INLINE_IMAGE_PREFIX = "data:image/jpeg;base64,"

# platform_action name -> CommerceHandlers method
OPERATIONS = {
    "getPlugins": "get_plugins",
    "getImagesUrls": "get_images_urls",
    "sendEmailNotifications": "send_email_notifications",
    "setMetaData": "set_meta_data",
    "setOrderNotes": "set_order_notes",
    "orderUpdate": "order_update",
    "categoryAdd": "category_add",
    "categoryAddBatch": "category_add_batch",
    "categoryUpdate": "category_update",
    "categoryDelete": "category_delete",
    "imageAdd": "image_add",
    "productAddAction": "product_add_action",
    "productUpdateAction": "product_update_action",
    "productDeleteAction": "product_delete_action",
    "productAddBatchAction": "product_add_batch_action",
    "productUpdateBatchAction": "product_update_batch_action",
}


def _response(result: Any = None) -> Dict[str, Any]:
    return {"error_code": ERROR_CODE_SUCCESS, "error": None, "result": {} if result is None else result}


def _report_error(exc: BaseException) -> Dict[str, Any]:
    return {"error_code": ERROR_CODE_INTERNAL_ERROR, "error": str(exc), "result": {}}


def _item_error(exc: BaseException) -> Dict[str, Any]:
    return {"message": str(exc), "error_code": getattr(exc, "error_code", 0)}


def _items(value: Any) -> Dict[Any, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, list):
        return dict(enumerate(value))
    return {}


def _ids(value: Any) -> List[int]:
    return [int(v) for v in as_list(value) if str(v).strip().lstrip("-").isdigit() and int(v) > 0]


def _term_names(items: Any) -> List[Any]:
    names = [i.get("name") for i in as_list(items) if isinstance(i, Mapping) and i.get("name") is not None]
    return list(dict.fromkeys(names))


def _first_flag(items: Any, name: str) -> bool:
    rows = as_list(items)
    return bool(rows and isinstance(rows[0], Mapping) and rows[0].get(name))


class CommerceHandlers:
    """Commerce operations over a ``CommercePlatform``."""

    def __init__(
        self,
        platform: CommercePlatform,
        translation_sync: Optional[TranslationSync] = None,
        *,
        cart_id: str = CART_WOOCOMMERCE,
        http_session: Callable[[], requests.Session] = new_session,
    ) -> None:
        self.platform = platform
        self.translation_sync = translation_sync or NullTranslationSync()
        self.cart_id = cart_id
        self._http_session = http_session

    def operations(self) -> Dict[str, Callable[..., Any]]:
        """Bound operations by wire name, as posted in ``platform_action``."""
        return {name: getattr(self, attr) for name, attr in OPERATIONS.items()}

    # ---------------- info ---------------
    def get_plugins(self, data: Any = None) -> Dict[str, Any]:
        try:
            return _response({"plugins": self.platform.list_plugins()})
        except Exception as exc:
            return _report_error(exc)

    def get_images_urls(self, data: Any) -> Dict[str, Any]:
        response = _response()
        try:
            for collection in as_list(data):
                images = {}
                for image_id in as_list(collection.get("ids")):
                    images[image_id] = self.platform.media_url(int(image_id)) or False
                response["result"][collection.get("store_id")] = {"images": images}
        except Exception as exc:
            return _report_error(exc)
        return response

    def send_email_notifications(self, data: Mapping[str, Any]) -> bool:
        if self.cart_id != CART_WOOCOMMERCE:
            raise CommerceEntityError(ACTION_NOT_SUPPORTED)
        for notification in as_list(data.get("notifications")):
            if notification.get("wc_class"):
                if not self.platform.trigger_email(str(notification["wc_class"]), notification.get("data")):
                    return False
            else:
                self.platform.fire_action(str(notification.get("wc_action")), notification.get("data"))
        return True

    # ---------------- meta & orders ---------------
    def set_meta_data(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        try:
            entity_type = str(data.get("entity") or "")
            entity_id = int(data.get("entity_id") or 0)
            if entity_type not in META_ENTITIES:
                raise CommerceEntityError(f"Unknown entity {entity_type}")
            entity = self.platform.get_entity(entity_type, entity_id)
            if not entity:
                response["error_code"] = ERROR_CODE_ENTITY_NOT_FOUND
                response["error"] = entity_type
                return response
            add = dict(data.get("meta") or {})
            remove = [str(k) for k in as_list(data.get("unset_meta"))]
            if not add and not remove:
                return response
            updated = self.platform.update_entity_meta(entity_type, entity_id, add, remove)
            if add:
                response["result"]["meta"] = meta_rows(updated, add.keys())
            if remove:
                response["result"]["removed_meta"] = {key: not has_meta(updated, key) for key in remove}
        except Exception as exc:
            LOG.warning("setMetaData failed entity=%s err=%s", data.get("entity"), exc)
            return _report_error(exc)
        return response

    def set_order_notes(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        try:
            order = self.platform.get_order(int(data.get("order_id") or 0))
            if not order:
                response["error_code"] = ERROR_CODE_ENTITY_NOT_FOUND
                response["error"] = "Entity not found"
                return response
            to_name = self.platform.order_status_name(str(data.get("to") or ""))
            if not data.get("from"):
                note = f"Order status set to {to_name}."
            else:
                from_name = self.platform.order_status_name(str(data["from"]))
                note = f"Order status changed from {from_name} to {to_name}."
            self.platform.add_order_note(int(order["id"]), note, added_by_user=bool(data.get("added_by_user")))
        except Exception as exc:
            return _report_error(exc)
        return response

    def order_update(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        try:
            order_data = data.get("order") or {}
            order_id = int(order_data.get("id") or 0)
            order = self.platform.get_order(order_id)
            if not order:
                raise CommerceEntityError("Entity not found", ERROR_CODE_ENTITY_NOT_FOUND)
            if order_data.get("notify_customer") is False:
                LOG.warning("customer e-mails cannot be suppressed over the platform API order=%s", order_id)
            payload: Dict[str, Any] = {}
            status = order_data.get("status") or {}
            if status.get("id"):
                payload["status"] = status["id"]
            if order_data.get("completed_date"):
                payload["date_completed"] = order_data["completed_date"]
            if "customer_note" in order_data:
                payload["customer_note"] = order_data["customer_note"]
            if payload:
                self.platform.update_order(order_id, payload)
            if status.get("id") and status.get("transition_note"):
                self.platform.add_order_note(order_id, str(status["transition_note"]), added_by_user=True)
            if order_data.get("admin_comment"):
                self.platform.add_order_note(order_id, str(order_data["admin_comment"].get("text") or ""), customer_note=True)
            if order_data.get("admin_private_comment"):
                self.platform.add_order_note(
                    order_id, str(order_data["admin_private_comment"].get("text") or ""), added_by_user=True
                )
            response["result"] = True
        except Exception as exc:
            return _report_error(exc)
        return response

    # ---------------- categories ---------------
    def category_add(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        meta = data.get("meta_data") or {}
        payload: Dict[str, Any] = {"name": meta.get("tag-name")}
        for key in ("slug", "description"):
            if meta.get(key) is not None:
                payload[key] = meta[key]
        if meta.get("parent"):
            payload["parent"] = int(meta["parent"])
        if meta.get("icl_tax_product_cat_language"):
            payload["lang"] = meta["icl_tax_product_cat_language"]
        if meta.get("icl_translation_of"):
            payload["translation_of"] = int(meta["icl_translation_of"])
        try:
            created = self.platform.create_category(payload)
        except PlatformApiError as exc:
            LOG.warning("category create failed err=%s", exc)
            return _report_error(CommerceEntityError("[BRIDGE ERROR]: Can't create category!"))
        except Exception as exc:
            return _report_error(exc)
        return {"term_id": created.get("id")}

    def category_add_batch(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        for key, item in _items(data.get("data")).items():
            entry: Dict[str, Any] = {"id": None}
            response["result"][key] = entry
            try:
                payload: Dict[str, Any] = {"name": item.get("name")}
                for field in ("description", "slug", "menu_order"):
                    if item.get(field) is not None:
                        payload[field] = item[field]
                if item.get("parent") is not None:
                    payload["parent"] = int(item["parent"] or 0)
                image = item.get("image")
                if isinstance(image, Mapping) and image.get("src"):
                    payload["image"] = {k: image[k] for k in ("src", "alt", "name") if image.get(k)}
                try:
                    created = self.platform.create_category(payload)
                except PlatformApiError as exc:
                    raise CommerceEntityError(f"Can't create category! Error: {exc}", exc.error_code) from exc
                entry["id"] = int(created["id"])
            except Exception as exc:
                LOG.info("category batch item %s failed: %s", key, exc)
                entry.setdefault("errors", []).append(_item_error(exc))
        return response

    def category_update(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        try:
            payload = {k: data[k] for k in ("name", "slug", "description") if k in data}
            if "parent" in data:
                payload["parent"] = int(data["parent"] or 0)
            self.platform.update_category(int(data.get("tag_ID") or 0), payload)
            response["result"] = True
        except Exception as exc:
            return _report_error(exc)
        return response

    def category_delete(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        try:
            self.platform.delete_category(int(data.get("entity_id") or 0))
            response["result"] = True
        except Exception as exc:
            return _report_error(exc)
        return response

    # ---------------- images ---------------
    def _image_bytes(self, data: Mapping[str, Any]) -> tuple:
        filename = os.path.basename(str(data.get("name") or "image.jpg"))
        if data.get("content"):
            raw = str(data["content"]).replace(_INLINE_IMAGE_PREFIX, "").replace(" ", "+")
            try:
                return filename, base64.b64decode(raw, validate=False)
            except (binascii.Error, ValueError) as exc:
                raise CommerceEntityError(f"[BRIDGE ERROR]: File save failed {filename}!") from exc
        source = str(data.get("source") or "")
        if not source:
            raise CommerceEntityError("[BRIDGE ERROR]: No image has been uploaded!")
        if not source.lower().startswith(("http://", "https://")):
            raise CommerceEntityError(f"[BRIDGE ERROR]: Invalid URL {source}!")
        extension = os.path.splitext(filename)[1].lstrip(".").lower()
        if extension not in IMAGE_EXTENSIONS:
            raise CommerceEntityError("IMAGE NOT SUPPORTED")
        try:
            resp = self._http_session().get(source, timeout=DEFAULT_TIMEOUT)
        except requests.RequestException as exc:
            raise CommerceEntityError(
                f"[BRIDGE ERROR]: Some error occurred while retrieving the remote image by URL: {source}! Error: {exc}"
            ) from exc
        if resp.status_code != 200:
            raise CommerceEntityError(
                f"[BRIDGE ERROR]: Some error occurred while retrieving the remote image by URL: {source}! "
                f"Error: HTTP {resp.status_code}"
            )
        return filename, resp.content

    def _with_translations(self, ids: List[int]) -> List[int]:
        if not self.translation_sync.enabled:
            return ids
        expanded = list(ids)
        for entity_id in ids:
            expanded.extend(self.translation_sync.translations(self.platform, entity_id).values())
        return list(dict.fromkeys(expanded))

    def image_add(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        try:
            product_ids = _ids(data.get("product_ids"))
            variant_ids = _ids(data.get("variant_ids"))
            filename, content = self._image_bytes(data)
            if not content:
                raise CommerceEntityError("[BRIDGE ERROR]: No image has been uploaded!")
            media = self.platform.upload_media(
                filename, content, alt=str(data.get("alt") or ""), parent_id=product_ids[0] if product_ids else None
            )
            attachment_id = int(media["id"])
            product_ids = self._with_translations(product_ids)
            variant_ids = self._with_translations(variant_ids)

            for product_id in product_ids:
                current = self.platform.get_product(product_id)
                if current is None:
                    continue
                draft = ProductDraft(str(current.get("type") or "simple"), current)
                if data.get("is_thumbnail"):
                    draft.set("image_id", attachment_id)
                if data.get("is_gallery") and current.get("type") != "variation":
                    gallery = [img.get("id") for img in (current.get("images") or [])[1:]]
                    draft.set("gallery_image_ids", list(dict.fromkeys(gallery + [attachment_id])))
                payload = draft.to_payload()
                if payload:
                    self.platform.update_product(product_id, payload)

            for variant_id in variant_ids:
                payload: Dict[str, Any] = {}
                if data.get("is_thumbnail"):
                    payload["image"] = {"id": attachment_id}
                if data.get("is_gallery"):
                    current = self.platform.get_product(variant_id) or {}
                    existing = next(
                        (m.get("value") for m in current.get("meta_data") or [] if m.get("key") == VARIATION_GALLERY_META),
                        None,
                    )
                    gallery = list(dict.fromkeys([attachment_id] + _ids(existing)))
                    payload["meta_data"] = meta_payload({VARIATION_GALLERY_META: gallery}, current)
                if payload:
                    self.platform.update_product(variant_id, payload)

            url = self.platform.media_url(attachment_id) or media.get("source_url") or ""
            home = self.platform.home_url()
            response["result"] = {"image_id": attachment_id, "src": url.replace(home, "") if home else url}
        except Exception as exc:
            LOG.warning("imageAdd failed err=%s", exc)
            return _report_error(exc)
        return response

    # ---------------- products ---------------
    def _batch_data(self, draft: ProductDraft, data: Dict[str, Any], meta: Mapping[str, Any]) -> Dict[str, Any]:
        for meta_key, prop in BATCH_META_SETTERS.items():
            if meta_key not in meta:
                continue
            value = meta[meta_key]
            data[prop] = _ids(value) if prop != "sku" else str(value or "").strip()
        if "status" in data and data["status"] not in POST_STATUSES:
            data["status"] = "draft"
        if data.get("virtual") is True:
            for dimension in ("weight", "height", "length", "width"):
                data[dimension] = ""
        if draft.product_type in ("variable", "grouped"):
            for price_field in ("regular_price", "sale_price", "date_on_sale_from", "date_on_sale_to"):
                data[price_field] = ""
        if "in_stock" in data:
            in_stock = data.pop("in_stock")
            if draft.product_type != "variable":
                data["stock_status"] = "instock" if in_stock is True else "outofstock"
        if "manage_stock" in data and not data["manage_stock"]:
            data["stock_quantity"] = None
        return data

    def _import_product(
        self,
        product_data: Mapping[str, Any],
        product_id: int = 0,
        *,
        batch: bool = False,
        created: Optional[List[int]] = None,
    ) -> Dict[str, Any]:
        current = self.platform.get_product(product_id) if product_id else None
        if product_id and current is None:
            raise CommerceEntityError("Invalid product.")
        requested = product_data.get("type")
        if batch:
            if requested in PRODUCT_TYPES:
                product_type = str(requested)
            else:
                product_type = str((current or {}).get("type") or "simple")
        else:
            product_type = validate_product_type(requested)

        draft = ProductDraft(product_type, current)
        data = dict(product_data.get("data") or {})
        meta = dict(product_data.get("meta_data") or {})
        if batch:
            data = self._batch_data(draft, data, meta)
        draft.apply(data)
        meta_changes = draft.meta_changes(meta)

        if ATTRIBUTES_META_KEY in meta:
            draft.extra["attributes"] = attributes_from_meta(meta[ATTRIBUTES_META_KEY])
        skipped = {ATTRIBUTES_META_KEY} | (set(BATCH_META_SETTERS) if batch else set())
        draft.meta = {k: v for k, v in meta.items() if k not in skipped}
        if batch and product_data.get("images"):
            images = [img for img in as_list(product_data["images"]) if img]
            draft.extra["images"] = [{"id": int(i["id"])} if i.get("id") else {"src": i.get("src")} for i in images]

        payload = draft.to_payload()
        if draft.id:
            product = self.platform.update_product(draft.id, payload) if payload else dict(current or {})
        else:
            product = self.platform.create_product(payload)
            if created is not None:
                created.append(int(product["id"]))
        new_id = int(product["id"])

        for taxonomy, items in (product_data.get("terms_data") or {}).items():
            self.platform.set_product_terms(new_id, taxonomy, _term_names(items), _first_flag(items, "append"))

        internal = product_data.get("internal_data") or {}
        if not internal.get("no_wpml_sync"):
            self.translation_sync.sync(self.platform, product, product_data, meta_changes)
        for cached_id in [new_id] + list(self.translation_sync.translations(self.platform, new_id).values()):
            self.platform.clear_product_cache(cached_id)
        return product

    def _clean_garbage(self, product_id: int) -> None:
        """Delete a partially created product and its translations."""
        if not product_id:
            return
        try:
            targets = list(self.translation_sync.translations(self.platform, product_id).values())
        except Exception:
            LOG.warning("translation lookup failed during cleanup product=%s", product_id, exc_info=True)
            targets = []
        for target in list(dict.fromkeys([product_id] + targets)):
            try:
                self.platform.delete_product(target)
            except Exception as exc:
                LOG.warning("cleanup delete failed product=%s err=%s", target, exc)

    def product_add_action(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        created: List[int] = []
        try:
            product = self._import_product(data.get("product_data") or {}, created=created)
            response["result"]["product_id"] = int(product["id"])
        except Exception as exc:
            LOG.warning("productAdd failed err=%s", exc)
            for product_id in created:
                self._clean_garbage(product_id)
            return _report_error(exc)
        return response

    def product_update_action(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        try:
            product_data = data.get("product_data") or {}
            product = self._import_product(product_data, int(product_data.get("id") or 0))
            response["result"]["product_id"] = int(product["id"])
        except Exception as exc:
            LOG.warning("productUpdate failed err=%s", exc)
            return _report_error(exc)
        return response

    def _batch_import(self, data: Mapping[str, Any], *, rollback: bool) -> Dict[str, Any]:
        response = _response()
        for key, item in _items(data.get("data")).items():
            entry: Dict[str, Any] = {"id": None}
            response["result"][key] = entry
            created: List[int] = []
            try:
                product_data = item.get("product_data") or {}
                product = self._import_product(
                    product_data, int(product_data.get("id") or 0), batch=True, created=created
                )
                entry["id"] = int(product["id"])
            except Exception as exc:
                LOG.info("product batch item %s failed: %s", key, exc)
                if rollback:
                    for product_id in created:
                        self._clean_garbage(product_id)
                entry.setdefault("errors", []).append(_item_error(exc))
        return response

    def product_add_batch_action(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return self._batch_import(data, rollback=True)

    def product_update_batch_action(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return self._batch_import(data, rollback=False)

    def product_delete_action(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = _response()
        raw = data.get("data")
        items = _items(raw) if isinstance(raw, (Mapping, list)) else {0: {"id": raw}}
        for key, item in items.items():
            entry: Dict[str, Any] = {}
            response["result"][key] = entry
            try:
                product_id = int((item.get("id") if isinstance(item, Mapping) else item) or 0)
                entry["id"] = product_id
                targets = [product_id] + list(self.translation_sync.translations(self.platform, product_id).values())
                for target in dict.fromkeys(targets):
                    product = self.platform.get_product(target)
                    if not product:
                        continue
                    if product.get("type") == "variable":
                        for child_id in product.get("variations") or []:
                            self.platform.delete_product(int(child_id))
                    self.platform.delete_product(target)
                    if product.get("parent_id"):
                        self.platform.clear_product_cache(int(product["parent_id"]))
            except Exception as exc:
                entry.setdefault("errors", []).append(_item_error(exc))
        return response


__all__ = ["VARIATION_GALLERY_META", "OPERATIONS", "CommerceHandlers"]
