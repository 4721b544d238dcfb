"""Local product model: recognised setters, change tracking, REST payloads."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from cartbridge.db.repositories.options_repo import maybe_unserialize
from cartbridge.services.commerce.platform import PRODUCT_TYPES
from cartbridge.errors import CommerceEntityError

# Properties that have a setter on the platform's product object.
PRODUCT_PROPERTIES = frozenset({
    "name", "slug", "date_created", "date_modified", "status", "featured",
    "catalog_visibility", "description", "short_description", "sku", "price",
    "regular_price", "sale_price", "date_on_sale_from", "date_on_sale_to",
    "total_sales", "tax_status", "tax_class", "manage_stock", "stock_quantity",
    "stock_status", "backorders", "low_stock_amount", "sold_individually",
    "weight", "length", "width", "height", "upsell_ids", "cross_sell_ids",
    "parent_id", "reviews_allowed", "purchase_note", "attributes",
    "default_attributes", "menu_order", "post_password", "virtual",
    "downloadable", "category_ids", "tag_ids", "shipping_class_id", "downloads",
    "image_id", "gallery_image_ids", "download_limit", "download_expiry",
    "rating_counts", "average_rating", "review_count", "product_url",
    "button_text", "children",
})

# Stored on the post row itself, never as product meta.
POST_LEVEL_FIELDS = frozenset({
    "description", "short_description", "name", "parent_id", "reviews_allowed",
    "status", "menu_order", "date_created", "date_modified", "slug", "post_password",
})

_DIMENSIONS = ("length", "width", "height")
_RENAMED = {"children": "grouped_products"}
_READ_ONLY = frozenset({"date_modified", "price", "total_sales", "rating_counts", "average_rating", "review_count"})


def product_class_name(product_type: str) -> str:
    return "WC_Product_" + "_".join(part.capitalize() for part in str(product_type).split("-"))


def validate_product_type(product_type: Any) -> str:
    value = str(product_type or "")
    if value not in PRODUCT_TYPES:
        raise CommerceEntityError(f"[BRIDGE ERROR]: Class {product_class_name(value)} not exist!")
    return value


def _meta_index(entity: Optional[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = {}
    for row in (entity or {}).get("meta_data") or []:
        if isinstance(row, Mapping) and "key" in row:
            index.setdefault(str(row["key"]), dict(row))
    return index


def meta_payload(values: Mapping[str, Any], current: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    """REST ``meta_data`` rows; a None value deletes an existing key."""
    existing = _meta_index(current)
    rows: List[Dict[str, Any]] = []
    for key, value in values.items():
        if value is None:
            if key in existing and existing[key].get("id"):
                rows.append({"id": existing[key]["id"], "key": key, "value": None})
            continue
        row: Dict[str, Any] = {"key": key, "value": value}
        if key in existing and existing[key].get("id"):
            row["id"] = existing[key]["id"]
        rows.append(row)
    return rows


def attributes_from_meta(raw: Any) -> List[Dict[str, Any]]:
    """Stored ``_product_attributes`` (PHP-serialized or dict) as REST attributes."""
    value = maybe_unserialize(raw)
    if not isinstance(value, Mapping):
        return []
    attributes = []
    for item in value.values():
        if not isinstance(item, Mapping):
            continue
        name = str(item.get("name") or "")
        if not name:
            continue
        text = str(item.get("value") or "")
        options = [] if item.get("is_taxonomy") else list(dict.fromkeys(o.strip() for o in text.split("|") if o.strip()))
        attributes.append({
            "name": name,
            "options": options,
            "position": int(item.get("position") or 0),
            "visible": bool(int(item.get("is_visible") or 0)),
            "variation": bool(int(item.get("is_variation") or 0)),
        })
    return attributes


class ProductDraft:
    """Pending writes to one product, in the platform's property names."""

    def __init__(self, product_type: str, current: Optional[Mapping[str, Any]] = None) -> None:
        self.product_type = product_type
        self.current: Dict[str, Any] = dict(current or {})
        self._changes: Dict[str, Any] = {}
        self.meta: Dict[str, Any] = {}
        self.extra: Dict[str, Any] = {}

    @property
    def id(self) -> int:
        return int(self.current.get("id") or 0)

    def _current_value(self, prop: str) -> Any:
        if prop in _DIMENSIONS:
            return (self.current.get("dimensions") or {}).get(prop)
        if prop == "image_id":
            images = self.current.get("images") or []
            return images[0].get("id") if images else None
        if prop == "gallery_image_ids":
            return [img.get("id") for img in (self.current.get("images") or [])[1:]]
        if prop in ("category_ids", "tag_ids"):
            key = "categories" if prop == "category_ids" else "tags"
            return [row.get("id") for row in self.current.get(key) or []]
        if prop == "parent_id":
            return self.current.get("parent_id")
        return self.current.get(_RENAMED.get(prop, prop))

    def set(self, prop: str, value: Any) -> bool:
        """Apply a recognised property; unknown names are ignored."""
        if prop not in PRODUCT_PROPERTIES:
            return False
        if self.current and self._current_value(prop) == value:
            self._changes.pop(prop, None)
            return True
        self._changes[prop] = value
        return True

    def apply(self, data: Mapping[str, Any]) -> None:
        for prop, value in data.items():
            self.set(str(prop), value)

    def get_changes(self) -> Dict[str, Any]:
        return dict(self._changes)

    def meta_changes(self, meta_data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Changed non post-level properties, then request meta for keys not already present."""
        changes = {k: v for k, v in self._changes.items() if k not in POST_LEVEL_FIELDS}
        for key, value in (meta_data or {}).items():
            changes.setdefault(key, value)
        return changes

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if not self.id:
            payload["type"] = self.product_type
        images: Optional[List[Dict[str, Any]]] = None
        for prop, value in self._changes.items():
            if prop in _READ_ONLY:
                continue
            if prop in _DIMENSIONS:
                payload.setdefault("dimensions", {})[prop] = "" if value is None else str(value)
            elif prop == "image_id":
                images = images if images is not None else self._current_images()
                head = [{"id": int(value)}] if value else []
                images = head + images[1:]
            elif prop == "gallery_image_ids":
                images = images if images is not None else self._current_images()
                images = images[:1] + [{"id": int(i)} for i in value or [] if i]
            elif prop in ("category_ids", "tag_ids"):
                key = "categories" if prop == "category_ids" else "tags"
                payload[key] = [{"id": int(i)} for i in value or [] if i]
            else:
                payload[_RENAMED.get(prop, prop)] = value
        if images is not None:
            payload["images"] = images
        if self.meta:
            rows = meta_payload(self.meta, self.current)
            if rows:
                payload["meta_data"] = rows
        payload.update(self.extra)
        return payload

    def _current_images(self) -> List[Dict[str, Any]]:
        return [{"id": img.get("id")} for img in self.current.get("images") or [] if img.get("id")]


def meta_rows(entity: Optional[Mapping[str, Any]], keys: Iterable[str]) -> List[Dict[str, Any]]:
    """Meta rows of ``entity`` for ``keys`` as ``{meta_id, meta_key, meta_value}``."""
    wanted = set(keys)
    rows = []
    for row in (entity or {}).get("meta_data") or []:
        if isinstance(row, Mapping) and row.get("key") in wanted:
            rows.append({"meta_id": row.get("id"), "meta_key": row.get("key"), "meta_value": row.get("value")})
    return rows


def has_meta(entity: Optional[Mapping[str, Any]], key: str) -> bool:
    row = _meta_index(entity).get(key)
    return bool(row and row.get("value"))


__all__ = [
    "PRODUCT_PROPERTIES",
    "POST_LEVEL_FIELDS",
    "product_class_name",
    "validate_product_type",
    "meta_payload",
    "attributes_from_meta",
    "ProductDraft",
    "meta_rows",
    "has_meta",
]
