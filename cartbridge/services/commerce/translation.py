"""Post-write translation sync hook.

After a product write the handlers call ``sync(platform, product,
product_data, meta_changes)``. The multilingual implementation propagates
the changed fields to every linked per-language duplicate; the null
implementation does nothing.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping

from cartbridge.services.commerce.entities import PRODUCT_PROPERTIES, ProductDraft, attributes_from_meta
from cartbridge.services.commerce.platform import CommercePlatform
from cartbridge.utils.logging import get_logger

LOG = get_logger("commerce.translation")

# Per-language values (translated media and terms) never copied verbatim.
NEVER_SYNC_FIELDS = frozenset({"image_id", "category_ids", "tag_ids", "gallery_image_ids"})
ATTRIBUTES_META_KEY = "_product_attributes"


def _language_list(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, Mapping):
        return [str(v) for v in value.values()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _first_flag(items: Any, name: str) -> bool:
    if isinstance(items, Mapping):
        items = list(items.values())
    if isinstance(items, list) and items and isinstance(items[0], Mapping):
        return bool(items[0].get(name))
    return False


def _term_names(items: Any) -> List[Any]:
    if isinstance(items, Mapping):
        items = list(items.values())
    names = [item.get("name") for item in items or [] if isinstance(item, Mapping) and item.get("name") is not None]
    return list(dict.fromkeys(names))


class TranslationSync:
    """Hook interface; the default does nothing."""

    enabled = False

    def translations(self, platform: CommercePlatform, product_id: int) -> Dict[str, int]:
        return {}

    def sync(
        self,
        platform: CommercePlatform,
        product: Mapping[str, Any],
        product_data: Mapping[str, Any],
        meta_changes: Mapping[str, Any],
    ) -> None:
        return None


class NullTranslationSync(TranslationSync):
    pass


class WpmlTranslationSync(TranslationSync):
    """Propagates product writes to WPML duplicates through the platform."""

    enabled = True

    def translations(self, platform: CommercePlatform, product_id: int) -> Dict[str, int]:
        return {lang: tid for lang, tid in platform.product_translations(product_id).items() if tid}

    def sync(
        self,
        platform: CommercePlatform,
        product: Mapping[str, Any],
        product_data: Mapping[str, Any],
        meta_changes: Mapping[str, Any],
    ) -> None:
        product_id = int(product.get("id") or 0)
        if not product_id:
            return
        internal = product_data.get("internal_data") or {}
        for language in _language_list(internal.get("wpml_only_translate_to")):
            duplicate_id = platform.duplicate_product(product_id, language)
            LOG.debug("duplicate created product=%s lang=%s id=%s", product_id, language, duplicate_id)

        changes = {k: v for k, v in meta_changes.items() if k not in NEVER_SYNC_FIELDS}
        per_language_meta = internal.get("wpml_translations_meta") or {}
        terms_data = product_data.get("terms_data") or {}
        attributes = product.get("attributes")

        for language, translation_id in self.translations(platform, product_id).items():
            if translation_id == product_id:
                continue
            current = platform.get_product(translation_id)
            if current is None:
                continue
            draft = ProductDraft(str(current.get("type") or product.get("type") or "simple"), current)
            meta: Dict[str, Any] = {}
            for prop, value in changes.items():
                if prop in PRODUCT_PROPERTIES and value is not None:
                    draft.set(prop, value)
                elif prop != ATTRIBUTES_META_KEY:
                    meta[prop] = value
            for key, value in (per_language_meta.get(language) or {}).items():
                meta[key] = value
            draft.meta = meta
            if attributes and ATTRIBUTES_META_KEY not in changes:
                draft.extra["attributes"] = attributes
            elif ATTRIBUTES_META_KEY in changes:
                draft.extra["attributes"] = attributes_from_meta(changes[ATTRIBUTES_META_KEY])
            payload = draft.to_payload()
            if payload:
                platform.update_product(translation_id, payload)

            for taxonomy, items in terms_data.items():
                if taxonomy != "product_cat" and not _first_flag(items, "all_lang"):
                    continue
                append = taxonomy != "product_cat" and _first_flag(items, "append")
                platform.set_product_terms(translation_id, taxonomy, _term_names(items), append)
            platform.clear_product_cache(translation_id)


__all__ = [
    "NEVER_SYNC_FIELDS",
    "TranslationSync",
    "NullTranslationSync",
    "WpmlTranslationSync",
]
