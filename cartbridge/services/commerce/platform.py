"""Commerce platform collaborator interface.

Handlers never touch WooCommerce internals directly; they talk to an object
implementing ``CommercePlatform``. Entities are exchanged as plain dicts in
the shape of the WooCommerce REST API (``id``, ``type``, ``meta_data`` list
of ``{"id", "key", "value"}`` and so on). Failures raise
``CommerceEntityError`` (or ``PlatformApiError``).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from cartbridge.errors import CommerceEntityError

ENTITY_PRODUCT = "product"
ENTITY_VARIANT = "variant"
ENTITY_ORDER = "order"
ENTITY_CATEGORY = "category"
ENTITY_CUSTOMER = "customer"
META_ENTITIES = (ENTITY_PRODUCT, ENTITY_VARIANT, ENTITY_ORDER, ENTITY_CATEGORY, ENTITY_CUSTOMER)

PRODUCT_TYPES = frozenset({"simple", "variable", "grouped", "external", "variation"})

ORDER_STATUS_NAMES = {
    "pending": "Pending payment",
    "processing": "Processing",
    "on-hold": "On hold",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "refunded": "Refunded",
    "failed": "Failed",
    "checkout-draft": "Draft",
}


class PlatformApiError(CommerceEntityError):
    """The platform rejected a call (validation, permissions, missing route)."""

    def __init__(self, message: str, error_code: int | str = 0, status: Optional[int] = None) -> None:
        super().__init__(message, error_code)
        self.status = status


class CommercePlatform(ABC):
    """Object-model operations the bridge needs from the store platform."""

    # ---------------- products ---------------
    @abstractmethod
    def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        """Product or variation by id; None when missing."""

    @abstractmethod
    def create_product(self, payload: Mapping[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def update_product(self, product_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_product(self, product_id: int) -> None:
        """Permanent delete (no trash)."""

    @abstractmethod
    def set_product_terms(self, product_id: int, taxonomy: str, names: List[Any], append: bool) -> None: ...

    def clear_product_cache(self, product_id: int) -> None:
        """Drop cached reads for ``product_id`` after a write."""

    def product_translations(self, product_id: int) -> Dict[str, int]:
        """``{language_code: product_id}`` of linked per-language duplicates."""
        return {}

    def duplicate_product(self, product_id: int, language: str) -> int:
        raise PlatformApiError("Translations are not supported")

    # ---------------- orders ---------------
    @abstractmethod
    def get_order(self, order_id: int) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def update_order(self, order_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def add_order_note(
        self, order_id: int, note: str, *, customer_note: bool = False, added_by_user: bool = False
    ) -> int: ...

    def order_status_name(self, status: str) -> str:
        slug = (status or "").strip()
        if slug.startswith("wc-"):
            slug = slug[3:]
        return ORDER_STATUS_NAMES.get(slug, slug)

    # ---------------- refunds ---------------
    @abstractmethod
    def gateway_supports_refunds(self, gateway_id: str) -> bool: ...

    @abstractmethod
    def create_refund(
        self,
        order_id: int,
        *,
        amount: float,
        reason: str = "",
        line_items: Optional[Iterable[Mapping[str, Any]]] = None,
        restock_items: bool = False,
        refund_payment: bool = False,
    ) -> Dict[str, Any]: ...

    @abstractmethod
    def refund_payment(self, order_id: int, refund: Mapping[str, Any]) -> Optional[int]:
        """Repay ``refund`` through the payment gateway; refund id or None on failure."""

    @abstractmethod
    def delete_refund(self, order_id: int, refund_id: int) -> None: ...

    # ---------------- meta ---------------
    @abstractmethod
    def get_entity(self, entity: str, entity_id: int) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def update_entity_meta(
        self, entity: str, entity_id: int, add: Mapping[str, Any], remove: Iterable[str]
    ) -> Dict[str, Any]:
        """Apply meta changes and return the refreshed entity."""

    # ---------------- categories ---------------
    @abstractmethod
    def create_category(self, payload: Mapping[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def update_category(self, category_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_category(self, category_id: int) -> None: ...

    # ---------------- media ---------------
    @abstractmethod
    def upload_media(
        self, filename: str, content: bytes, *, alt: str = "", parent_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Store an attachment; returns ``{"id", "source_url", ...}``."""

    @abstractmethod
    def media_url(self, media_id: int) -> Optional[str]: ...

    def home_url(self) -> str:
        return ""

    # ---------------- misc ---------------
    @abstractmethod
    def list_plugins(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def trigger_email(self, email_class: str, args: Any) -> bool:
        """Send one of the platform's e-mails; False when the class is unknown."""

    def fire_action(self, action: str, data: Any) -> None:
        raise PlatformApiError("Action is not supported")

    def shipment_providers(self) -> Optional[Dict[str, Dict[str, str]]]:
        """``{country: {provider name: tracking url}}``; None when tracking is unavailable."""
        return None


__all__ = [
    "ENTITY_PRODUCT",
    "ENTITY_VARIANT",
    "ENTITY_ORDER",
    "ENTITY_CATEGORY",
    "ENTITY_CUSTOMER",
    "META_ENTITIES",
    "PRODUCT_TYPES",
    "PlatformApiError",
    "CommercePlatform",
]
