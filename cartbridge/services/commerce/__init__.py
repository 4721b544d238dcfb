"""Commerce entity operations over a platform collaborator."""
from __future__ import annotations

from typing import Callable, Optional

import requests

from cartbridge.services.commerce.handlers import CommerceHandlers
from cartbridge.services.commerce.platform import CommercePlatform, PlatformApiError
from cartbridge.services.commerce.translation import NullTranslationSync, TranslationSync, WpmlTranslationSync
from cartbridge.services.commerce.woocommerce_rest import WooCommerceRestPlatform, build_platform
from cartbridge.services.http_client import new_session
from cartbridge.utils.constants import CART_WOOCOMMERCE


def build_commerce_handlers(
    *,
    cart_id: str = CART_WOOCOMMERCE,
    multilingual: bool = False,
    platform: Optional[CommercePlatform] = None,
    http_session: Callable[[], requests.Session] = new_session,
) -> CommerceHandlers:
    """Handlers over the configured WooCommerce REST platform."""
    sync: TranslationSync = WpmlTranslationSync() if multilingual else NullTranslationSync()
    return CommerceHandlers(
        platform or build_platform(),
        sync,
        cart_id=cart_id,
        http_session=http_session,
    )


__all__ = [
    "CommerceHandlers",
    "CommercePlatform",
    "PlatformApiError",
    "TranslationSync",
    "NullTranslationSync",
    "WpmlTranslationSync",
    "WooCommerceRestPlatform",
    "build_platform",
    "build_commerce_handlers",
]
