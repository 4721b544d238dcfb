"""Config Adapter: detect the active cart plugin and expose cart-shaped config.

Detection reads the host's PHP-serialized active plugin list (per tenant on
multi-tenant installs) and classifies it as WooCommerce or WP eCommerce.
A ``cart_id`` request parameter pins which cart to look for.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from cartbridge import config as app_config
from cartbridge.db.engine import split_db_host
from cartbridge.db.link import DatabaseLink
from cartbridge.db.repositories.options_repo import maybe_unserialize
from cartbridge.errors import ConnectivityError
from cartbridge.utils.constants import (
    ACTION_NOT_SUPPORTED,
    CART_ID_FIELD,
    CART_TYPE_WORDPRESS,
    CART_WOOCOMMERCE,
    CART_WPECOMMERCE,
)
from cartbridge.utils.logging import get_logger

LOG = get_logger("config_adapter")

# Network-wide tables keep the base prefix on multi-tenant installs.
GLOBAL_TABLES = frozenset({
    "users",
    "usermeta",
    "blogs",
    "blogmeta",
    "signups",
    "site",
    "sitemeta",
    "sitecategories",
    "registration_log",
})

PLUGIN_WOOCOMMERCE = "woocommerce"
PLUGIN_WPECOMMERCE = "wp-e-commerce"
PIN_WOOCOMMERCE = "Woocommerce"
PIN_WPECOMMERCE = "WPecommerce"

_WPSC_DEFINE_RE = re.compile(r"define\('WPSC_VERSION.*")
_VERSION_TAIL_RE = re.compile(r"\d.*")
_IDENT_RE = re.compile(r"^\w+$")


@dataclass
class BridgeConfig:
    """Per-request host/cart configuration; never persisted."""

    host: str = "localhost"
    port: Optional[int] = None
    socket: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    dbname: Optional[str] = None
    table_prefix: str = app_config.DEFAULT_TABLE_PREFIX
    time_zone: Optional[str] = None
    cart_type: str = CART_TYPE_WORDPRESS
    cart_id: str = ""
    images_dir: str = ""
    categories_images_dir: str = ""
    products_images_dir: str = ""
    manufacturers_images_dir: str = ""
    categories_images_dirs: str = ""
    products_images_dirs: str = ""
    manufacturers_images_dirs: str = ""
    languages: Dict[str, Any] = field(default_factory=dict)
    cart_vars: Dict[str, Any] = field(default_factory=dict)

    @property
    def detected(self) -> bool:
        return bool(self.cart_id)


def load_host_config() -> BridgeConfig:
    host, port, socket = split_db_host(app_config.db_host())
    cfg = BridgeConfig(
        host=host,
        port=port,
        socket=socket,
        username=app_config.db_user(),
        password=app_config.db_password(),
        dbname=app_config.db_name(),
        table_prefix=app_config.table_prefix(),
        time_zone=app_config.timezone_name(),
    )
    cfg.images_dir = app_config.uploads_dir()
    if app_config.multisite_enabled():
        cfg.images_dir = re.sub(r"[\\/]sites[\\/]\d+", "", cfg.images_dir)
        if app_config.site_url():
            cfg.cart_vars["wp_siteurl"] = app_config.site_url()
        if app_config.home_url():
            cfg.cart_vars["wp_home"] = app_config.home_url()
    content = app_config.content_url()
    if content is None and app_config.site_url():
        content = app_config.site_url().rstrip("/") + "/wp-content"  # type: ignore[union-attr]
    cfg.cart_vars["wp_content_url"] = content
    return cfg


def classify_plugins(plugins: Iterable[str], pinned_cart: str = "") -> Optional[str]:
    """Plugin family for the first matching plugin path, honouring a pinned cart id."""
    for plugin in plugins:
        plugin = str(plugin)
        is_woo = "woocommerce.php" in plugin
        is_wpec = plugin.startswith("wp-e-commerce") or plugin.startswith("wp-ecommerce")
        if pinned_cart:
            if pinned_cart == PIN_WOOCOMMERCE and is_woo:
                return PLUGIN_WOOCOMMERCE
            if pinned_cart == PIN_WPECOMMERCE and is_wpec:
                return PLUGIN_WPECOMMERCE
            continue
        if is_woo:
            return PLUGIN_WOOCOMMERCE
        if is_wpec:
            return PLUGIN_WPECOMMERCE
    return None


def _plugin_list(raw: Any, *, use_keys: bool = False) -> List[str]:
    value = maybe_unserialize(raw)
    if isinstance(value, dict):
        return [str(k) for k in value.keys()] if use_keys else [str(v) for v in value.values()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return []


class ConfigAdapter:
    """Detects the cart and answers cart/config questions for handlers."""

    def __init__(
        self,
        params: Optional[Mapping[str, Any]] = None,
        *,
        link_factory: Callable[[], DatabaseLink] = DatabaseLink,
        config: Optional[BridgeConfig] = None,
        plugins_dir: Optional[str] = None,
    ) -> None:
        self.params: Mapping[str, Any] = params or {}
        self._link_factory = link_factory
        self.config = config or load_host_config()
        self.plugins_dir = plugins_dir or app_config.plugins_dir()
        self.multisite = app_config.multisite_enabled()
        self.plugin_name = ""
        self.active_plugins: List[str] = []
        self._probe: Optional[DatabaseLink] = None

    # ---------------- links ---------------
    def connect(self) -> DatabaseLink:
        """Fresh Database Link for one bridge request."""
        return self._link_factory()

    def _probe_link(self) -> DatabaseLink:
        if self._probe is None:
            self._probe = self._link_factory()
        return self._probe

    def release(self) -> None:
        if self._probe is not None:
            self._probe.release()
            self._probe = None

    # ---------------- version probe ---------------
    def get_cart_version_from_db(
        self,
        field_name: str,
        table: str,
        where: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        prefix: Optional[str] = None,
    ) -> str:
        """``SELECT field AS version FROM prefix+table WHERE where``; first row or ''."""
        if not _IDENT_RE.match(field_name) or not _IDENT_RE.match(table):
            raise ValueError("invalid identifier")
        if table in GLOBAL_TABLES:
            tbl_prefix = app_config.table_prefix()
        else:
            tbl_prefix = self.config.table_prefix if prefix is None else prefix
        sql = f"SELECT {field_name} AS version FROM {tbl_prefix}{table} WHERE {where}"
        try:
            rows = self._probe_link().local_query(sql, params)
        except SQLAlchemyError as exc:
            LOG.warning("version probe failed table=%s err=%s", table, exc)
            return ""
        if rows and rows[0].get("version") is not None:
            value = rows[0]["version"]
            return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)
        return ""

    def _active_plugins(self, prefix: Optional[str] = None) -> List[str]:
        raw = self.get_cart_version_from_db(
            "option_value", "options", "option_name = :name", {"name": "active_plugins"}, prefix=prefix
        )
        return _plugin_list(raw) if raw else []

    # ---------------- detection ---------------
    def _pinned_cart(self) -> str:
        value = self.params.get(CART_ID_FIELD)
        return str(value).strip() if value else ""

    def detect(self) -> BridgeConfig:
        """Populate cart fields; leaves ``cart_id`` empty when no cart is found."""
        pinned = self._pinned_cart()
        base_prefix = self.config.table_prefix
        active: Optional[str] = None
        try:
            if self.multisite:
                active = self._detect_network(pinned, base_prefix)
            else:
                self.active_plugins = self._active_plugins()
                active = classify_plugins(self.active_plugins, pinned)
        except ConnectivityError:
            self.release()
            raise

        if active == PLUGIN_WOOCOMMERCE:
            self._set_woocommerce_data()
        elif active == PLUGIN_WPECOMMERCE:
            self._set_wpecommerce_data()
        else:
            LOG.warning("cart plugin not detected pinned=%s", pinned or "-")
        self.plugin_name = active or ""
        self.config.table_prefix = base_prefix
        self.release()
        return self.config

    def _detect_network(self, pinned: str, base_prefix: str) -> Optional[str]:
        raw = self.get_cart_version_from_db(
            "meta_value", "sitemeta", "meta_key = :key", {"key": "active_sitewide_plugins"}
        )
        if raw:
            network = _plugin_list(raw, use_keys=True)
            active = classify_plugins(network, pinned)
            if active:
                self.active_plugins = network
                return active
        try:
            blogs = self._probe_link().local_query(f"SELECT blog_id FROM {base_prefix}blogs")
        except SQLAlchemyError as exc:
            LOG.warning("tenant list unavailable err=%s", exc)
            return None
        for blog in blogs:
            blog_id = int(blog.get("blog_id") or 0)
            tenant_prefix = f"{base_prefix}{blog_id}_" if blog_id > 1 else base_prefix
            tenant_plugins = self._active_plugins(prefix=tenant_prefix)
            active = classify_plugins(tenant_plugins, pinned)
            if active:
                self.active_plugins = tenant_plugins
                return active
        return None

    def _set_woocommerce_data(self) -> None:
        cfg = self.config
        cfg.cart_id = CART_WOOCOMMERCE
        version = self.get_cart_version_from_db(
            "option_value", "options", "option_name = :name", {"name": "woocommerce_db_version"}
        )
        if version:
            cfg.cart_vars["dbVersion"] = version
        cfg.cart_vars["categoriesDirRelative"] = "images/categories/"
        cfg.cart_vars["productsDirRelative"] = "images/products/"

    def _plugin_file(self, *parts: str) -> str:
        return os.path.join(self.plugins_dir, *parts)

    def _wpsc_version_from_source(self) -> str:
        path = self._plugin_file("wp-shopping-cart", "wp-shopping-cart.php")
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as fh:
                source = fh.read()
        except OSError:
            return ""
        match = _WPSC_DEFINE_RE.search(source)
        if not match:
            return ""
        tail = _VERSION_TAIL_RE.search(match.group(0))
        if not tail:
            return ""
        version = tail.group(0)
        for junk in (" ", "-", "_", "'", ");", ")", ";"):
            version = version.replace(junk, "")
        return version.lower()

    def _set_wpecommerce_data(self) -> None:
        cfg = self.config
        cfg.cart_id = CART_WPECOMMERCE
        version = self.get_cart_version_from_db(
            "option_value", "options", "option_name = :name", {"name": "wpsc_version"}
        ) or self._wpsc_version_from_source()
        if version:
            cfg.cart_vars["dbVersion"] = version

        sep = os.sep
        uploads = app_config.uploads_dir().rstrip(sep)
        if os.path.exists(self._plugin_file("shopp", "Shopp.php")) or os.path.exists(
            self._plugin_file("wp-e-commerce", "editor.php")
        ):
            cfg.images_dir = uploads + sep + "wpsc" + sep
            cfg.categories_images_dir = cfg.images_dir + "category_images" + sep
            cfg.products_images_dir = cfg.images_dir + "product_images" + sep
            cfg.manufacturers_images_dir = cfg.images_dir
        elif os.path.exists(self._plugin_file("wp-e-commerce", "wp-shopping-cart.php")):
            cfg.images_dir = uploads + sep
            cfg.categories_images_dir = cfg.images_dir + "wpsc" + sep + "category_images" + sep
            cfg.products_images_dir = cfg.images_dir
            cfg.manufacturers_images_dir = cfg.images_dir
        else:
            cfg.images_dir = "images" + sep
            cfg.categories_images_dir = cfg.images_dir
            cfg.products_images_dir = cfg.images_dir
            cfg.manufacturers_images_dir = cfg.images_dir

    @property
    def multilingual_active(self) -> bool:
        """WPML (sitepress) is among the active plugins."""
        return any("sitepress.php" in plugin for plugin in self.active_plugins)

    # ---------------- platform operations owned by the adapter ---------------
    def get_active_modules(self, data: Any = None) -> Dict[str, Any]:
        return {"error": ACTION_NOT_SUPPORTED, "data": False}


def build_config_adapter(params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> ConfigAdapter:
    """Adapter with cart detection already run."""
    adapter = ConfigAdapter(params, **kwargs)
    adapter.detect()
    return adapter


__all__ = [
    "GLOBAL_TABLES",
    "BridgeConfig",
    "load_host_config",
    "classify_plugins",
    "ConfigAdapter",
    "build_config_adapter",
]
