"""Bridge configuration accessors.

Centralizes environment variable parsing & defaults. Host installation
"constants" (DB credentials, table prefix, multisite flag, upload dirs) are
read here under the same names the host application uses so operators can
share one environment file between the store and the bridge.
"""
from __future__ import annotations

import os
from functools import lru_cache

APP_NAME = "cartbridge"
BRIDGE_VERSION = "167"
APP_DESCRIPTION = "Signed SQL/commerce bridge for WooCommerce stores"

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TABLE_PREFIX = "wp_"
DEFAULT_CHECK_REQUEST_KEY_URL = "http://app.api2cart.com/request/key/check"
STORE_KEY_OPTION_NAME = "A2C_store_key"
IS_INSTALLED_OPTION_NAME = "A2C_woocommerce_bridge_connector_is_installed"
IS_CUSTOM_OPTION_NAME = "A2C_woocommerce_bridge_connector_is_custom"
STORE_KEY_FILE_NAME = "bridge_config.py"
_TRUE = {"1", "true", "yes", "on"}


def _raw_env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val is not None else default


def _stripped(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def env_bool(name: str, default: bool = False) -> bool:
    raw = _raw_env(name, str(default).lower())
    if raw is None:
        return default
    return raw.lower() in _TRUE


def log_level_name() -> str:
    return _raw_env("BRIDGE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()  # type: ignore[return-value]


# ---------------- host database constants ---------------

def db_name() -> str | None:
    return _stripped("DB_NAME")


def db_user() -> str | None:
    return _stripped("DB_USER")


def db_password() -> str | None:
    """DB_PASSWORD with the legacy DB_PASS fallback (may be empty)."""
    value = os.getenv("DB_PASSWORD")
    if value is None:
        value = os.getenv("DB_PASS")
    return value


def db_host() -> str:
    return _raw_env("DB_HOST", "localhost") or ""


def database_url_override() -> str | None:
    """Full SQLAlchemy URL (BRIDGE_DATABASE_URL); wins over DB_* constants."""
    return _stripped("BRIDGE_DATABASE_URL")


def table_prefix() -> str:
    return _raw_env("WP_TABLE_PREFIX", DEFAULT_TABLE_PREFIX) or DEFAULT_TABLE_PREFIX


def multisite_enabled() -> bool:
    return env_bool("WP_MULTISITE", default=False)


def uploads_dir() -> str:
    return _raw_env("WP_UPLOADS_DIR", os.path.join(store_base_dir(), "wp-content", "uploads"))  # type: ignore[return-value]


def plugins_dir() -> str:
    return _raw_env("WP_PLUGINS_DIR", os.path.join(store_base_dir(), "wp-content", "plugins"))  # type: ignore[return-value]


def content_url() -> str | None:
    return _stripped("WP_CONTENT_URL")


def site_url() -> str | None:
    return _stripped("WP_SITEURL")


def home_url() -> str | None:
    return _stripped("WP_HOME")


def timezone_name() -> str | None:
    return _stripped("WP_TIMEZONE")


def memory_limit() -> str:
    """Host memory limit as written in its config (e.g. 256M); "0" when unknown."""
    return (_raw_env("WP_MEMORY_LIMIT", "0") or "0").strip() or "0"


# ---------------- bridge settings ---------------

def store_base_dir() -> str:
    """Filesystem root of the store; file-save destinations are relative to it."""
    raw = _raw_env("BRIDGE_STORE_BASE_DIR", os.getcwd()) or os.getcwd()
    return raw if raw.endswith(os.sep) else raw + os.sep


def bridge_dir() -> str:
    """Directory holding the store-key mirror file."""
    default = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "bridge2cart")
    return os.path.abspath(_raw_env("BRIDGE_DIR", default))  # type: ignore[arg-type]


def store_key_file_path() -> str:
    return os.path.join(bridge_dir(), STORE_KEY_FILE_NAME)


def encryption_enabled() -> bool:
    return env_bool("BRIDGE_ENABLE_ENCRYPTION", default=False)


def public_key_path() -> str | None:
    return _stripped("BRIDGE_PUBLIC_KEY_PATH")


def private_key_path() -> str | None:
    """Optional; when set, inbound payloads are OAEP-decrypted with it."""
    return _stripped("BRIDGE_PRIVATE_KEY_PATH")


def public_key_id() -> str:
    return _raw_env("BRIDGE_PUBLIC_KEY_ID", "") or ""


def check_request_key_url() -> str:
    return _raw_env("BRIDGE_CHECK_REQUEST_KEY_URL", DEFAULT_CHECK_REQUEST_KEY_URL)  # type: ignore[return-value]


def admin_token() -> str | None:
    """Shared token for the admin connector endpoints (X-Admin-Token)."""
    return _stripped("BRIDGE_ADMIN_TOKEN")


def bridge_public_url() -> str | None:
    """Public URL of the bridge endpoint used by the install self-check."""
    value = _stripped("BRIDGE_PUBLIC_URL")
    if value:
        return value
    home = home_url() or site_url()
    if not home:
        return None
    return home.rstrip("/") + "/wp-json/a2c/v1/bridge-action"


# ---------------- WooCommerce REST collaborator ---------------

def wc_api_url() -> str | None:
    """Base of the WooCommerce REST API, e.g. https://shop.test/wp-json."""
    value = _stripped("WC_API_URL")
    if value:
        return value.rstrip("/")
    home = home_url() or site_url()
    return home.rstrip("/") + "/wp-json" if home else None


def wc_consumer_key() -> str | None:
    return _stripped("WC_CONSUMER_KEY")


def wc_consumer_secret() -> str | None:
    return _stripped("WC_CONSUMER_SECRET")


def wp_api_user() -> str | None:
    """WordPress user for /wp/v2 routes (media, plugins); pairs with an application password."""
    return _stripped("WP_API_USER")


def wp_app_password() -> str | None:
    return _stripped("WP_APP_PASSWORD")


def wc_api_timeout() -> int:
    raw = _raw_env("WC_API_TIMEOUT", "30")
    try:
        return max(1, int(raw or 30))
    except ValueError:
        return 30


@lru_cache(maxsize=1)
def metadata() -> dict:
    return {
        "name": APP_NAME,
        "version": BRIDGE_VERSION,
        "description": APP_DESCRIPTION,
    }


def summarize_runtime_config() -> dict:
    return {
        "db_name": db_name(),
        "table_prefix": table_prefix(),
        "multisite": multisite_enabled(),
        "encryption": encryption_enabled(),
        "log_level": log_level_name(),
    }


__all__ = [
    "APP_NAME",
    "BRIDGE_VERSION",
    "APP_DESCRIPTION",
    "STORE_KEY_OPTION_NAME",
    "IS_INSTALLED_OPTION_NAME",
    "IS_CUSTOM_OPTION_NAME",
    "env_bool",
    "log_level_name",
    "db_name",
    "db_user",
    "db_password",
    "db_host",
    "database_url_override",
    "table_prefix",
    "multisite_enabled",
    "uploads_dir",
    "plugins_dir",
    "content_url",
    "site_url",
    "home_url",
    "timezone_name",
    "memory_limit",
    "store_base_dir",
    "bridge_dir",
    "store_key_file_path",
    "encryption_enabled",
    "public_key_path",
    "private_key_path",
    "public_key_id",
    "check_request_key_url",
    "admin_token",
    "bridge_public_url",
    "wc_api_url",
    "wc_consumer_key",
    "wc_consumer_secret",
    "wc_api_timeout",
    "wp_api_user",
    "wp_app_password",
    "metadata",
    "summarize_runtime_config",
]
