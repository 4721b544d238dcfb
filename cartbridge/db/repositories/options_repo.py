"""Repository helpers for the host's settings tables.

Single-site settings live in ``{prefix}options``; network-wide settings of a
multi-tenant install live in ``{prefix}sitemeta`` rows for site id 1. Values
are stored as text; arrays are PHP-serialized by the host.
"""
from __future__ import annotations

import re
from typing import Any, Optional

import phpserialize
from sqlalchemy import text

from cartbridge import config as app_config
from cartbridge.db.engine import app_connection
from cartbridge.utils.logging import get_logger

LOG = get_logger("options_repo")
_PREFIX_RE = re.compile(r"^\w*$")
MAIN_SITE_ID = 1


def _table(name: str, prefix: Optional[str] = None) -> str:
    prefix = app_config.table_prefix() if prefix is None else prefix
    if not _PREFIX_RE.match(prefix):
        raise ValueError("invalid_table_prefix")
    return f"{prefix}{name}"


def _to_text(value: Any) -> str:
    if value is True:
        return "1"
    if value is False or value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        return phpserialize.dumps(value).decode("utf-8")
    return str(value)


def maybe_unserialize(value: Any) -> Any:
    """Decode a PHP-serialized string; anything else is returned unchanged."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if stripped != "N;" and (stripped[:1] not in set("aibdsO") or stripped[1:2] != ":"):
        return value
    try:
        return phpserialize.loads(stripped.encode("utf-8"), decode_strings=True)
    except ValueError:
        return value


# ---------------- {prefix}options ---------------

def get_option(name: str, *, prefix: Optional[str] = None, default: Any = None) -> Any:
    table = _table("options", prefix)
    with app_connection() as conn:
        row = conn.execute(
            text(f"SELECT option_value FROM {table} WHERE option_name = :name LIMIT 1"),
            {"name": name},
        ).fetchone()
    return row[0] if row is not None else default


def update_option(name: str, value: Any, *, prefix: Optional[str] = None) -> None:
    table = _table("options", prefix)
    stored = _to_text(value)
    with app_connection() as conn:
        existing = conn.execute(
            text(f"SELECT option_name FROM {table} WHERE option_name = :name LIMIT 1"),
            {"name": name},
        ).fetchone()
        if existing is not None:
            conn.execute(
                text(f"UPDATE {table} SET option_value = :value WHERE option_name = :name"),
                {"name": name, "value": stored},
            )
        else:
            conn.execute(
                text(f"INSERT INTO {table} (option_name, option_value, autoload) VALUES (:name, :value, 'yes')"),
                {"name": name, "value": stored},
            )
    LOG.debug("option updated name=%s", name)


def delete_option(name: str, *, prefix: Optional[str] = None) -> None:
    table = _table("options", prefix)
    with app_connection() as conn:
        conn.execute(text(f"DELETE FROM {table} WHERE option_name = :name"), {"name": name})


# ---------------- {prefix}sitemeta ---------------

def get_site_option(name: str, *, site_id: int = MAIN_SITE_ID, default: Any = None) -> Any:
    table = _table("sitemeta")
    with app_connection() as conn:
        row = conn.execute(
            text(f"SELECT meta_value FROM {table} WHERE meta_key = :key AND site_id = :site LIMIT 1"),
            {"key": name, "site": site_id},
        ).fetchone()
    return row[0] if row is not None else default


def update_site_option(name: str, value: Any, *, site_id: int = MAIN_SITE_ID) -> None:
    table = _table("sitemeta")
    stored = _to_text(value)
    with app_connection() as conn:
        existing = conn.execute(
            text(f"SELECT meta_key FROM {table} WHERE meta_key = :key AND site_id = :site LIMIT 1"),
            {"key": name, "site": site_id},
        ).fetchone()
        if existing is not None:
            conn.execute(
                text(f"UPDATE {table} SET meta_value = :value WHERE meta_key = :key AND site_id = :site"),
                {"key": name, "site": site_id, "value": stored},
            )
        else:
            conn.execute(
                text(f"INSERT INTO {table} (site_id, meta_key, meta_value) VALUES (:site, :key, :value)"),
                {"key": name, "site": site_id, "value": stored},
            )


def delete_site_option(name: str, *, site_id: int = MAIN_SITE_ID) -> None:
    table = _table("sitemeta")
    with app_connection() as conn:
        conn.execute(
            text(f"DELETE FROM {table} WHERE meta_key = :key AND site_id = :site"),
            {"key": name, "site": site_id},
        )


# ---------------- scope-aware helpers ---------------

def get_setting(name: str, default: Any = None) -> Any:
    """Network setting on multi-tenant installs, site option otherwise."""
    if app_config.multisite_enabled():
        return get_site_option(name, default=default)
    return get_option(name, default=default)


def update_setting(name: str, value: Any) -> None:
    if app_config.multisite_enabled():
        update_site_option(name, value)
    else:
        update_option(name, value)


def delete_setting(name: str) -> None:
    if app_config.multisite_enabled():
        delete_site_option(name)
    else:
        delete_option(name)


__all__ = [
    "maybe_unserialize",
    "get_option",
    "update_option",
    "delete_option",
    "get_site_option",
    "update_site_option",
    "delete_site_option",
    "get_setting",
    "update_setting",
    "delete_setting",
]
