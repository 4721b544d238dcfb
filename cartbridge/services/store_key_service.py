"""StoreKey lifecycle: generate, persist, mirror and rotate the shared secret.

The key lives in host settings storage (site option, or network meta for
site 1 on multi-tenant installs) and is mirrored into a one-line file under
the bridge directory. The bridge authenticates requests against the mirror,
so both must agree.
"""
from __future__ import annotations

import hashlib
import os
import re
import secrets
import tempfile
from typing import Dict, Optional

from cartbridge import config as app_config
from cartbridge.db.repositories import options_repo
from cartbridge.utils.logging import get_logger

LOG = get_logger("store_key_service")

KEY_BYTES = 256
KEY_LENGTH = 32
_MIRROR_RE = re.compile(r"""^\s*BRIDGE_TOKEN\s*=\s*['"]([^'"]*)['"]""", re.MULTILINE)


def generate_store_key() -> str:
    """md5 hex of 256 bytes from the OS CSPRNG."""
    return hashlib.md5(secrets.token_bytes(KEY_BYTES)).hexdigest()


# ---------------- mirror file ---------------

def read_mirror_key(path: Optional[str] = None) -> Optional[str]:
    """Key defined in the mirror file, or None when the file/definition is missing."""
    path = path or app_config.store_key_file_path()
    try:
        with open(path, "r", encoding="utf-8") as fh:
            content = fh.read()
    except OSError:
        return None
    match = _MIRROR_RE.search(content)
    return match.group(1) if match else None


def write_mirror_key(key: str, path: Optional[str] = None) -> Dict[str, object]:
    path = path or app_config.store_key_file_path()
    directory = os.path.dirname(path)
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(dir=directory, prefix="bridge-config-", suffix=".tmp")
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as fh:
            fh.write(f"BRIDGE_TOKEN = '{key}'\n")
        os.replace(tmp_path, path)
    except OSError as exc:
        LOG.error("store key mirror write failed path=%s err=%s", path, exc)
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                pass
        return {"success": False, "message": "Can't save bridge config. Please check permissions"}
    return {"success": True, "message": "Store Key updated successfully"}


# ---------------- settings storage ---------------

def get_store_key() -> str:
    """Persisted key, generated on first use; repairs a stale mirror file."""
    key = options_repo.get_setting(app_config.STORE_KEY_OPTION_NAME)
    if not key:
        key = generate_store_key()
        options_repo.update_setting(app_config.STORE_KEY_OPTION_NAME, key)
        LOG.info("store key generated")
    mirrored = read_mirror_key()
    if mirrored is not None and mirrored != key:
        LOG.info("store key mirror out of date; rewriting")
        write_mirror_key(key)
    return key


def rotate_store_key() -> str:
    key = generate_store_key()
    options_repo.update_setting(app_config.STORE_KEY_OPTION_NAME, key)
    LOG.info("store key rotated")
    return key


def delete_store_key() -> None:
    options_repo.delete_setting(app_config.STORE_KEY_OPTION_NAME)


# ---------------- install flags ---------------

def is_installed() -> bool:
    """True while the installed flag row exists, whatever its value."""
    return options_repo.get_option(app_config.IS_INSTALLED_OPTION_NAME) is not None


def mark_installed(custom: bool = False) -> None:
    options_repo.update_option(app_config.IS_INSTALLED_OPTION_NAME, True)
    options_repo.update_option(app_config.IS_CUSTOM_OPTION_NAME, custom)


def clear_installed() -> None:
    options_repo.delete_option(app_config.IS_CUSTOM_OPTION_NAME)
    options_repo.delete_option(app_config.IS_INSTALLED_OPTION_NAME)


__all__ = [
    "KEY_LENGTH",
    "generate_store_key",
    "read_mirror_key",
    "write_mirror_key",
    "get_store_key",
    "rotate_store_key",
    "delete_store_key",
    "is_installed",
    "mark_installed",
    "clear_installed",
]
