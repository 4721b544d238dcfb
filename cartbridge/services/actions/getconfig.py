"""``getconfig`` and ``basedirfs``: describe the store to the remote platform."""
from __future__ import annotations

import re
import zlib
from typing import Any, Dict

from cartbridge import config as app_config
from cartbridge.services.actions.base import Action
from cartbridge.services.context import RequestContext

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_MULTIPLIERS = {"g": 1024 ** 3, "m": 1024 ** 2, "k": 1024}
DEFAULT_TIME_ZONE = "UTC"


def parse_memory_limit(value: str) -> int:
    """Bytes for values like ``256M``, ``1g`` or ``-1``."""
    value = (value or "0").strip() or "0"
    match = _LEADING_INT_RE.match(value)
    number = int(match.group(1)) if match else 0
    return number * _MULTIPLIERS.get(value[-1].lower(), 1)


def zlib_supported() -> bool:
    return hasattr(zlib, "decompress")


class GetConfigAction(Action):
    name = "getconfig"
    needs_link = False

    def execute(self, ctx: RequestContext) -> Dict[str, Any]:
        cfg = ctx.config
        return {
            "images": {
                "imagesPath": cfg.images_dir,
                "categoriesImagesPath": cfg.categories_images_dir,
                "categoriesImagesPaths": cfg.categories_images_dirs,
                "productsImagesPath": cfg.products_images_dir,
                "productsImagesPaths": cfg.products_images_dirs,
                "manufacturersImagesPath": cfg.manufacturers_images_dir,
                "manufacturersImagesPaths": cfg.manufacturers_images_dirs,
            },
            "languages": cfg.languages,
            "baseDirFs": app_config.store_base_dir(),
            "bridgeVersion": app_config.BRIDGE_VERSION,
            "bridgeKeyId": app_config.public_key_id(),
            "databaseName": cfg.dbname,
            "cartDbPrefix": cfg.table_prefix,
            "memoryLimit": parse_memory_limit(app_config.memory_limit()),
            "zlibSupported": zlib_supported(),
            "cartVars": cfg.cart_vars,
            "time_zone": cfg.time_zone or DEFAULT_TIME_ZONE,
        }


class BaseDirFsAction(Action):
    name = "basedirfs"
    needs_link = False

    def execute(self, ctx: RequestContext) -> str:
        return app_config.store_base_dir()


__all__ = ["parse_memory_limit", "zlib_supported", "GetConfigAction", "BaseDirFsAction"]
